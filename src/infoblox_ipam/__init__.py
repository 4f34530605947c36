"""
Infoblox IPAM provider for Cluster API.

Reconciles IPAddressClaims that reference an InfobloxIPPool into IPAddresses
by allocating host record addresses on an Infoblox grid.
"""

__version__ = "0.1.0"
