"""
Hostname resolution for address claims.

Provides:
- Owner chain resolver with fixed Metal3 and vSphere chains
- Bounded owner reference search
- Strategy selection from the claim's owner
"""

from infoblox_ipam.hostname.resolver import (
    MACHINE,
    METAL3_CHAIN,
    VSPHERE_CHAIN,
    GroupKind,
    OwnerChainResolver,
    Resolver,
    SearchOwnerReferenceResolver,
    resolver_for,
)

__all__ = [
    "GroupKind",
    "Resolver",
    "OwnerChainResolver",
    "SearchOwnerReferenceResolver",
    "resolver_for",
    "MACHINE",
    "METAL3_CHAIN",
    "VSPHERE_CHAIN",
]
