"""
Generic claim reconciliation, independent of the IPAM backend.
"""

from infoblox_ipam.ipamutil.address import (
    OperationResult,
    create_or_patch,
    ensure_address_owner_references,
    new_ip_address,
)
from infoblox_ipam.ipamutil.reconciler import (
    PROTECT_ADDRESS_FINALIZER,
    RELEASE_ADDRESS_FINALIZER,
    ClaimHandler,
    ClaimReconciler,
    ProviderAdapter,
)

__all__ = [
    "ClaimReconciler",
    "ClaimHandler",
    "ProviderAdapter",
    "RELEASE_ADDRESS_FINALIZER",
    "PROTECT_ADDRESS_FINALIZER",
    "new_ip_address",
    "ensure_address_owner_references",
    "create_or_patch",
    "OperationResult",
]
