"""
Reverse indexes over the watched object cache.

Claims and addresses are indexed by the pool they reference so that the
pool's deletion protection can ask "is anything still using this pool"
with a single bucket lookup instead of a scan.
"""

from __future__ import annotations

from typing import Any

from infoblox_ipam.kube.cache import ObjectCache
from infoblox_ipam.models.resources import (
    IPAddress,
    IPAddressClaim,
    IPPoolReference,
    IPAM_GROUP,
)

POOL_REF_FIELD = "index.poolRef"


def pool_ref_value(ref: IPPoolReference) -> str:
    """Turn a pool reference into an indexable value."""
    return f"{ref.kind}{ref.name}"


def _by_pool_ref(obj: dict[str, Any]) -> list[str]:
    ref = obj.get("spec", {}).get("poolRef") or {}
    if not ref.get("name"):
        return []
    return [pool_ref_value(IPPoolReference.model_validate(ref))]


def setup_indexes(cache: ObjectCache) -> None:
    """Register the pool reference index on addresses and claims."""
    cache.add_index(IPAddress, POOL_REF_FIELD, _by_pool_ref)
    cache.add_index(IPAddressClaim, POOL_REF_FIELD, _by_pool_ref)


def list_addresses_in_use(
    cache: ObjectCache, namespace: str | None, pool_ref: IPPoolReference
) -> list[IPAddress]:
    """All IPAddresses in ``namespace`` that belong to the pool."""
    addresses = cache.by_index(
        IPAddress, POOL_REF_FIELD, pool_ref_value(pool_ref), namespace
    )
    return [a for a in addresses if a.group == IPAM_GROUP]


def list_claims_referencing_pool(
    cache: ObjectCache, namespace: str | None, pool_ref: IPPoolReference
) -> list[IPAddressClaim]:
    """All IPAddressClaims in ``namespace`` that reference the pool."""
    claims = cache.by_index(
        IPAddressClaim, POOL_REF_FIELD, pool_ref_value(pool_ref), namespace
    )
    return [c for c in claims if c.group == IPAM_GROUP]
