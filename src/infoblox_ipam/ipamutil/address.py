"""IPAddress construction and persistence helpers."""

from __future__ import annotations

from enum import Enum
from typing import Callable

from infoblox_ipam.kube.client import ObjectClient
from infoblox_ipam.kube.exceptions import NotFoundError
from infoblox_ipam.kube.meta import ensure_owner_reference, owner_reference_for
from infoblox_ipam.kube.patch import PatchHelper
from infoblox_ipam.models.resources import (
    IPAddress,
    IPAddressClaim,
    IPAddressSpec,
    IPPoolReference,
    KubeObject,
    LocalObjectReference,
    ObjectMeta,
)


class OperationResult(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def new_ip_address(claim: IPAddressClaim, pool: KubeObject) -> IPAddress:
    """An empty address for ``claim``, named after it and pointing at ``pool``."""
    return IPAddress(
        metadata=ObjectMeta(name=claim.name, namespace=claim.namespace),
        spec=IPAddressSpec(
            claim_ref=LocalObjectReference(name=claim.name),
            pool_ref=IPPoolReference(
                api_group=pool.group,
                kind=pool.kind,
                name=pool.name,
            ),
        ),
    )


def ensure_address_owner_references(
    address: IPAddress, claim: IPAddressClaim, pool: KubeObject
) -> bool:
    """
    Make the claim the controlling owner and the pool a plain owner.

    Any other owner references on the address are kept.
    """
    changed = ensure_owner_reference(address, owner_reference_for(claim, controller=True))
    changed |= ensure_owner_reference(address, owner_reference_for(pool, controller=False))
    return changed


def create_or_patch(
    client: ObjectClient, obj: KubeObject, mutate: Callable[[KubeObject], None]
) -> OperationResult:
    """
    Create ``obj`` if it does not exist, otherwise patch it.

    ``mutate`` is applied to ``obj`` in both cases; when the object exists
    only the difference to the stored version is sent.
    """
    try:
        current = client.get(type(obj), obj.name, obj.namespace)
    except NotFoundError:
        mutate(obj)
        created = client.create(obj)
        obj.metadata = created.metadata
        return OperationResult.CREATED

    helper = PatchHelper(current, client)
    obj.metadata.resource_version = current.metadata.resource_version
    mutate(obj)
    if helper.patch(obj):
        return OperationResult.UPDATED
    return OperationResult.UNCHANGED
