"""
Wire the claim and pool controllers into a Manager.

Event sources:
    IPAddressClaim -> claim controller (the claim), pool controller (its pool)
    IPAddress      -> claim controller (the owning claim)
    InfobloxIPPool -> pool controller (the pool)
    Cluster        -> claim controller (claims labeled with the cluster)
"""

from __future__ import annotations

from typing import Any

from infoblox_ipam.config import config
from infoblox_ipam.controllers.claim_handler import InfobloxProviderAdapter
from infoblox_ipam.controllers.pool import PoolReconciler
from infoblox_ipam.index import setup_indexes
from infoblox_ipam.infoblox import ClientManager
from infoblox_ipam.ipamutil.reconciler import ClaimReconciler
from infoblox_ipam.kube.meta import CLUSTER_NAME_LABEL, matches_watch_filter
from infoblox_ipam.models.resources import (
    Cluster,
    InfobloxIPPool,
    IPAddress,
    IPAddressClaim,
)
from infoblox_ipam.runtime.manager import Controller, Manager
from infoblox_ipam.runtime.queue import Request
from infoblox_ipam.utils.logger import get_logger

logger = get_logger(__name__)


def setup_with_manager(
    manager: Manager,
    clients: ClientManager,
    operator_namespace: str,
    watch_filter: str = "",
) -> tuple[Controller, Controller]:
    """
    Register both controllers, their watches and the cache indexes.

    Returns:
        The claim controller and the pool controller.
    """
    setup_indexes(manager.cache)

    adapter = InfobloxProviderAdapter(clients, operator_namespace)
    claim_reconciler = ClaimReconciler(manager.kube, adapter)
    pool_reconciler = PoolReconciler(
        manager.kube, manager.cache, clients, operator_namespace
    )

    claims = manager.add_controller(
        Controller(
            "ipaddressclaim",
            claim_reconciler.reconcile,
            workers=config.CLAIM_MAX_CONCURRENT_RECONCILES,
        )
    )
    pools = manager.add_controller(
        Controller(
            "infobloxippool",
            pool_reconciler.reconcile,
            workers=config.POOL_MAX_CONCURRENT_RECONCILES,
        )
    )

    def claim_requests(obj: dict[str, Any]) -> list[Request]:
        claim = IPAddressClaim.model_validate(obj)
        if not adapter.handles_claim(claim):
            return []
        if not matches_watch_filter(claim, watch_filter):
            return []
        return [Request(claim.name, claim.namespace)]

    def claim_pool_requests(obj: dict[str, Any]) -> list[Request]:
        claim = IPAddressClaim.model_validate(obj)
        if not adapter.handles_claim(claim):
            return []
        return [Request(claim.spec.pool_ref.name, claim.namespace)]

    def address_requests(obj: dict[str, Any]) -> list[Request]:
        address = IPAddress.model_validate(obj)
        if not adapter.handles_address(address):
            return []
        for ref in address.metadata.owner_references:
            if ref.controller and ref.kind == IPAddressClaim.KIND:
                return [Request(ref.name, address.namespace)]
        return []

    def pool_requests(obj: dict[str, Any]) -> list[Request]:
        pool = InfobloxIPPool.model_validate(obj)
        if not matches_watch_filter(pool, watch_filter):
            return []
        return [Request(pool.name, pool.namespace)]

    def cluster_claim_requests(obj: dict[str, Any]) -> list[Request]:
        # Unpausing a cluster must pick up its claims again
        cluster = Cluster.model_validate(obj)
        return [
            Request(claim.name, claim.namespace)
            for claim in manager.cache.list(IPAddressClaim, cluster.namespace)
            if claim.metadata.labels.get(CLUSTER_NAME_LABEL) == cluster.name
            and adapter.handles_claim(claim)
        ]

    manager.watch(IPAddressClaim, claims, claim_requests)
    manager.watch(IPAddressClaim, pools, claim_pool_requests)
    manager.watch(IPAddress, claims, address_requests)
    manager.watch(InfobloxIPPool, pools, pool_requests)
    manager.watch(Cluster, claims, cluster_claim_requests)

    logger.info(
        f"Registered controllers (claim workers: {claims.workers}, "
        f"watch filter: {watch_filter or '(none)'})"
    )
    return claims, pools
