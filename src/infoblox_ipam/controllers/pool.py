"""
InfobloxIPPool controller.

Protects pools with a finalizer while claims still reference them and keeps
the pool's Ready condition in sync with what the grid actually has
(network view, DNS view, networks).
"""

from __future__ import annotations

import ipaddress

from infoblox_ipam.controllers.util import determine_dns_view, get_client_for_instance
from infoblox_ipam.exceptions import (
    ConfigurationError,
    InstanceUnavailableError,
    PoolInUseError,
)
from infoblox_ipam.index import list_claims_referencing_pool
from infoblox_ipam.infoblox import ClientManager, InfobloxError
from infoblox_ipam.kube.cache import ObjectCache
from infoblox_ipam.kube.client import ObjectClient
from infoblox_ipam.kube.exceptions import KubeError, NotFoundError
from infoblox_ipam.kube.meta import add_finalizer, mark_false, mark_true, remove_finalizer
from infoblox_ipam.kube.patch import PatchHelper
from infoblox_ipam.models.enums import ConditionReason
from infoblox_ipam.models.resources import InfobloxIPPool, IPPoolReference
from infoblox_ipam.runtime.queue import Request, Result
from infoblox_ipam.utils.logger import format_traceback, get_logger

logger = get_logger(__name__)

PROTECT_POOL_FINALIZER = "ipam.cluster.x-k8s.io/ProtectPool"


class PoolReconciler:
    """
    Reconciles InfobloxIPPools.

    Args:
        client: API server client.
        cache: Watched object cache with the pool reference index.
        clients: Registry of WAPI clients.
        operator_namespace: Namespace of the instance credential secrets.
    """

    def __init__(
        self,
        client: ObjectClient,
        cache: ObjectCache,
        clients: ClientManager,
        operator_namespace: str,
    ):
        self.client = client
        self.cache = cache
        self.clients = clients
        self.operator_namespace = operator_namespace

    def reconcile(self, request: Request) -> Result:
        try:
            pool = self.client.get(InfobloxIPPool, request.name, request.namespace)
        except NotFoundError:
            return Result()

        helper = PatchHelper(pool, self.client)
        try:
            result = self._reconcile(pool)
        except Exception:
            try:
                helper.patch(pool)
            except KubeError as e:
                logger.error(f"Failed to patch pool {pool.key()}: {e}")
            raise

        helper.patch(pool)
        return result

    def _reconcile(self, pool: InfobloxIPPool) -> Result:
        if not pool.is_deleting():
            if add_finalizer(pool, PROTECT_POOL_FINALIZER):
                # Written by the patch helper, the next event continues
                return Result()
        else:
            self._reconcile_delete(pool)
            return Result()

        self._update_readiness(pool)
        return Result()

    def _reconcile_delete(self, pool: InfobloxIPPool) -> None:
        ref = IPPoolReference(api_group=pool.group, kind=pool.kind, name=pool.name)
        in_use = list_claims_referencing_pool(self.cache, pool.namespace, ref)
        if in_use:
            for claim in in_use:
                logger.info(f"Pool {pool.key()} is still in use by claim {claim.name}")
            raise PoolInUseError(pool.key(), [claim.name for claim in in_use])

        if remove_finalizer(pool, PROTECT_POOL_FINALIZER):
            logger.info(f"Pool {pool.key()} is no longer in use, released it")

    def _update_readiness(self, pool: InfobloxIPPool) -> None:
        instance = pool.spec.instance_ref.name
        try:
            ibclient = get_client_for_instance(
                self.client, self.clients, instance, self.operator_namespace
            )
        except InstanceUnavailableError as e:
            mark_false(
                pool,
                ConditionReason.INSTANCE_UNAVAILABLE,
                f"Infoblox instance {instance} is not available: {e.reason}",
            )
            raise
        except ConfigurationError as e:
            mark_false(
                pool,
                ConditionReason.AUTHENTICATION_FAILED,
                f"client creation failed for instance {instance}: {e}",
            )
            raise

        host_config = ibclient.host_config
        if not pool.spec.network_view:
            pool.spec.network_view = host_config.default_network_view
        network_view = pool.spec.network_view
        dns_view = determine_dns_view(
            pool.spec.dns_view, host_config.default_dns_view, network_view
        )

        if not _exists(ibclient.check_network_view_exists, network_view):
            logger.error(f"Could not find network view {network_view}")
            mark_false(
                pool,
                ConditionReason.NETWORK_VIEW_NOT_FOUND,
                f"could not find network view {network_view!r}",
            )
            return

        if not _exists(ibclient.check_dns_view_exists, dns_view):
            logger.error(f"Could not find DNS view {dns_view}")
            mark_false(
                pool,
                ConditionReason.DNS_VIEW_NOT_FOUND,
                f"could not find DNS view {dns_view!r}",
            )
            return

        for sub in pool.spec.subnets:
            try:
                subnet = ipaddress.ip_network(sub.cidr, strict=False)
            except ValueError as e:
                raise ConfigurationError(f"failed to parse subnet {sub.cidr}: {e}") from e
            if not _exists(ibclient.check_network_exists, network_view, subnet):
                logger.error(f"Could not find network {subnet} in view {network_view}")
                mark_false(
                    pool,
                    ConditionReason.NETWORK_NOT_FOUND,
                    f"could not find network {str(subnet)!r} in view {network_view!r}",
                )
                return

        mark_true(pool, reason=ConditionReason.READY, message="pool is ready")


def _exists(check, *args) -> bool:
    # A failing lookup is reported the same as a missing object
    try:
        return check(*args)
    except InfobloxError as e:
        logger.error(f"Infoblox lookup failed: {e}")
        logger.debug(format_traceback(e))
        return False
