"""
Infoblox integration for the generic claim reconciler.

InfobloxProviderAdapter selects the claims that reference an InfobloxIPPool
and hands out one InfobloxClaimHandler per claim and reconcile. The handler
resolves pool, instance and credentials, derives the hostname and walks the
pool's subnets in order:

- allocation stops at the first subnet that yields an address
- release is attempted on every subnet; "not found" counts as released

The hostname is stored on the claim (``ipam.cluster.x-k8s.io/hostname``)
after the first successful allocation, because the owner objects it is
derived from may already be gone when the claim is deleted.
"""

from __future__ import annotations

import ipaddress
from typing import Callable

from infoblox_ipam.controllers.util import determine_dns_view, get_client_for_instance
from infoblox_ipam.exceptions import (
    AddressAllocationFailedError,
    AddressReleaseFailedError,
    AllocationInconsistentError,
    ConfigurationError,
    HostnameResolutionError,
    InstanceUnavailableError,
)
from infoblox_ipam.hostname import Resolver, resolver_for
from infoblox_ipam.infoblox import (
    ClientManager,
    InfobloxClient,
    InfobloxError,
    InfobloxNotFoundError,
)
from infoblox_ipam.ipamutil.reconciler import ClaimHandler, ProviderAdapter
from infoblox_ipam.kube.client import ObjectClient
from infoblox_ipam.kube.meta import mark_false, mark_true
from infoblox_ipam.models.enums import ConditionReason
from infoblox_ipam.models.resources import (
    IPAM_GROUP,
    POOL_KIND,
    InfobloxIPPool,
    IPAddress,
    IPAddressClaim,
    Subnet,
)
from infoblox_ipam.runtime.queue import Result
from infoblox_ipam.utils.logger import get_logger

logger = get_logger(__name__)

HOSTNAME_ANNOTATION = "ipam.cluster.x-k8s.io/hostname"

ResolverFactory = Callable[[ObjectClient, IPAddressClaim], Resolver]

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


class InfobloxProviderAdapter(ProviderAdapter):
    """
    Provider adapter for InfobloxIPPools.

    Args:
        clients: Registry of WAPI clients, shared with the pool controller.
        operator_namespace: Namespace of the instance credential secrets.
        resolver_factory: Picks the hostname strategy for a claim.
    """

    def __init__(
        self,
        clients: ClientManager,
        operator_namespace: str,
        resolver_factory: ResolverFactory = resolver_for,
    ):
        self.clients = clients
        self.operator_namespace = operator_namespace
        self.resolver_factory = resolver_factory

    def claim_handler_for(
        self, client: ObjectClient, claim: IPAddressClaim
    ) -> InfobloxClaimHandler:
        return InfobloxClaimHandler(
            client,
            claim,
            clients=self.clients,
            operator_namespace=self.operator_namespace,
            resolver_factory=self.resolver_factory,
        )

    def handles_claim(self, claim: IPAddressClaim) -> bool:
        ref = claim.spec.pool_ref
        return ref.kind == POOL_KIND and ref.api_group == IPAM_GROUP


class InfobloxClaimHandler(ClaimHandler):
    """Allocates and releases the address of one claim."""

    def __init__(
        self,
        client: ObjectClient,
        claim: IPAddressClaim,
        clients: ClientManager,
        operator_namespace: str,
        resolver_factory: ResolverFactory = resolver_for,
    ):
        self.client = client
        self.claim = claim
        self.clients = clients
        self.operator_namespace = operator_namespace
        self.resolver_factory = resolver_factory

        self.pool: InfobloxIPPool | None = None
        self.ibclient: InfobloxClient | None = None

    # -------------------------------------------------------------------------
    # ClaimHandler
    # -------------------------------------------------------------------------

    def fetch_pool(self) -> Result | None:
        # NotFoundError for the pool itself is handled by the reconciler
        self.pool = self.client.get(
            InfobloxIPPool, self.claim.spec.pool_ref.name, self.claim.namespace
        )

        instance = self.pool.spec.instance_ref.name
        try:
            self.ibclient = get_client_for_instance(
                self.client, self.clients, instance, self.operator_namespace
            )
        except InstanceUnavailableError as e:
            mark_false(
                self.claim,
                ConditionReason.INSTANCE_UNAVAILABLE,
                f"Infoblox instance {instance} is not available: {e.reason}",
            )
            raise
        except ConfigurationError as e:
            mark_false(
                self.claim,
                ConditionReason.AUTHENTICATION_FAILED,
                f"failed to get Infoblox client for instance {instance}: {e}",
            )
            raise
        return None

    def ensure_address(self, address: IPAddress) -> Result | None:
        hostname = self._hostname()
        network_view, dns_view = self._views()
        zone = self.pool.spec.dns_zone

        last_error: Exception | None = None
        for sub in self.pool.spec.subnets:
            subnet = _parse_subnet(sub)
            if subnet is None:
                last_error = ConfigurationError(f"invalid subnet {sub.cidr}")
                continue

            try:
                addr = self.ibclient.get_or_allocate_address(
                    network_view, dns_view, subnet, hostname, zone
                )
            except (InfobloxError, AllocationInconsistentError) as e:
                logger.warning(
                    f"Failed to allocate address for {hostname} in {subnet}: {e}"
                )
                last_error = e
                continue

            address.spec.address = str(addr)
            address.spec.prefix = subnet.prefixlen
            address.spec.gateway = sub.gateway

            self.claim.metadata.annotations[HOSTNAME_ANNOTATION] = hostname
            mark_true(self.claim)
            return None

        mark_false(
            self.claim,
            ConditionReason.ADDRESS_ALLOCATION_FAILED,
            f"could not allocate address: {last_error or 'pool has no subnets'}",
        )
        raise AddressAllocationFailedError(self.pool.name, last_error)

    def release_address(self) -> Result | None:
        hostname = self._hostname_for_release()
        if hostname is None:
            return None
        network_view, dns_view = self._views()

        last_error: Exception | None = None
        for sub in self.pool.spec.subnets:
            subnet = _parse_subnet(sub)
            if subnet is None:
                continue

            try:
                self.ibclient.release_address(network_view, dns_view, subnet, hostname)
            except InfobloxNotFoundError:
                continue
            except InfobloxError as e:
                logger.error(
                    f"Failed to release address for {hostname} in {subnet}: {e}"
                )
                last_error = e
                continue
            logger.info(f"Released address for {hostname} in {subnet}")

        if last_error is not None:
            raise AddressReleaseFailedError(self.pool.name, last_error)
        return None

    def get_pool(self) -> InfobloxIPPool | None:
        return self.pool

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _views(self) -> tuple[str, str]:
        host_config = self.ibclient.host_config
        network_view = self.pool.spec.network_view or host_config.default_network_view
        dns_view = determine_dns_view(
            self.pool.spec.dns_view, host_config.default_dns_view, network_view
        )
        return network_view, dns_view

    def _hostname(self) -> str:
        hostname = self.claim.metadata.annotations.get(HOSTNAME_ANNOTATION)
        if hostname:
            return hostname

        zone = self.pool.spec.dns_zone
        if not zone:
            return self.claim.name

        resolver = self.resolver_factory(self.client, self.claim)
        return f"{resolver.get_hostname(self.claim)}.{zone}"

    def _hostname_for_release(self) -> str | None:
        try:
            return self._hostname()
        except HostnameResolutionError as e:
            logger.warning(
                f"Claim {self.claim.key()} has no stored hostname and it cannot "
                f"be resolved anymore, skipping release: {e}"
            )
            return None


def _parse_subnet(sub: Subnet) -> Network | None:
    try:
        return ipaddress.ip_network(sub.cidr, strict=False)
    except ValueError as e:
        # Admission validation should have rejected this
        logger.error(f"Failed to parse subnet {sub.cidr}: {e}")
        return None
