"""
Generic IPAddressClaim reconciler.

Owns the claim -> address lifecycle and leaves everything backend specific
to a ProviderAdapter:

    fetch claim
      -> add ReleaseAddress finalizer
      -> skip if claim or cluster is paused (missing cluster: wait)
      -> handler.fetch_pool()  (missing pool: wait, or clean up if deleting)
      -> skip if pool is paused
      -> deleting: handler.release_address(), then drop address and finalizer
      -> otherwise: handler.ensure_address(), create/patch the IPAddress
         and record it on the claim status

Claim metadata and status changes are written back at the end of every
reconcile, including failed ones.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from infoblox_ipam.ipamutil.address import (
    create_or_patch,
    ensure_address_owner_references,
    new_ip_address,
)
from infoblox_ipam.kube.client import ObjectClient
from infoblox_ipam.kube.exceptions import KubeError, NotFoundError
from infoblox_ipam.kube.meta import (
    CLUSTER_NAME_LABEL,
    add_finalizer,
    has_paused_annotation,
    is_cluster_paused,
    remove_finalizer,
)
from infoblox_ipam.kube.patch import PatchHelper
from infoblox_ipam.models.resources import (
    Cluster,
    IPAddress,
    IPAddressClaim,
    KubeObject,
    LocalObjectReference,
)
from infoblox_ipam.runtime.queue import Request, Result
from infoblox_ipam.utils.logger import get_logger

logger = get_logger(__name__)

# Released before the claim goes away
RELEASE_ADDRESS_FINALIZER = "ipam.cluster.x-k8s.io/ReleaseAddress"

# Keeps an IPAddress around while its claim exists
PROTECT_ADDRESS_FINALIZER = "ipam.cluster.x-k8s.io/ProtectAddress"


# =============================================================================
# Provider Interface
# =============================================================================


class ClaimHandler(ABC):
    """Backend specific work for one claim during one reconcile."""

    @abstractmethod
    def fetch_pool(self) -> Result | None:
        """
        Resolve the claim's pool and everything needed to talk to the backend.

        Raises:
            NotFoundError: The pool does not exist.
        """

    @abstractmethod
    def ensure_address(self, address: IPAddress) -> Result | None:
        """Allocate (or look up) the claim's address and fill in ``address``."""

    @abstractmethod
    def release_address(self) -> Result | None:
        """Release the claim's address in the backend."""

    @abstractmethod
    def get_pool(self) -> KubeObject | None:
        """The pool fetched by ``fetch_pool``."""


class ProviderAdapter(ABC):
    """Binds the generic reconciler to one IPAM backend."""

    @abstractmethod
    def claim_handler_for(
        self, client: ObjectClient, claim: IPAddressClaim
    ) -> ClaimHandler:
        """Return a fresh handler for ``claim``."""

    @abstractmethod
    def handles_claim(self, claim: IPAddressClaim) -> bool:
        """Whether the claim references a pool of this provider."""

    def handles_address(self, address: IPAddress) -> bool:
        """Whether the address belongs to a pool of this provider."""
        ref = address.spec.pool_ref
        claim = IPAddressClaim.model_validate({"spec": {"poolRef": ref.to_dict()}})
        return self.handles_claim(claim)


# =============================================================================
# Reconciler
# =============================================================================


class ClaimReconciler:
    """
    Reconciles IPAddressClaims through a ProviderAdapter.

    Args:
        client: API server client.
        adapter: Backend integration.
    """

    def __init__(self, client: ObjectClient, adapter: ProviderAdapter):
        self.client = client
        self.adapter = adapter

    def reconcile(self, request: Request) -> Result:
        try:
            claim = self.client.get(IPAddressClaim, request.name, request.namespace)
        except NotFoundError:
            logger.debug(f"Claim {request.key} is gone")
            return Result()

        helper = PatchHelper(claim, self.client)
        try:
            result = self._reconcile(claim)
        except Exception:
            try:
                helper.patch(claim)
            except KubeError as e:
                logger.error(f"Failed to patch claim {claim.key()}: {e}")
            raise

        helper.patch(claim)
        return result

    def _reconcile(self, claim: IPAddressClaim) -> Result:
        logger.debug(f"Reconciling claim {claim.key()}")

        if not claim.is_deleting():
            add_finalizer(claim, RELEASE_ADDRESS_FINALIZER)

        if has_paused_annotation(claim):
            logger.info(f"Claim {claim.key()} is paused, skipping reconciliation")
            return Result()

        cluster_name = claim.metadata.labels.get(CLUSTER_NAME_LABEL)
        if cluster_name:
            try:
                cluster = self.client.get(Cluster, cluster_name, claim.namespace)
            except NotFoundError:
                logger.info(
                    f"Claim {claim.key()} is linked to cluster {cluster_name} "
                    f"which was not found, skipping reconciliation"
                )
                return Result()
            if is_cluster_paused(cluster):
                logger.info(
                    f"Claim {claim.key()} is linked to paused cluster "
                    f"{cluster_name}, skipping reconciliation"
                )
                return Result()

        handler = self.adapter.claim_handler_for(self.client, claim)
        try:
            result = handler.fetch_pool()
        except NotFoundError as e:
            logger.warning(f"Pool of claim {claim.key()} could not be found: {e}")
            if claim.is_deleting():
                return self.reconcile_delete(claim)
            return Result()
        if result is not None:
            return result

        pool = handler.get_pool()
        if pool is not None and has_paused_annotation(pool):
            logger.info(
                f"Claim {claim.key()} references paused pool {pool.name}, "
                f"skipping reconciliation"
            )
            return Result()

        if claim.is_deleting():
            result = handler.release_address()
            if result is not None:
                return result
            return self.reconcile_delete(claim)

        try:
            address = self.client.get(IPAddress, claim.name, claim.namespace)
        except NotFoundError:
            address = new_ip_address(claim, pool)

        result = handler.ensure_address(address)
        if result is not None:
            return result

        def mutate(obj: IPAddress) -> None:
            ensure_address_owner_references(obj, claim, pool)
            add_finalizer(obj, PROTECT_ADDRESS_FINALIZER)

        operation = create_or_patch(self.client, address, mutate)
        logger.info(
            f"IPAddress {address.key()} ({address.spec.address}) has been "
            f"{operation.value} for claim {claim.key()}"
        )

        if address.is_deleting():
            # Recreating it could hand out a different address
            logger.info(
                f"IPAddress {address.key()} is marked for deletion, deletion "
                f"is held back until claim {claim.key()} is deleted"
            )

        claim.status.address_ref = LocalObjectReference(name=address.name)
        return Result()

    def reconcile_delete(self, claim: IPAddressClaim) -> Result:
        """Drop the claim's IPAddress, then let the claim go."""
        try:
            address = self.client.get(IPAddress, claim.name, claim.namespace)
        except NotFoundError:
            address = None

        if address is not None:
            try:
                if remove_finalizer(address, PROTECT_ADDRESS_FINALIZER):
                    address = self.client.update(address)
                self.client.delete(address)
                logger.info(f"Deleted IPAddress {address.key()}")
            except NotFoundError:
                pass

        remove_finalizer(claim, RELEASE_ADDRESS_FINALIZER)
        return Result()
