"""
Hostname resolution strategies.

A claim is usually created on behalf of a machine, several owner references
away. The resolvers walk that graph to find the machine and use its name as
the hostname:

- OwnerChainResolver follows a fixed list of group/kind hops.
- SearchOwnerReferenceResolver searches the graph for one group/kind,
  bounded by depth.

Neither caches anything; the graph is read fresh on every call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from infoblox_ipam.exceptions import HostnameResolutionError
from infoblox_ipam.kube.client import ObjectClient
from infoblox_ipam.kube.exceptions import KubeError
from infoblox_ipam.kube.meta import find_owner_reference
from infoblox_ipam.models.resources import (
    CLUSTER_GROUP,
    INFRASTRUCTURE_GROUP,
    IPAddressClaim,
    KubeObject,
    OwnerReference,
)
from infoblox_ipam.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 5


@dataclass(frozen=True)
class GroupKind:
    group: str
    kind: str

    def __str__(self) -> str:
        return f"{self.kind}.{self.group}"


MACHINE = GroupKind(CLUSTER_GROUP, "Machine")

METAL3_CHAIN = [
    GroupKind(INFRASTRUCTURE_GROUP, "Metal3Data"),
    GroupKind(INFRASTRUCTURE_GROUP, "Metal3Machine"),
    MACHINE,
]

VSPHERE_CHAIN = [
    GroupKind(INFRASTRUCTURE_GROUP, "VSphereVM"),
    GroupKind(INFRASTRUCTURE_GROUP, "VSphereMachine"),
    MACHINE,
]


class Resolver(ABC):
    """Derives the hostname for a claim."""

    @abstractmethod
    def get_hostname(self, claim: IPAddressClaim) -> str:
        """
        Raises:
            HostnameResolutionError: If no hostname can be derived.
        """


# =============================================================================
# Owner Chain
# =============================================================================


class OwnerChainResolver(Resolver):
    """
    Follow an ordered chain of owner references.

    Starting at the claim, each hop must be an owner reference with the given
    group and kind; the object it points to is fetched and becomes the
    current object. The name of the last hop's reference is the hostname.
    """

    def __init__(self, client: ObjectClient, chain: list[GroupKind]):
        if not chain:
            raise ValueError("owner chain must not be empty")
        self.client = client
        self.chain = chain

    def get_hostname(self, claim: IPAddressClaim) -> str:
        obj: KubeObject = claim
        namespace = claim.namespace
        last = len(self.chain) - 1

        for i, hop in enumerate(self.chain):
            ref = find_owner_reference(obj, hop.group, hop.kind)
            if ref is None:
                raise HostnameResolutionError(
                    f"failed to find next owner in chain: {obj.kind} {obj.name} "
                    f"has no owner reference of kind {hop}"
                )
            if i == last:
                return ref.name

            try:
                obj = self.client.get_object(ref.api_version, ref.kind, ref.name, namespace)
            except KubeError as e:
                raise HostnameResolutionError(
                    f"failed to fetch next owner in chain {ref.kind} {ref.name}: {e}"
                ) from e

        # Unreachable, the loop always returns at the last hop
        raise HostnameResolutionError("failed to follow owner chain")


# =============================================================================
# Owner Reference Search
# =============================================================================


def _candidate_rank(ref: OwnerReference) -> int:
    # Machines first, then infrastructure providers, then everything else
    if "Machine" in ref.kind:
        return 0
    if ref.api_version.startswith("infrastructure"):
        return 1
    return 2


class SearchOwnerReferenceResolver(Resolver):
    """
    Search the owner graph for a reference of one group and kind.

    The search goes level by level, checking every reference of a level
    before fetching the next one; within a level promising owners are
    fetched first to save API requests. The claim is at depth 1 and objects
    beyond ``max_depth`` are not fetched.
    """

    def __init__(
        self,
        client: ObjectClient,
        search_for: GroupKind,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.client = client
        self.search_for = search_for
        self.max_depth = max_depth or DEFAULT_MAX_DEPTH

    def get_hostname(self, claim: IPAddressClaim) -> str:
        namespace = claim.namespace
        level: list[KubeObject] = [claim]
        seen: set[tuple[str, str, str]] = set()

        for depth in range(1, self.max_depth + 1):
            candidates: list[OwnerReference] = []
            for obj in level:
                for ref in obj.metadata.owner_references:
                    if (
                        ref.kind == self.search_for.kind
                        and ref.group == self.search_for.group
                    ):
                        return ref.name
                    if (ref.group, ref.kind, ref.name) not in seen:
                        seen.add((ref.group, ref.kind, ref.name))
                        candidates.append(ref)

            if depth == self.max_depth or not candidates:
                break

            level = []
            for ref in sorted(candidates, key=_candidate_rank):
                logger.debug(f"Searching owners of {ref.kind} {ref.name} (depth {depth})")
                level.append(self._fetch(ref, namespace))

        raise HostnameResolutionError(
            f"failed to find owner reference of kind {self.search_for} "
            f"within depth {self.max_depth}"
        )

    def _fetch(self, ref: OwnerReference, namespace: str | None) -> KubeObject:
        try:
            return self.client.get_object(ref.api_version, ref.kind, ref.name, namespace)
        except KubeError as e:
            raise HostnameResolutionError(
                f"failed to fetch owner {ref.kind} {ref.name}: {e}"
            ) from e


# =============================================================================
# Strategy Selection
# =============================================================================


def resolver_for(client: ObjectClient, claim: IPAddressClaim) -> Resolver:
    """
    Pick a strategy from the kind of the claim's owner.

    Metal3 and vSphere claims have a known chain; any other owner is searched
    for a Machine.
    """
    owners = claim.metadata.owner_references
    if not owners:
        raise HostnameResolutionError(
            f"claim {claim.key()} has no owner references to derive a hostname from"
        )

    kinds = {ref.kind for ref in owners}
    if "Metal3Data" in kinds:
        return OwnerChainResolver(client, METAL3_CHAIN)
    if "VSphereVM" in kinds:
        return OwnerChainResolver(client, VSPHERE_CHAIN)
    return SearchOwnerReferenceResolver(client, MACHINE)
