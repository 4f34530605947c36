"""
Pydantic models for the declarative objects handled by the provider.

The models mirror the Kubernetes wire format (camelCase keys) while exposing
snake_case attributes. Unknown keys are preserved so that an object read
from the API server can be written back without losing fields this provider
does not know about.

Object Categories:
    - Metadata: ObjectMeta, OwnerReference, Condition
    - Cluster API IPAM: IPAddressClaim, IPAddress
    - Infoblox: InfobloxIPPool, InfobloxInstance
    - Collaborators: Cluster, Secret, Unstructured (owner chain objects)
"""

from __future__ import annotations

import base64
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# API Groups
# =============================================================================

IPAM_GROUP = "ipam.cluster.x-k8s.io"
CLUSTER_GROUP = "cluster.x-k8s.io"
INFRASTRUCTURE_GROUP = "infrastructure.cluster.x-k8s.io"

IPAM_API_VERSION = f"{IPAM_GROUP}/v1beta1"
INFOBLOX_API_VERSION = f"{IPAM_GROUP}/v1alpha1"
CLUSTER_API_VERSION = f"{CLUSTER_GROUP}/v1beta1"

POOL_KIND = "InfobloxIPPool"


def split_api_version(api_version: str) -> tuple[str, str]:
    """Split ``group/version`` into its parts; the core group is ``""``."""
    if "/" in api_version:
        group, version = api_version.split("/", 1)
        return group, version
    return "", api_version


# =============================================================================
# Base Models
# =============================================================================


class KubeModel(BaseModel):
    """Base for all wire models: camelCase aliases, unknown keys kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the Kubernetes wire format."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class OwnerReference(KubeModel):
    api_version: str
    kind: str
    name: str
    uid: str = ""
    controller: bool | None = None
    block_owner_deletion: bool | None = None

    @property
    def group(self) -> str:
        return split_api_version(self.api_version)[0]


class ObjectMeta(KubeModel):
    name: str = ""
    namespace: str | None = None
    uid: str | None = None
    resource_version: str | None = None
    generation: int | None = None
    creation_timestamp: str | None = None
    deletion_timestamp: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list)
    owner_references: list[OwnerReference] = Field(default_factory=list)


class Condition(KubeModel):
    type: str
    status: str
    reason: str = ""
    message: str = ""
    severity: str | None = None
    last_transition_time: str | None = None


class LocalObjectReference(KubeModel):
    name: str = ""


class IPPoolReference(KubeModel):
    api_group: str = ""
    kind: str = ""
    name: str = ""


class KubeObject(KubeModel):
    """
    A top-level API object.

    Subclasses pin ``API_VERSION`` and ``KIND``; the instance fields default
    to them so that freshly constructed objects serialize correctly.
    """

    API_VERSION: ClassVar[str] = ""
    KIND: ClassVar[str] = ""
    NAMESPACED: ClassVar[bool] = True

    api_version: str = ""
    kind: str = ""
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)

    def model_post_init(self, __context: Any) -> None:
        if not self.api_version:
            self.api_version = self.API_VERSION
        if not self.kind:
            self.kind = self.KIND

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str | None:
        return self.metadata.namespace

    @property
    def group(self) -> str:
        return split_api_version(self.api_version)[0]

    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def key(self) -> str:
        if self.metadata.namespace:
            return f"{self.metadata.namespace}/{self.metadata.name}"
        return self.metadata.name


# =============================================================================
# Cluster API IPAM Objects
# =============================================================================


class IPAddressClaimSpec(KubeModel):
    pool_ref: IPPoolReference = Field(default_factory=IPPoolReference)


class IPAddressClaimStatus(KubeModel):
    address_ref: LocalObjectReference | None = None
    conditions: list[Condition] = Field(default_factory=list)


class IPAddressClaim(KubeObject):
    """Request for exactly one address from a pool."""

    API_VERSION: ClassVar[str] = IPAM_API_VERSION
    KIND: ClassVar[str] = "IPAddressClaim"

    spec: IPAddressClaimSpec = Field(default_factory=IPAddressClaimSpec)
    status: IPAddressClaimStatus = Field(default_factory=IPAddressClaimStatus)


class IPAddressSpec(KubeModel):
    claim_ref: LocalObjectReference = Field(default_factory=LocalObjectReference)
    pool_ref: IPPoolReference = Field(default_factory=IPPoolReference)
    address: str = ""
    prefix: int | None = None
    gateway: str = ""


class IPAddress(KubeObject):
    """Bound result of a claim; shares the claim's name."""

    API_VERSION: ClassVar[str] = IPAM_API_VERSION
    KIND: ClassVar[str] = "IPAddress"

    spec: IPAddressSpec = Field(default_factory=IPAddressSpec)


# =============================================================================
# Infoblox Objects
# =============================================================================


class Subnet(KubeModel):
    cidr: str
    gateway: str = ""


class InfobloxIPPoolSpec(KubeModel):
    instance_ref: LocalObjectReference = Field(
        default_factory=LocalObjectReference, alias="instance"
    )
    subnets: list[Subnet] = Field(default_factory=list)
    network_view: str = ""
    dns_view: str = Field(default="", alias="dnsView")
    dns_zone: str = ""


class InfobloxIPPoolStatus(KubeModel):
    conditions: list[Condition] = Field(default_factory=list)


class InfobloxIPPool(KubeObject):
    """Subnets, views and instance eligible for allocation."""

    API_VERSION: ClassVar[str] = INFOBLOX_API_VERSION
    KIND: ClassVar[str] = POOL_KIND

    spec: InfobloxIPPoolSpec = Field(default_factory=InfobloxIPPoolSpec)
    status: InfobloxIPPoolStatus = Field(default_factory=InfobloxIPPoolStatus)


class InfobloxInstanceSpec(KubeModel):
    host: str = ""
    port: str = "443"
    wapi_version: str = ""
    credentials_secret_ref: LocalObjectReference = Field(
        default_factory=LocalObjectReference
    )
    default_network_view: str = ""
    default_dns_view: str = Field(default="", alias="defaultDNSView")
    disable_tls_verification: bool = Field(
        default=False, alias="disableTLSVerification"
    )
    custom_ca_path: str = Field(default="", alias="customCAPath")


class InfobloxInstanceStatus(KubeModel):
    conditions: list[Condition] = Field(default_factory=list)


class InfobloxInstance(KubeObject):
    """Connection profile of one Infoblox grid master (cluster scoped)."""

    API_VERSION: ClassVar[str] = INFOBLOX_API_VERSION
    KIND: ClassVar[str] = "InfobloxInstance"
    NAMESPACED: ClassVar[bool] = False

    spec: InfobloxInstanceSpec = Field(default_factory=InfobloxInstanceSpec)
    status: InfobloxInstanceStatus = Field(default_factory=InfobloxInstanceStatus)


# =============================================================================
# Collaborator Objects
# =============================================================================


class ClusterSpec(KubeModel):
    paused: bool = False


class Cluster(KubeObject):
    API_VERSION: ClassVar[str] = CLUSTER_API_VERSION
    KIND: ClassVar[str] = "Cluster"

    spec: ClusterSpec = Field(default_factory=ClusterSpec)


class Secret(KubeObject):
    API_VERSION: ClassVar[str] = "v1"
    KIND: ClassVar[str] = "Secret"

    data: dict[str, str] = Field(default_factory=dict)

    def decoded_data(self) -> dict[str, bytes]:
        """Return the secret values base64-decoded."""
        return {key: base64.b64decode(value) for key, value in self.data.items()}


class Unstructured(KubeObject):
    """Any object whose schema is irrelevant here, e.g. owner chain hops."""
