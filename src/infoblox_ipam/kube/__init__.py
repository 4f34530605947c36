"""
API server access for the provider.

Provides:
- ObjectClient interface and the kubernetes dynamic client implementation
- Watched object cache with field indexes
- Finalizer, owner reference, pause and condition helpers
- Merge patch helper
"""

from infoblox_ipam.kube.cache import ObjectCache
from infoblox_ipam.kube.client import (
    KubernetesObjectClient,
    ObjectClient,
    load_api_client,
)
from infoblox_ipam.kube.exceptions import (
    ConflictError,
    KubeError,
    NotFoundError,
    is_not_found,
)
from infoblox_ipam.kube.patch import PatchHelper, merge_patch

__all__ = [
    # Client
    "ObjectClient",
    "KubernetesObjectClient",
    "load_api_client",
    # Cache
    "ObjectCache",
    # Patching
    "PatchHelper",
    "merge_patch",
    # Exceptions
    "KubeError",
    "NotFoundError",
    "ConflictError",
    "is_not_found",
]
