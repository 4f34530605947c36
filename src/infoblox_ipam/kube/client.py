"""
API server client used by the reconcilers.

``ObjectClient`` defines the small set of verbs the provider needs, working
on wire dicts at the bottom and on the typed models in
``infoblox_ipam.models.resources`` on top. ``KubernetesObjectClient``
implements it with the kubernetes dynamic client so that custom resources
(claims, pools, owner chain objects) need no generated API classes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterator, TypeVar

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes import watch as k8s_watch
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import (
    ConflictError as ApiConflictError,
    DynamicApiError,
    NotFoundError as ApiNotFoundError,
    ResourceNotFoundError,
)

from infoblox_ipam.kube.exceptions import ConflictError, KubeError, NotFoundError
from infoblox_ipam.models.resources import KubeObject, Unstructured
from infoblox_ipam.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=KubeObject)

MERGE_PATCH = "application/merge-patch+json"


# =============================================================================
# Client Interface
# =============================================================================


class ObjectClient(ABC):
    """Verbs on API objects; raw methods speak wire dicts."""

    @abstractmethod
    def get_raw(
        self, api_version: str, kind: str, name: str, namespace: str | None = None
    ) -> dict[str, Any]:
        """Fetch one object. Raises NotFoundError."""

    @abstractmethod
    def list_raw(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """List objects of a kind."""

    @abstractmethod
    def create_raw(self, body: dict[str, Any]) -> dict[str, Any]:
        """Create an object. Raises ConflictError if it exists."""

    @abstractmethod
    def replace_raw(self, body: dict[str, Any]) -> dict[str, Any]:
        """Replace an object (metadata and spec)."""

    @abstractmethod
    def patch_raw(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: str | None,
        patch: dict[str, Any],
        subresource: str | None = None,
    ) -> dict[str, Any]:
        """Apply a JSON merge patch, optionally to a subresource."""

    @abstractmethod
    def delete_raw(
        self, api_version: str, kind: str, name: str, namespace: str | None = None
    ) -> None:
        """Delete an object. Raises NotFoundError."""

    # -------------------------------------------------------------------------
    # Typed helpers
    # -------------------------------------------------------------------------

    def get(self, resource: type[T], name: str, namespace: str | None = None) -> T:
        if not resource.NAMESPACED:
            namespace = None
        raw = self.get_raw(resource.API_VERSION, resource.KIND, name, namespace)
        return resource.model_validate(raw)

    def get_object(
        self, api_version: str, kind: str, name: str, namespace: str | None = None
    ) -> Unstructured:
        return Unstructured.model_validate(
            self.get_raw(api_version, kind, name, namespace)
        )

    def list(
        self,
        resource: type[T],
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[T]:
        items = self.list_raw(
            resource.API_VERSION, resource.KIND, namespace, label_selector
        )
        return [resource.model_validate(item) for item in items]

    def create(self, obj: T) -> T:
        return type(obj).model_validate(self.create_raw(obj.to_dict()))

    def update(self, obj: T) -> T:
        return type(obj).model_validate(self.replace_raw(obj.to_dict()))

    def patch(self, obj: T, patch: dict[str, Any], subresource: str | None = None) -> T:
        raw = self.patch_raw(
            obj.api_version, obj.kind, obj.name, obj.namespace, patch, subresource
        )
        return type(obj).model_validate(raw)

    def delete(self, obj: KubeObject) -> None:
        self.delete_raw(obj.api_version, obj.kind, obj.name, obj.namespace)


# =============================================================================
# Kubernetes Implementation
# =============================================================================


def load_api_client(kubeconfig: str = "") -> k8s_client.ApiClient:
    """Load in-cluster configuration, falling back to a kubeconfig file."""
    configuration = k8s_client.Configuration()
    try:
        k8s_config.load_incluster_config(client_configuration=configuration)
        logger.info("Using in-cluster configuration")
    except ConfigException:
        k8s_config.load_kube_config(
            config_file=kubeconfig or None, client_configuration=configuration
        )
        logger.info(f"Using kubeconfig {kubeconfig or '(default)'}")
    return k8s_client.ApiClient(configuration)


class KubernetesObjectClient(ObjectClient):
    """ObjectClient backed by the kubernetes dynamic client."""

    def __init__(self, api_client: k8s_client.ApiClient):
        self.dynamic = DynamicClient(api_client)

    def _resource(self, api_version: str, kind: str):
        try:
            return self.dynamic.resources.get(api_version=api_version, kind=kind)
        except ResourceNotFoundError as e:
            raise KubeError(f"API {api_version}/{kind} is not served: {e}") from e

    @staticmethod
    def _translate(e: DynamicApiError, kind: str, name: str, namespace: str | None):
        if isinstance(e, ApiNotFoundError):
            return NotFoundError(kind, name, namespace)
        if isinstance(e, ApiConflictError):
            return ConflictError(f"{kind} {name}: {e.summary()}")
        return KubeError(f"{kind} {name}: {e.summary()}", status_code=e.status)

    def get_raw(self, api_version, kind, name, namespace=None):
        resource = self._resource(api_version, kind)
        try:
            return resource.get(name=name, namespace=namespace).to_dict()
        except DynamicApiError as e:
            raise self._translate(e, kind, name, namespace) from e

    def list_raw(self, api_version, kind, namespace=None, label_selector=None):
        resource = self._resource(api_version, kind)
        try:
            result = resource.get(namespace=namespace, label_selector=label_selector)
        except DynamicApiError as e:
            raise self._translate(e, kind, "", namespace) from e
        items = result.to_dict().get("items", [])
        # List items come back without type information
        for item in items:
            item.setdefault("apiVersion", api_version)
            item.setdefault("kind", kind)
        return items

    def create_raw(self, body):
        meta = body.get("metadata", {})
        resource = self._resource(body["apiVersion"], body["kind"])
        try:
            return resource.create(body=body, namespace=meta.get("namespace")).to_dict()
        except DynamicApiError as e:
            raise self._translate(
                e, body["kind"], meta.get("name", ""), meta.get("namespace")
            ) from e

    def replace_raw(self, body):
        meta = body.get("metadata", {})
        resource = self._resource(body["apiVersion"], body["kind"])
        try:
            return resource.replace(
                body=body, namespace=meta.get("namespace")
            ).to_dict()
        except DynamicApiError as e:
            raise self._translate(
                e, body["kind"], meta.get("name", ""), meta.get("namespace")
            ) from e

    def patch_raw(self, api_version, kind, name, namespace, patch, subresource=None):
        resource = self._resource(api_version, kind)
        if subresource:
            resource = getattr(resource, subresource)
        try:
            return resource.patch(
                body=patch, name=name, namespace=namespace, content_type=MERGE_PATCH
            ).to_dict()
        except DynamicApiError as e:
            raise self._translate(e, kind, name, namespace) from e

    def delete_raw(self, api_version, kind, name, namespace=None):
        resource = self._resource(api_version, kind)
        try:
            resource.delete(name=name, namespace=namespace)
        except DynamicApiError as e:
            raise self._translate(e, kind, name, namespace) from e

    def watch_raw(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
        timeout_seconds: int = 300,
    ) -> Iterator[tuple[str, dict[str, Any]]]:
        """
        Stream (event type, object) pairs until the server closes the watch.

        Event types are ADDED, MODIFIED and DELETED.
        """
        resource = self._resource(api_version, kind)
        watcher = k8s_watch.Watch()
        try:
            for event in resource.watch(
                namespace=namespace,
                label_selector=label_selector,
                timeout=timeout_seconds,
                watcher=watcher,
            ):
                obj = event["raw_object"]
                obj.setdefault("apiVersion", api_version)
                obj.setdefault("kind", kind)
                yield event["type"], obj
        finally:
            watcher.stop()
