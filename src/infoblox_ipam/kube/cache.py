"""
In-memory cache of watched objects with field indexes.

The manager feeds every watch event into the cache; reconcilers use the
registered indexes to answer reverse lookups (e.g. "which claims reference
this pool") without listing the whole kind.

Index layout:
    _indexes[(api_version, kind)][field][(namespace, value)] -> {object keys}
    _reverse[(api_version, kind)][field][object key] -> [index values]
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Any, Callable, TypeVar

from infoblox_ipam.models.resources import KubeObject, split_api_version

T = TypeVar("T", bound=KubeObject)

IndexFunc = Callable[[dict[str, Any]], list[str]]

ObjectKey = tuple[str, str]  # (namespace, name)


def _type_key(api_version: str, kind: str) -> tuple[str, str]:
    # Versions of the same kind share one store
    return split_api_version(api_version)[0], kind


def _object_key(obj: dict[str, Any]) -> ObjectKey:
    meta = obj.get("metadata", {})
    return meta.get("namespace") or "", meta.get("name", "")


class ObjectCache:
    """Thread-safe object store keyed by group/kind, namespace and name."""

    def __init__(self):
        self._objects: dict[tuple[str, str], dict[ObjectKey, dict[str, Any]]] = (
            defaultdict(dict)
        )
        self._index_funcs: dict[tuple[str, str], dict[str, IndexFunc]] = (
            defaultdict(dict)
        )
        self._indexes: dict[tuple[str, str], dict[str, dict[tuple, set]]] = (
            defaultdict(lambda: defaultdict(lambda: defaultdict(set)))
        )
        self._reverse: dict[tuple[str, str], dict[str, dict[ObjectKey, list]]] = (
            defaultdict(lambda: defaultdict(dict))
        )
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Index registration
    # -------------------------------------------------------------------------

    def add_index(
        self, resource: type[KubeObject], field: str, func: IndexFunc
    ) -> None:
        """Register an index; existing objects are indexed immediately."""
        tkey = _type_key(resource.API_VERSION, resource.KIND)
        with self._lock:
            if field in self._index_funcs[tkey]:
                raise ValueError(f"Index {field} already registered for {tkey}")
            self._index_funcs[tkey][field] = func
            for okey, obj in self._objects[tkey].items():
                self._index_object(tkey, field, func, okey, obj)

    def _index_object(self, tkey, field, func, okey, obj) -> None:
        values = func(obj)
        self._reverse[tkey][field][okey] = values
        for value in values:
            self._indexes[tkey][field][(okey[0], value)].add(okey)

    def _unindex_object(self, tkey, okey) -> None:
        for field in self._index_funcs[tkey]:
            for value in self._reverse[tkey][field].pop(okey, []):
                bucket = self._indexes[tkey][field].get((okey[0], value))
                if bucket is None:
                    continue
                bucket.discard(okey)
                if not bucket:
                    del self._indexes[tkey][field][(okey[0], value)]

    # -------------------------------------------------------------------------
    # Mutation (watch events)
    # -------------------------------------------------------------------------

    def upsert(self, obj: dict[str, Any]) -> None:
        tkey = _type_key(obj["apiVersion"], obj["kind"])
        okey = _object_key(obj)
        with self._lock:
            self._unindex_object(tkey, okey)
            self._objects[tkey][okey] = obj
            for field, func in self._index_funcs[tkey].items():
                self._index_object(tkey, field, func, okey, obj)

    def remove(self, obj: dict[str, Any]) -> None:
        tkey = _type_key(obj["apiVersion"], obj["kind"])
        okey = _object_key(obj)
        with self._lock:
            self._unindex_object(tkey, okey)
            self._objects[tkey].pop(okey, None)

    def replace_all(self, api_version: str, kind: str, objs: list[dict]) -> None:
        """
        Replace the content of one kind, e.g. after a relist.

        The new store and its indexes are built aside and swapped in at once,
        so readers see either the old or the new content, never a partial one.
        """
        tkey = _type_key(api_version, kind)
        objects = {_object_key(obj): obj for obj in objs}
        indexes: dict[str, dict[tuple, set]] = defaultdict(lambda: defaultdict(set))
        reverse: dict[str, dict[ObjectKey, list]] = defaultdict(dict)

        with self._lock:
            for field, func in self._index_funcs[tkey].items():
                for okey, obj in objects.items():
                    values = func(obj)
                    reverse[field][okey] = values
                    for value in values:
                        indexes[field][(okey[0], value)].add(okey)

            self._objects[tkey] = objects
            self._indexes[tkey] = indexes
            self._reverse[tkey] = reverse

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, resource: type[T], name: str, namespace: str | None = None) -> T | None:
        tkey = _type_key(resource.API_VERSION, resource.KIND)
        with self._lock:
            obj = self._objects[tkey].get((namespace or "", name))
        return resource.model_validate(obj) if obj is not None else None

    def list(self, resource: type[T], namespace: str | None = None) -> list[T]:
        tkey = _type_key(resource.API_VERSION, resource.KIND)
        with self._lock:
            objs = [
                obj
                for (ns, _), obj in self._objects[tkey].items()
                if namespace is None or ns == namespace
            ]
        return [resource.model_validate(obj) for obj in objs]

    def by_index(
        self,
        resource: type[T],
        field: str,
        value: str,
        namespace: str | None = None,
    ) -> list[T]:
        """
        Return objects whose index ``field`` produced ``value``.

        With a namespace this is a single bucket lookup; without one every
        namespace bucket for the value is merged.
        """
        tkey = _type_key(resource.API_VERSION, resource.KIND)
        with self._lock:
            if field not in self._index_funcs[tkey]:
                raise KeyError(f"Index {field} is not registered for {tkey}")
            buckets = self._indexes[tkey][field]
            if namespace is not None:
                keys = set(buckets.get((namespace, value), ()))
            else:
                keys = set()
                for (_, v), bucket in buckets.items():
                    if v == value:
                        keys |= bucket
            objs = [self._objects[tkey][k] for k in sorted(keys)]
        return [resource.model_validate(obj) for obj in objs]
