"""
Patch helper: snapshot an object, mutate it freely, then write back only
the difference as JSON merge patches (main resource and status subresource).
"""

from __future__ import annotations

import copy
from typing import Any

from infoblox_ipam.kube.client import ObjectClient
from infoblox_ipam.kube.exceptions import NotFoundError
from infoblox_ipam.models.resources import KubeObject
from infoblox_ipam.utils.logger import get_logger

logger = get_logger(__name__)

# Server-owned metadata never sent back
_READONLY_METADATA = (
    "resourceVersion",
    "uid",
    "generation",
    "creationTimestamp",
    "deletionTimestamp",
    "managedFields",
)


def merge_patch(before: Any, after: Any) -> Any:
    """
    Compute an RFC 7386 merge patch turning ``before`` into ``after``.

    Returns ``None`` as "no change" only for the top level call; nested
    removed keys are encoded as explicit nulls.
    """
    if not isinstance(before, dict) or not isinstance(after, dict):
        return None if before == after else after
    patch: dict[str, Any] = {}
    for key in before.keys() - after.keys():
        patch[key] = None
    for key, value in after.items():
        if key not in before:
            patch[key] = value
            continue
        if isinstance(value, dict) and isinstance(before[key], dict):
            nested = merge_patch(before[key], value)
            if nested:
                patch[key] = nested
        elif before[key] != value:
            patch[key] = value
    return patch


def _split(obj: KubeObject) -> tuple[dict[str, Any], dict[str, Any]]:
    data = obj.to_dict()
    status = data.pop("status", {}) or {}
    metadata = data.get("metadata", {})
    for key in _READONLY_METADATA:
        metadata.pop(key, None)
    return data, status


class PatchHelper:
    """
    Record the state of an object and persist later modifications.

    Usage:
        helper = PatchHelper(claim, client)
        ... mutate claim ...
        helper.patch(claim)
    """

    def __init__(self, obj: KubeObject, client: ObjectClient):
        self.client = client
        self._before_body, self._before_status = _split(obj)
        self._before_body = copy.deepcopy(self._before_body)
        self._before_status = copy.deepcopy(self._before_status)

    def patch(self, obj: KubeObject) -> bool:
        """
        Write the changes made since construction; returns True if any.

        The status patch is skipped once the object is gone, which happens
        when the last finalizer of a deleting object was just removed.
        """
        body, status = _split(obj)

        body_patch = merge_patch(self._before_body, body)
        status_patch = merge_patch(self._before_status, status)

        if body_patch:
            logger.debug(f"Patching {obj.kind} {obj.key()}: {body_patch}")
            self.client.patch(obj, body_patch)
            self._before_body = copy.deepcopy(body)

        if status_patch:
            logger.debug(f"Patching {obj.kind} {obj.key()} status: {status_patch}")
            try:
                self.client.patch(obj, {"status": status_patch}, subresource="status")
            except NotFoundError:
                if not obj.is_deleting():
                    raise
            self._before_status = copy.deepcopy(status)

        return bool(body_patch or status_patch)
