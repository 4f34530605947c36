"""
Metadata helpers: finalizers, owner references, pause markers and conditions.

All helpers mutate the passed object in place and report whether anything
changed, so callers can decide if a write is needed.
"""

from __future__ import annotations

from datetime import datetime, timezone

from infoblox_ipam.models.enums import (
    ConditionReason,
    ConditionSeverity,
    ConditionStatus,
    ConditionType,
)
from infoblox_ipam.models.resources import (
    Cluster,
    Condition,
    KubeObject,
    OwnerReference,
)

PAUSED_ANNOTATION = "cluster.x-k8s.io/paused"
CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
WATCH_FILTER_LABEL = "cluster.x-k8s.io/watch-filter"


# =============================================================================
# Finalizers
# =============================================================================


def has_finalizer(obj: KubeObject, finalizer: str) -> bool:
    return finalizer in obj.metadata.finalizers


def add_finalizer(obj: KubeObject, finalizer: str) -> bool:
    """Add a finalizer; returns True if it was missing."""
    if finalizer in obj.metadata.finalizers:
        return False
    obj.metadata.finalizers.append(finalizer)
    return True


def remove_finalizer(obj: KubeObject, finalizer: str) -> bool:
    """Remove a finalizer; returns True if it was present."""
    if finalizer not in obj.metadata.finalizers:
        return False
    obj.metadata.finalizers = [f for f in obj.metadata.finalizers if f != finalizer]
    return True


# =============================================================================
# Owner References
# =============================================================================


def owner_reference_for(
    owner: KubeObject, controller: bool = False
) -> OwnerReference:
    """Build an owner reference pointing at ``owner``."""
    return OwnerReference(
        api_version=owner.api_version,
        kind=owner.kind,
        name=owner.name,
        uid=owner.metadata.uid or "",
        controller=controller,
        block_owner_deletion=True,
    )


def _same_owner(a: OwnerReference, b: OwnerReference) -> bool:
    return a.group == b.group and a.kind == b.kind and a.name == b.name


def ensure_owner_reference(obj: KubeObject, ref: OwnerReference) -> bool:
    """
    Insert or update an owner reference, leaving unrelated references alone.

    A reference is considered the same when group, kind and name match; the
    version part of the apiVersion may differ.
    """
    refs = obj.metadata.owner_references
    for i, existing in enumerate(refs):
        if _same_owner(existing, ref):
            if existing.to_dict() == ref.to_dict():
                return False
            refs[i] = ref
            return True
    refs.append(ref)
    return True


def find_owner_reference(
    obj: KubeObject, group: str, kind: str
) -> OwnerReference | None:
    """Return the first owner reference with the given group and kind."""
    for ref in obj.metadata.owner_references:
        if ref.kind == kind and ref.group == group:
            return ref
    return None


# =============================================================================
# Pause Markers
# =============================================================================


def has_paused_annotation(obj: KubeObject) -> bool:
    return PAUSED_ANNOTATION in obj.metadata.annotations


def is_cluster_paused(cluster: Cluster) -> bool:
    return cluster.spec.paused or has_paused_annotation(cluster)


def matches_watch_filter(obj: KubeObject, watch_filter: str) -> bool:
    """Objects pass when no filter is set or their label equals it."""
    if not watch_filter:
        return True
    return obj.metadata.labels.get(WATCH_FILTER_LABEL) == watch_filter


# =============================================================================
# Conditions
# =============================================================================


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def get_condition(obj: KubeObject, type_: str) -> Condition | None:
    for condition in obj.status.conditions:
        if condition.type == type_:
            return condition
    return None


def set_condition(obj: KubeObject, condition: Condition) -> None:
    """
    Set a condition on ``obj.status.conditions``.

    The transition time only moves when the status flips.
    """
    conditions = obj.status.conditions
    for i, existing in enumerate(conditions):
        if existing.type != condition.type:
            continue
        if existing.status == condition.status:
            condition.last_transition_time = existing.last_transition_time
        else:
            condition.last_transition_time = _now()
        conditions[i] = condition
        return
    condition.last_transition_time = _now()
    conditions.append(condition)


def mark_true(
    obj: KubeObject,
    type_: ConditionType = ConditionType.READY,
    reason: ConditionReason | str = "",
    message: str = "",
) -> None:
    set_condition(
        obj,
        Condition(
            type=type_.value,
            status=ConditionStatus.TRUE.value,
            reason=getattr(reason, "value", reason),
            message=message,
        ),
    )


def mark_false(
    obj: KubeObject,
    reason: ConditionReason,
    message: str,
    type_: ConditionType = ConditionType.READY,
    severity: ConditionSeverity = ConditionSeverity.ERROR,
) -> None:
    set_condition(
        obj,
        Condition(
            type=type_.value,
            status=ConditionStatus.FALSE.value,
            reason=reason.value,
            message=message,
            severity=severity.value,
        ),
    )
