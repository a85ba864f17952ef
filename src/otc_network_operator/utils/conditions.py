"""Utilities for managing Kubernetes conditions.

Conditions are kept in an immutable :class:`ConditionSet`. Every helper in this
module takes a set and returns a new one, so two reconciles can never alias the
same list by accident.

Two independent axes are tracked: ``Synced`` (does the external resource match
the desired spec) and ``Ready`` (is the resource usable). The named composite
states below are shorthand for fixed combinations of the two, each with a
default reason and message that a call site may override.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator

from ..constants import (
    COND_DEPENDENCIES_READY,
    COND_READY,
    COND_SYNCED,
    REASON_CREATING,
    REASON_DELETED,
    REASON_DELETING,
    REASON_DELETION_BLOCKED,
    REASON_DEPENDENCIES_NOT_RESOLVED,
    REASON_DEPENDENCIES_RESOLVED,
    REASON_FAILED,
    REASON_ORPHANED,
    REASON_PROVIDER_CONFIG_NOT_READY,
    REASON_PROVIDER_CONFIG_READY,
    REASON_PROVISIONED,
    REASON_PROVISIONING,
    REASON_READY,
    REASON_RECONCILING,
    REASON_STOPPED,
    REASON_SYNCED,
    REASON_VALIDATION_FAILED,
    REASON_VALIDATION_SUCCESSFUL,
)


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Condition:
    """A single persisted condition."""

    type: str
    status: bool
    reason: str
    message: str
    observed_generation: int = 0
    last_transition_time: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "status": "True" if self.status else "False",
            "reason": self.reason,
            "message": self.message,
            "observedGeneration": self.observed_generation,
            "lastTransitionTime": self.last_transition_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Condition:
        return cls(
            type=data.get("type", ""),
            status=str(data.get("status", "False")).lower() == "true",
            reason=data.get("reason", ""),
            message=data.get("message", ""),
            observed_generation=int(data.get("observedGeneration") or 0),
            last_transition_time=data.get("lastTransitionTime", ""),
        )


class ConditionSet:
    """Ordered collection of conditions, at most one per type."""

    __slots__ = ("_items",)

    def __init__(self, conditions: Iterable[Condition] = ()):
        items: list[Condition] = []
        for cond in conditions:
            items = [c for c in items if c.type != cond.type] + [cond]
        self._items = tuple(items)

    @classmethod
    def from_list(cls, conditions: list[dict[str, Any]] | None) -> ConditionSet:
        return cls(Condition.from_dict(c) for c in conditions or [])

    def to_list(self) -> list[dict[str, Any]]:
        return [c.to_dict() for c in self._items]

    def get(self, condition_type: str) -> Condition | None:
        for cond in self._items:
            if cond.type == condition_type:
                return cond
        return None

    def is_true(self, condition_type: str) -> bool:
        cond = self.get(condition_type)
        return cond is not None and cond.status

    def upsert(
        self,
        condition_type: str,
        status: bool,
        reason: str,
        message: str,
        observed_generation: int,
        now: str | None = None,
    ) -> ConditionSet:
        """Return a copy with ``condition_type`` set.

        An existing entry keeps its position and its ``lastTransitionTime``
        unless its status flips. A new entry is appended.
        """
        timestamp = now or _now()
        existing = self.get(condition_type)

        if existing is None:
            new = Condition(condition_type, status, reason, message, observed_generation, timestamp)
            return ConditionSet(self._items + (new,))

        transition = timestamp if existing.status != status else existing.last_transition_time
        updated = replace(
            existing,
            status=status,
            reason=reason,
            message=message,
            observed_generation=observed_generation,
            last_transition_time=transition,
        )
        return ConditionSet(updated if c.type == condition_type else c for c in self._items)

    def __iter__(self) -> Iterator[Condition]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConditionSet):
            return NotImplemented
        return self._items == other._items

    def __repr__(self) -> str:
        return f"ConditionSet({list(self._items)!r})"


# Single-axis helpers


def set_synced(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    return conditions.upsert(
        COND_SYNCED,
        True,
        reason or REASON_SYNCED,
        message or "External resource matches desired state",
        generation,
    )


def set_not_synced(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    return conditions.upsert(
        COND_SYNCED,
        False,
        reason or REASON_RECONCILING,
        message or "Resource is being reconciled",
        generation,
    )


def set_ready(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    return conditions.upsert(
        COND_READY,
        True,
        reason or REASON_READY,
        message or "Resource is ready",
        generation,
    )


def set_not_ready(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    return conditions.upsert(
        COND_READY,
        False,
        reason or REASON_FAILED,
        message or "Resource is not ready",
        generation,
    )


# Composite states


def set_reconciliation_failed(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    """Mark both axes false, sharing one reason and message."""
    conditions = set_not_synced(conditions, generation, reason, message)
    return set_not_ready(conditions, generation, reason, message)


def set_synced_and_ready(conditions: ConditionSet, generation: int) -> ConditionSet:
    conditions = set_synced(conditions, generation)
    return set_ready(conditions, generation)


def set_creating(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    conditions = set_not_synced(
        conditions, generation, reason or REASON_CREATING, message or "Creating external resource"
    )
    return set_not_ready(
        conditions,
        generation,
        reason or REASON_CREATING,
        message or "Resource is being created and is not yet available",
    )


def set_provisioning(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    reason = reason or REASON_PROVISIONING
    message = message or "Resource is provisioning"
    conditions = set_not_synced(conditions, generation, reason, message)
    return set_not_ready(conditions, generation, reason, message)


def set_provisioned(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    """Mark a resource that became ready for the first time. Always Synced and Ready."""
    conditions = set_synced(
        conditions,
        generation,
        reason or REASON_PROVISIONED,
        message or "External resource has been successfully provisioned",
    )
    return set_ready(
        conditions, generation, reason or REASON_PROVISIONED, message or "Resource is ready for use"
    )


def set_updating(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    conditions = set_not_synced(
        conditions,
        generation,
        reason or REASON_RECONCILING,
        message or "Updating external resource to match desired state",
    )
    return set_not_ready(
        conditions, generation, reason or REASON_RECONCILING, message or "Resource is being updated"
    )


def set_stopped(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    reason = reason or REASON_STOPPED
    message = message or "Resource is stopped"
    conditions = set_not_synced(conditions, generation, reason, message)
    return set_not_ready(conditions, generation, reason, message)


def set_terminating(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    conditions = set_not_synced(
        conditions, generation, reason or REASON_DELETING, message or "Resource deletion is in progress"
    )
    return set_not_ready(
        conditions, generation, reason or REASON_DELETING, message or "Resource is being deleted"
    )


def set_deletion_blocked(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    """Mark deletion as blocked. Always Synced=False and Ready=False."""
    reason = reason or REASON_DELETION_BLOCKED
    message = message or "Resource deletion is blocked by dependencies"
    conditions = set_not_synced(conditions, generation, reason, message)
    return set_not_ready(conditions, generation, reason, message)


def set_deleted(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    conditions = set_synced(
        conditions,
        generation,
        reason or REASON_DELETED,
        message or "External resource has been successfully deleted",
    )
    return set_not_ready(
        conditions, generation, reason or REASON_DELETED, message or "Resource is terminated"
    )


def set_orphaned(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    reason = reason or REASON_ORPHANED
    conditions = set_synced(
        conditions,
        generation,
        reason,
        message or "External resource was preserved due to orphanOnDelete policy",
    )
    return set_not_ready(
        conditions, generation, reason, "Resource orphaned, no longer managed by operator"
    )


def set_validation_failed(
    conditions: ConditionSet,
    generation: int,
    reason: str | None = None,
    message: str | None = None,
) -> ConditionSet:
    return set_not_ready(conditions, generation, reason or REASON_VALIDATION_FAILED, message)


def set_validation_successful(conditions: ConditionSet, generation: int) -> ConditionSet:
    return set_ready(
        conditions,
        generation,
        REASON_VALIDATION_SUCCESSFUL,
        "Provider credentials and permissions are valid",
    )


# DependenciesReady axis


def set_dependencies_ready(conditions: ConditionSet, generation: int) -> ConditionSet:
    return conditions.upsert(
        COND_DEPENDENCIES_READY,
        True,
        REASON_DEPENDENCIES_RESOLVED,
        "All dependencies are ready",
        generation,
    )


def set_dependencies_not_ready(
    conditions: ConditionSet, generation: int, message: str
) -> ConditionSet:
    return conditions.upsert(
        COND_DEPENDENCIES_READY, False, REASON_DEPENDENCIES_NOT_RESOLVED, message, generation
    )


def set_provider_config_ready(conditions: ConditionSet, generation: int) -> ConditionSet:
    return conditions.upsert(
        COND_DEPENDENCIES_READY,
        True,
        REASON_PROVIDER_CONFIG_READY,
        "ProviderConfig is ready and available",
        generation,
    )


def set_provider_config_not_ready(
    conditions: ConditionSet, generation: int, message: str
) -> ConditionSet:
    return conditions.upsert(
        COND_DEPENDENCIES_READY, False, REASON_PROVIDER_CONFIG_NOT_READY, message, generation
    )
