"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_CREATED,
    EVENT_REASON_DELETED,
    EVENT_REASON_DELETION_BLOCKED,
    EVENT_REASON_ORPHANED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_RECREATING,
    EVENT_REASON_UPDATED,
    EVENT_REASON_VALIDATE_FAILED,
    EVENT_REASON_VALIDATE_SUCCEEDED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event attached to ``body``.

    Args:
        body: The object the event is about (needs apiVersion, kind, metadata)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_validate_succeeded(body: dict[str, Any]) -> None:
    emit_event(body, EVENT_REASON_VALIDATE_SUCCEEDED, "Provider credentials validated")


def emit_validate_failed(body: dict[str, Any], message: str) -> None:
    emit_event(body, EVENT_REASON_VALIDATE_FAILED, message, type_="Warning")


def emit_created(body: dict[str, Any], kind: str, external_id: str) -> None:
    emit_event(body, EVENT_REASON_CREATED, f"{kind} {external_id} created")


def emit_updated(body: dict[str, Any], kind: str, external_id: str) -> None:
    emit_event(body, EVENT_REASON_UPDATED, f"{kind} {external_id} updated")


def emit_deleted(body: dict[str, Any], kind: str, external_id: str) -> None:
    emit_event(body, EVENT_REASON_DELETED, f"{kind} {external_id} deleted")


def emit_orphaned(body: dict[str, Any], message: str) -> None:
    emit_event(body, EVENT_REASON_ORPHANED, message)


def emit_deletion_blocked(body: dict[str, Any], message: str) -> None:
    emit_event(body, EVENT_REASON_DELETION_BLOCKED, message, type_="Warning")


def emit_recreating(body: dict[str, Any], external_id: str) -> None:
    emit_event(
        body,
        EVENT_REASON_RECREATING,
        f"External resource {external_id} disappeared and will be recreated",
        type_="Warning",
    )
