"""Base handler class with common functionality for all CRD handlers."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import kopf

from .. import metrics
from ..constants import CONTROLLER_NAME, RECONCILE_INTERVAL, REQUEUE_DEFAULT
from ..logging import log_resource_event
from ..models import ObjectKey
from ..reconciler import KindLogic, Result, reconcile
from ..tracing import trace_span
from ..utils.context import with_correlation_id
from ..utils.errors import sanitize_exception
from ..utils.events import emit_reconcile_failed, emit_reconcile_started
from .shared import get_context

# At most one reconcile per object at a time, across handlers and timers.
_object_locks: dict[tuple[str, ObjectKey], threading.Lock] = {}
_object_locks_guard = threading.Lock()


def object_lock(kind: str, key: ObjectKey) -> threading.Lock:
    with _object_locks_guard:
        lock = _object_locks.get((kind, key))
        if lock is None:
            lock = _object_locks[(kind, key)] = threading.Lock()
        return lock


def forget_object_lock(kind: str, key: ObjectKey) -> None:
    with _object_locks_guard:
        _object_locks.pop((kind, key), None)


class BaseHandler:
    """Base class for all CRD handlers with common functionality."""

    def __init__(self, kind: str, timer_interval: float = RECONCILE_INTERVAL):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "Network", "Subnet")
            timer_interval: Interval of the kopf timer re-entering reconcile
        """
        self.kind = kind
        self.timer_interval = timer_interval
        self.logger = logging.getLogger(__name__)

    def log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        """Write one structured record about the object described by ``meta``."""
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=meta.get("name", "unknown"),
            namespace=meta.get("namespace", "default"),
            uid=meta.get("uid", "unknown"),
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception,
        reason: str = "Error",
    ) -> None:
        """Log ``error`` sanitized, with its type, at ERROR level."""
        self.log(
            logging.ERROR,
            meta,
            message,
            "error",
            reason,
            error=sanitize_exception(error),
            error_type=type(error).__name__,
        )

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        reconcile_fn: Callable[[], Result],
    ) -> Result:
        """Execute reconciliation with metrics and error handling.

        Unexpected exceptions are counted, logged sanitized, published as a
        ReconcileFailed event and re-raised for kopf to retry.
        """
        meta = body.get("metadata", {})
        emit_reconcile_started(body)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            result = reconcile_fn()
            outcome = "requeued" if result.requeue else "success"
            metrics.reconcile_total.labels(kind=self.kind, result=outcome).inc()
            return result
        except Exception as e:
            sanitized_error = sanitize_exception(e)
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

    def requeue(self, result: Result) -> None:
        """Turn a requeue result into the kopf retry signal.

        Requeues no shorter than the timer interval are left to the timer.
        """
        if result.requeue and result.requeue_after < self.timer_interval:
            raise kopf.TemporaryError(
                f"{self.kind} requeued after {result.requeue_after}s", delay=result.requeue_after
            )

    def run(self, body: dict[str, Any], reconcile_fn: Callable[[], Result]) -> None:
        """Run one reconcile for ``body`` under its object lock and a fresh correlation ID."""
        meta = body.get("metadata", {})
        key = ObjectKey(meta.get("namespace", "default"), meta.get("name", ""))

        # A busy object is retried later rather than parking a kopf worker on the lock.
        lock = object_lock(self.kind, key)
        if not lock.acquire(blocking=False):
            raise kopf.TemporaryError(
                f"{self.kind} {key.namespace}/{key.name} is already being reconciled", delay=REQUEUE_DEFAULT
            )

        try:
            with with_correlation_id():
                with trace_span(
                    f"reconcile_{self.kind.lower()}",
                    kind=self.kind,
                    attributes={"resource.name": key.name, "resource.namespace": key.namespace},
                ):
                    result = self.reconcile_with_metrics(body, reconcile_fn)
        finally:
            lock.release()

        self.requeue(result)


class ManagedResourceHandler(BaseHandler):
    """Handler for a managed kind, delegating to the generic reconciler."""

    def __init__(self, logic: KindLogic):
        super().__init__(logic.kind)
        self.logic = logic

    def handle(self, body: dict[str, Any]) -> None:
        meta = body.get("metadata", {})
        key = ObjectKey(meta.get("namespace", "default"), meta.get("name", ""))
        context = get_context()
        self.run(body, lambda: reconcile(context.store, context.providers, self.logic, key))

    def handle_delete(self, body: dict[str, Any]) -> None:
        meta = body.get("metadata", {})
        self.handle(body)
        forget_object_lock(self.kind, ObjectKey(meta.get("namespace", "default"), meta.get("name", "")))
