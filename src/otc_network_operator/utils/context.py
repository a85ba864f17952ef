"""Correlation IDs and trace context shared by every log record of one reconcile."""

from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace

correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def get_correlation_id() -> str | None:
    return correlation_id.get()


@contextmanager
def with_correlation_id(corr_id: str | None = None) -> Iterator[str]:
    """Set a correlation ID (a fresh one by default) for the duration of a block."""
    corr_id = corr_id or uuid.uuid4().hex[:16]
    token = correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        correlation_id.reset(token)


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return the fields that tie a log record to its reconcile and span.

    Args:
        additional: Extra fields merged in last

    Returns:
        ``correlation_id`` when one is set, ``trace_id``/``span_id`` inside a
        valid span, plus ``additional``
    """
    ctx: dict[str, Any] = {}

    corr_id = get_correlation_id()
    if corr_id:
        ctx["correlation_id"] = corr_id

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        ctx["trace_id"] = format(span_context.trace_id, "032x")
        ctx["span_id"] = format(span_context.span_id, "016x")

    if additional:
        ctx.update(additional)

    return ctx
