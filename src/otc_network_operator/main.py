"""Main entry point for the OTC Network Operator."""

from __future__ import annotations

import logging
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from . import tracing
from .constants import K8S_REQUEST_TIMEOUT, MAX_WORKERS, METRICS_PORT
from .handlers.shared import configure_context, get_context

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    # Set up structured JSON logging
    structured_logging.setup_structured_logging()
    tracing.initialize_tracing()

    # Configure persistence
    # Handler progress lives in annotations; status is owned by the reconciler.
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = K8S_REQUEST_TIMEOUT
    settings.execution.max_workers = MAX_WORKERS

    context = configure_context()

    # Start metrics HTTP server with health check endpoints
    health.start_metrics_server(METRICS_PORT, is_ready=lambda: not context.cancel.is_set())
    logger.info("Operator started, serving metrics on port %d", METRICS_PORT)


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Stop in-flight provider waits so workers can exit."""
    get_context().cancel.set()
    logger.info("Operator shutting down")
