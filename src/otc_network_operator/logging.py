"""Structured logging configuration for the OTC Network Operator."""

import json
import logging
import os
import sys
from typing import Any

from .utils.context import get_context_dict
from .utils.errors import sanitize_dict

# Libraries that log every HTTP request at INFO.
_NOISY_LOGGERS = ("keystoneauth", "openstack", "urllib3")


def setup_structured_logging() -> None:
    """Configure JSON-per-line logging on stdout.

    ``LOG_LEVEL`` sets the root level; the HTTP client libraries are held at
    WARNING unless the operator itself runs at DEBUG.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if level != "DEBUG":
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log one JSON record about a custom resource.

    Extra keyword fields (``external_id``, ``error``...) are redacted with
    :func:`sanitize_dict` before they are written.
    """
    record = {
        "controller": controller,
        "kind": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
    }
    record.update(get_context_dict())
    record.update(sanitize_dict(kwargs))
    logger.log(level, json.dumps(record, default=str))
