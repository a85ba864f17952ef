"""Utility functions for the OTC Network Operator."""

from .conditions import ConditionSet
from .context import get_context_dict, get_correlation_id, with_correlation_id
from .errors import sanitize_dict, sanitize_error_message, sanitize_exception
from .events import emit_event
from .rate_limit import rate_limit_k8s, rate_limit_otc
from .retry import MaxRetriesExceeded, RetryCancelled, retry
from .secrets import decode_secret_data, secret_version

__all__ = [
    "ConditionSet",
    "emit_event",
    "decode_secret_data",
    "secret_version",
    "rate_limit_k8s",
    "rate_limit_otc",
    "retry",
    "MaxRetriesExceeded",
    "RetryCancelled",
    "sanitize_error_message",
    "sanitize_exception",
    "sanitize_dict",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
]
