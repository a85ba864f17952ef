"""Error sanitization utilities to prevent credential leakage."""

import re
from typing import Any

# Patterns whose captured value must never reach logs, events or conditions
SENSITIVE_PATTERNS = [
    r"(x-auth-token[\"']?[:=\s]+[\"']?)([A-Za-z0-9\-_\.=+/]+)",
    r"(x-subject-token[\"']?[:=\s]+[\"']?)([A-Za-z0-9\-_\.=+/]+)",
    r"(access[_\s]?key[\"']?[:=\s]+[\"']?)([A-Za-z0-9]{16,})",
    r"(secret[_\s]?key[\"']?[:=\s]+[\"']?)([A-Za-z0-9/+=]{16,})",
    r"(password[\"']?[:=\s]+[\"']?)([^\s,;\)\"']+)",
    r"(token[\"']?[:=\s]+[\"']?)([A-Za-z0-9\-_\.=+/]{16,})",
]

# Dictionary keys whose values are redacted completely
SENSITIVE_FIELDS = {
    "password",
    "secret",
    "secretkey",
    "secret_key",
    "accesskey",
    "access_key",
    "token",
    "credentials",
}


def sanitize_error_message(message: str) -> str:
    """Redact credentials from an error message.

    Args:
        message: Original error message

    Returns:
        Message with credential values replaced by ``[REDACTED]``
    """
    sanitized = message
    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1[REDACTED]", sanitized, flags=re.IGNORECASE)
    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Return the sanitized string form of an exception."""
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive values redacted, recursively."""
    all_sensitive = SENSITIVE_FIELDS | {k.lower() for k in sensitive_keys or set()}
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        if key.lower() in all_sensitive:
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
