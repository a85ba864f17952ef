"""Utilities for reading Kubernetes secrets."""

from __future__ import annotations

import base64
from typing import Any


def decode_secret_data(secret: Any) -> dict[str, str]:
    """Return the decoded ``data`` of a secret.

    Args:
        secret: V1Secret (or any object with a ``data`` mapping)

    Returns:
        Dictionary of decoded secret values
    """
    result = {}
    for key, value in (getattr(secret, "data", None) or {}).items():
        # Handle both string and bytes (different versions of kubernetes client)
        if isinstance(value, str):
            result[key] = base64.b64decode(value).decode("utf-8")
        else:
            result[key] = value.decode("utf-8")
    return result


def secret_version(secret: Any) -> str:
    """Return the resourceVersion of a secret, or an empty string."""
    metadata = getattr(secret, "metadata", None)
    if metadata is None:
        return ""
    return getattr(metadata, "resource_version", None) or ""
