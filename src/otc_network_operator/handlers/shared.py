"""Shared state for handlers."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from functools import partial

from ..builders.provider import create_provider_from_config
from ..store import ObjectStore, get_k8s_store
from ..utils.cache import ProviderCache


@dataclass
class OperatorContext:
    """Process-wide collaborators handed to every reconcile."""

    store: ObjectStore
    providers: ProviderCache
    cancel: threading.Event = field(default_factory=threading.Event)


_context: OperatorContext | None = None
_context_lock = threading.Lock()


def configure_context(
    store: ObjectStore | None = None,
    providers: ProviderCache | None = None,
    cancel: threading.Event | None = None,
) -> OperatorContext:
    """Build the shared context, using the Kubernetes API unless a store is given."""
    global _context

    cancel = cancel or threading.Event()
    store = store or get_k8s_store()
    if providers is None:
        providers = ProviderCache(store, partial(_build_provider, store=store, cancel=cancel))

    with _context_lock:
        _context = OperatorContext(store=store, providers=providers, cancel=cancel)
        return _context


def get_context() -> OperatorContext:
    """Return the shared context, configuring it on first use."""
    with _context_lock:
        context = _context
    if context is None:
        context = configure_context()
    return context


def reset_context() -> None:
    global _context
    with _context_lock:
        _context = None


def _build_provider(provider_config: dict, store: ObjectStore, cancel: threading.Event):
    return create_provider_from_config(provider_config, store, cancel)
