"""Cache of authenticated provider clients keyed by ProviderConfig."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from kubernetes.client.exceptions import ApiException

from .. import metrics
from ..constants import KIND_PROVIDER_CONFIG
from ..exceptions import ProviderConfigNotFoundError
from ..models import ObjectKey, ProviderConfigReference
from ..services.otc.base import OTCProvider
from ..store import ObjectStore
from .secrets import secret_version

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[dict[str, Any]], OTCProvider]


@dataclass
class CacheEntry:
    provider: OTCProvider
    config_generation: int
    secret_version: str


class ProviderCache:
    """Concurrency-safe cache of provider clients.

    An entry is reused only while both the ProviderConfig generation and the
    credentials secret resourceVersion it was built from are unchanged.

    A plain Lock stands in for a reader/writer lock. It guards only the dict
    reads and writes and is never held while a provider is being built, so
    cache hits contend for it only briefly.
    """

    def __init__(self, store: ObjectStore, factory: ProviderFactory):
        """Initialize the cache.

        Args:
            store: Object store used to read ProviderConfigs and secrets
            factory: Builds a new provider from a ProviderConfig object
        """
        self.store = store
        self.factory = factory
        self._lock = threading.Lock()
        self._entries: dict[ObjectKey, CacheEntry] = {}

    def get_or_create(
        self, ref: ProviderConfigReference, namespace: str
    ) -> tuple[OTCProvider, dict[str, Any]]:
        """Return a provider for ``ref`` together with the ProviderConfig it was built from.

        Raises:
            ProviderConfigNotFoundError: If the ProviderConfig does not exist
            Exception: Whatever the factory raises; failures are not cached
        """
        key = ref.key(namespace)

        provider_config = self.store.get(KIND_PROVIDER_CONFIG, key.namespace, key.name)
        if provider_config is None:
            with self._lock:
                self._entries.pop(key, None)
            raise ProviderConfigNotFoundError(key.name, key.namespace)

        generation = int(provider_config.get("metadata", {}).get("generation") or 0)
        current_secret_version = self._secret_version(provider_config)

        with self._lock:
            entry = self._entries.get(key)

        if (
            entry is not None
            and entry.config_generation == generation
            and entry.secret_version == current_secret_version
        ):
            logger.debug(f"Using cached provider client for {key} (generation {generation})")
            metrics.provider_cache_total.labels(result="hit").inc()
            return entry.provider, provider_config

        metrics.provider_cache_total.labels(result="miss").inc()
        logger.info(f"Creating provider client for {key} (generation {generation})")
        provider = self.factory(provider_config)

        with self._lock:
            self._entries[key] = CacheEntry(
                provider=provider,
                config_generation=generation,
                secret_version=current_secret_version,
            )
        return provider, provider_config

    def invalidate(self, ref: ProviderConfigReference, namespace: str) -> None:
        """Evict the entry for ``ref`` so the next lookup builds a new client."""
        key = ref.key(namespace)
        with self._lock:
            removed = self._entries.pop(key, None)
        if removed is not None:
            metrics.provider_cache_total.labels(result="invalidated").inc()
            logger.info(f"Invalidated provider client for {key}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _secret_version(self, provider_config: dict[str, Any]) -> str:
        # A missing or unreadable secret is left for the factory to report.
        namespace = provider_config.get("metadata", {}).get("namespace", "default")
        secret_name = (provider_config.get("spec", {}).get("credentialsSecretRef") or {}).get("name")
        if not secret_name:
            return ""
        try:
            return secret_version(self.store.get_secret(namespace, secret_name))
        except ApiException as e:
            logger.debug(f"Could not read credentials secret {namespace}/{secret_name}: {e}")
            return ""
