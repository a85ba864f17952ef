"""Object store backed by the Kubernetes API.

The reconciliation core only talks to the :class:`ObjectStore` protocol, which
tests replace with an in-memory implementation.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Protocol

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from . import metrics
from .constants import API_GROUP, API_VERSION, PLURALS
from .utils.rate_limit import rate_limit_k8s

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    """Namespaced get/list/patch access to custom resources and secrets."""

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        """Return the object or None if it does not exist."""
        ...

    def list(
        self,
        kind: str,
        namespace: str,
        match_labels: Mapping[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """List objects of ``kind`` in ``namespace``, optionally filtered by labels."""
        ...

    def set_finalizers(
        self, kind: str, obj: Mapping[str, Any], finalizers: list[str]
    ) -> dict[str, Any]:
        """Replace the finalizers of ``obj``, failing if it changed since it was read."""
        ...

    def patch_status(
        self, kind: str, original: Mapping[str, Any], modified: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """Persist the status difference between two versions of an object.

        Returns the updated object, or None when there was nothing to patch.
        """
        ...

    def get_secret(self, namespace: str, name: str) -> client.V1Secret | None:
        """Return the secret or None if it does not exist."""
        ...


def merge_patch(original: Any, modified: Any) -> Any:
    """Compute an RFC 7386 JSON merge patch turning ``original`` into ``modified``.

    Lists are replaced as a whole. Keys removed from ``modified`` map to None.
    Returns an empty dict when nothing changed.
    """
    if not isinstance(original, Mapping) or not isinstance(modified, Mapping):
        return modified

    patch: dict[str, Any] = {}
    for key in original:
        if key not in modified:
            patch[key] = None
    for key, value in modified.items():
        if key not in original:
            if value is not None:
                patch[key] = value
            continue
        old = original[key]
        if isinstance(old, Mapping) and isinstance(value, Mapping):
            nested = merge_patch(old, value)
            if nested:
                patch[key] = nested
        elif old != value:
            patch[key] = value
    return patch


def selector_string(match_labels: Mapping[str, str]) -> str:
    """Render ``{"a": "1", "b": "2"}`` as ``a=1,b=2``."""
    return ",".join(f"{k}={v}" for k, v in sorted(match_labels.items()))


class KubeObjectStore:
    """:class:`ObjectStore` implementation using the official Kubernetes client."""

    def __init__(
        self,
        custom_api: client.CustomObjectsApi | None = None,
        core_api: client.CoreV1Api | None = None,
    ):
        self.custom_api = custom_api or client.CustomObjectsApi()
        self.core_api = core_api or client.CoreV1Api()

    def _call(self, operation: str, fn: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        try:
            result = rate_limit_k8s(fn)(**kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except ApiException:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        try:
            return self._call(
                f"get_{kind.lower()}",
                self.custom_api.get_namespaced_custom_object,
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=PLURALS[kind],
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def list(
        self,
        kind: str,
        namespace: str,
        match_labels: Mapping[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = {}
        if match_labels:
            kwargs["label_selector"] = selector_string(match_labels)
        result = self._call(
            f"list_{kind.lower()}",
            self.custom_api.list_namespaced_custom_object,
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURALS[kind],
            **kwargs,
        )
        return list(result.get("items", []))

    def set_finalizers(
        self, kind: str, obj: Mapping[str, Any], finalizers: list[str]
    ) -> dict[str, Any]:
        meta = obj.get("metadata", {})
        body: dict[str, Any] = {"metadata": {"finalizers": finalizers}}
        # A resourceVersion in a merge patch turns it into a conditional update.
        if meta.get("resourceVersion"):
            body["metadata"]["resourceVersion"] = meta["resourceVersion"]
        return self._call(
            f"patch_{kind.lower()}",
            self.custom_api.patch_namespaced_custom_object,
            group=API_GROUP,
            version=API_VERSION,
            namespace=meta.get("namespace", "default"),
            plural=PLURALS[kind],
            name=meta.get("name"),
            body=body,
        )

    def patch_status(
        self, kind: str, original: Mapping[str, Any], modified: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        diff = merge_patch(original.get("status") or {}, modified.get("status") or {})
        if not diff:
            return None
        meta = modified.get("metadata", {})
        return self._call(
            f"patch_{kind.lower()}_status",
            self.custom_api.patch_namespaced_custom_object_status,
            group=API_GROUP,
            version=API_VERSION,
            namespace=meta.get("namespace", "default"),
            plural=PLURALS[kind],
            name=meta.get("name"),
            body={"status": diff},
        )

    def get_secret(self, namespace: str, name: str) -> client.V1Secret | None:
        try:
            return self._call("get_secret", self.core_api.read_namespaced_secret, name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise


def get_k8s_store() -> KubeObjectStore:
    """Load in-cluster (or local kubeconfig) credentials and build a store."""
    from kubernetes import config

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()

    return KubeObjectStore()
