"""Shared fixtures: an in-memory object store and a recording provider."""

from __future__ import annotations

import base64
import copy
from typing import Any, Mapping
from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client
from kubernetes.client.exceptions import ApiException

from otc_network_operator.constants import (
    API_GROUP_VERSION,
    KIND_PROVIDER_CONFIG,
    finalizer_for,
)
from otc_network_operator.store import merge_patch
from otc_network_operator.utils.cache import ProviderCache


class FakeStore:
    """In-memory ObjectStore with optimistic concurrency on finalizer updates."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.secrets: dict[tuple[str, str], client.V1Secret] = {}
        self.list_errors: dict[str, ApiException] = {}
        self.status_patches: list[dict[str, Any]] = []
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def add(self, kind: str, body: dict[str, Any]) -> dict[str, Any]:
        body = copy.deepcopy(body)
        meta = body.setdefault("metadata", {})
        meta.setdefault("namespace", "default")
        meta["resourceVersion"] = self._next_version()
        body.setdefault("kind", kind)
        body.setdefault("apiVersion", API_GROUP_VERSION)
        self.objects[(kind, meta["namespace"], meta["name"])] = body
        return copy.deepcopy(body)

    def add_secret(self, namespace: str, name: str, data: dict[str, str]) -> None:
        encoded = {k: base64.b64encode(v.encode()).decode() for k, v in data.items()}
        self.secrets[(namespace, name)] = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace, resource_version=self._next_version()),
            data=encoded,
        )

    def stored(self, kind: str, name: str, namespace: str = "default") -> dict[str, Any] | None:
        return self.objects.get((kind, namespace, name))

    # ObjectStore

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        obj = self.objects.get((kind, namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    def list(
        self,
        kind: str,
        namespace: str,
        match_labels: Mapping[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        if kind in self.list_errors:
            raise self.list_errors[kind]
        items = []
        for (k, ns, _), obj in sorted(self.objects.items()):
            if k != kind or ns != namespace:
                continue
            labels = obj["metadata"].get("labels") or {}
            if match_labels and any(labels.get(key) != value for key, value in match_labels.items()):
                continue
            items.append(copy.deepcopy(obj))
        return items

    def set_finalizers(self, kind: str, obj: Mapping[str, Any], finalizers: list[str]) -> dict[str, Any]:
        meta = obj.get("metadata", {})
        key = (kind, meta.get("namespace", "default"), meta.get("name"))
        stored = self.objects.get(key)
        if stored is None:
            raise ApiException(status=404, reason="Not Found")
        if meta.get("resourceVersion") and meta["resourceVersion"] != stored["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")

        stored["metadata"]["finalizers"] = list(finalizers)
        stored["metadata"]["resourceVersion"] = self._next_version()
        if not finalizers and stored["metadata"].get("deletionTimestamp"):
            del self.objects[key]
        return copy.deepcopy(stored)

    def patch_status(
        self, kind: str, original: Mapping[str, Any], modified: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        meta = modified.get("metadata", {})
        stored = self.objects.get((kind, meta.get("namespace", "default"), meta.get("name")))
        if stored is None:
            raise ApiException(status=404, reason="Not Found")
        if not merge_patch(original.get("status") or {}, modified.get("status") or {}):
            return None
        stored["status"] = copy.deepcopy(modified.get("status") or {})
        stored["metadata"]["resourceVersion"] = self._next_version()
        self.status_patches.append(copy.deepcopy(stored["status"]))
        return copy.deepcopy(stored)

    def get_secret(self, namespace: str, name: str) -> client.V1Secret | None:
        return self.secrets.get((namespace, name))


def ready_condition(status: str = "True", message: str = "Resource is ready for use") -> dict[str, Any]:
    return {
        "type": "Ready",
        "status": status,
        "reason": "Ready" if status == "True" else "Failed",
        "message": message,
        "observedGeneration": 1,
        "lastTransitionTime": "2024-01-01T00:00:00Z",
    }


def make_object(
    name: str,
    spec: dict[str, Any] | None = None,
    status: dict[str, Any] | None = None,
    kind: str | None = None,
    labels: dict[str, str] | None = None,
    finalizers: list[str] | None = None,
    deleting: bool = False,
) -> dict[str, Any]:
    meta: dict[str, Any] = {"name": name, "namespace": "default", "generation": 1, "uid": f"uid-{name}"}
    if labels:
        meta["labels"] = labels
    if finalizers is not None:
        meta["finalizers"] = finalizers
    if deleting:
        meta["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    body: dict[str, Any] = {"metadata": meta, "spec": spec or {}, "status": status or {}}
    if kind:
        body["kind"] = kind
    return body


def ready_dependency(name: str, external_id: str, labels: dict[str, str] | None = None) -> dict[str, Any]:
    return make_object(
        name,
        status={"externalID": external_id, "conditions": [ready_condition()]},
        labels=labels,
    )


@pytest.fixture(autouse=True)
def mock_kopf_event():
    """Events are posted through kopf; record them instead."""
    with patch("otc_network_operator.utils.events.kopf.event") as mock_event:
        yield mock_event


@pytest.fixture
def store() -> FakeStore:
    store = FakeStore()
    store.add(
        KIND_PROVIDER_CONFIG,
        make_object(
            "otc",
            spec={
                "identityEndpoint": "https://iam.eu-de.otc.t-systems.com/v3",
                "region": "eu-de",
                "domainName": "OTC-EU-DE-000000000010000XXXXX",
                "credentialsSecretRef": {"name": "otc-credentials"},
            },
            status={"conditions": [ready_condition()]},
            finalizers=[finalizer_for(KIND_PROVIDER_CONFIG)],
        ),
    )
    store.add_secret("default", "otc-credentials", {"username": "user", "password": "secret"})
    return store


@pytest.fixture
def provider() -> MagicMock:
    return MagicMock(name="OTCClient")


@pytest.fixture
def providers(store: FakeStore, provider: MagicMock) -> ProviderCache:
    return ProviderCache(store, lambda provider_config: provider)
