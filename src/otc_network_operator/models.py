"""Typed views over the custom resources handled by the operator."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from .constants import COND_READY
from .exceptions import InvalidDependencyError
from .utils.conditions import ConditionSet


@dataclass(frozen=True)
class ObjectKey:
    """Namespaced name of an object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ProviderConfigReference:
    name: str
    namespace: str = ""

    @classmethod
    def from_spec(cls, spec: Mapping[str, Any]) -> ProviderConfigReference:
        ref = spec.get("providerConfigRef") or {}
        return cls(name=ref.get("name", ""), namespace=ref.get("namespace") or "")

    def key(self, default_namespace: str) -> ObjectKey:
        return ObjectKey(self.namespace or default_namespace, self.name)


# Dependency reference: exactly one of the three variants below.


@dataclass(frozen=True)
class ByID:
    """An external ID given directly by the user."""

    id: str


@dataclass(frozen=True)
class ByRef:
    """A sibling object referenced by name."""

    name: str


@dataclass(frozen=True)
class BySelector:
    """A sibling object selected by labels."""

    match_labels: Mapping[str, str] = field(default_factory=dict)


Dependency = Union[ByID, ByRef, BySelector]


def parse_dependency(data: Mapping[str, Any] | None, prefix: str) -> Dependency:
    """Build a dependency from ``<prefix>ID``, ``<prefix>Ref`` and ``<prefix>Selector``.

    Args:
        data: The dependency block of a spec (e.g. ``spec["network"]``)
        prefix: Field prefix (e.g. ``"network"``)

    Raises:
        InvalidDependencyError: If zero or several variants are populated
    """
    data = data or {}
    populated: list[Dependency] = []

    if data.get(f"{prefix}ID"):
        populated.append(ByID(data[f"{prefix}ID"]))
    if data.get(f"{prefix}Ref") is not None:
        populated.append(ByRef(data[f"{prefix}Ref"].get("name", "")))
    if data.get(f"{prefix}Selector") is not None:
        selector = data[f"{prefix}Selector"]
        populated.append(BySelector(dict(selector.get("matchLabels") or {})))

    if len(populated) != 1:
        raise InvalidDependencyError(
            f"exactly one of {prefix}ID, {prefix}Ref or {prefix}Selector must be specified, "
            f"found {len(populated)}"
        )
    return populated[0]


class Resource:
    """Mutable working copy of a custom resource.

    The body passed in is deep-copied, so the caller keeps an untouched snapshot
    to compute the status patch against.
    """

    def __init__(self, kind: str, body: Mapping[str, Any]):
        self.kind = kind
        self.body: dict[str, Any] = copy.deepcopy(dict(body))
        self.body.setdefault("metadata", {})
        self.body.setdefault("spec", {})
        self.body.setdefault("status", {})

    @property
    def metadata(self) -> dict[str, Any]:
        return self.body["metadata"]

    @property
    def spec(self) -> dict[str, Any]:
        return self.body["spec"]

    @property
    def status(self) -> dict[str, Any]:
        return self.body["status"]

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace", "default")

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)

    @property
    def generation(self) -> int:
        return int(self.metadata.get("generation") or 0)

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.get("labels") or {}

    @property
    def finalizers(self) -> list[str]:
        return list(self.metadata.get("finalizers") or [])

    @property
    def deletion_requested(self) -> bool:
        return bool(self.metadata.get("deletionTimestamp"))

    @property
    def orphan_on_delete(self) -> bool:
        return bool(self.spec.get("orphanOnDelete", False))

    @property
    def provider_config_ref(self) -> ProviderConfigReference:
        return ProviderConfigReference.from_spec(self.spec)

    @property
    def conditions(self) -> ConditionSet:
        return ConditionSet.from_list(self.status.get("conditions"))

    @conditions.setter
    def conditions(self, value: ConditionSet) -> None:
        self.status["conditions"] = value.to_list()

    @property
    def external_id(self) -> str:
        return self.status.get("externalID") or ""

    @external_id.setter
    def external_id(self, value: str) -> None:
        self.status["externalID"] = value

    @property
    def last_applied_spec(self) -> dict[str, Any] | None:
        return self.status.get("lastAppliedSpec")

    @last_applied_spec.setter
    def last_applied_spec(self, value: dict[str, Any] | None) -> None:
        self.status["lastAppliedSpec"] = copy.deepcopy(value) if value is not None else None

    @property
    def resolved_dependencies(self) -> dict[str, str]:
        return dict(self.status.get("resolvedDependencies") or {})

    @resolved_dependencies.setter
    def resolved_dependencies(self, value: dict[str, str]) -> None:
        self.status["resolvedDependencies"] = dict(value)

    @property
    def last_sync_time(self) -> str | None:
        return self.status.get("lastSyncTime")

    @last_sync_time.setter
    def last_sync_time(self, value: str | None) -> None:
        self.status["lastSyncTime"] = value

    def is_ready(self) -> bool:
        return self.conditions.is_true(COND_READY)

    def ready_message(self) -> str:
        cond = self.conditions.get(COND_READY)
        return cond.message if cond is not None else "no Ready condition"

    def __repr__(self) -> str:
        return f"{self.kind}({self.key})"
