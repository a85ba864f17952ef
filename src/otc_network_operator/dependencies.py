"""Dependency resolution and deletion reference checks.

A dependency names a sibling object by external ID, by name or by label
selector. Resolution turns it into the external ID of a ready object.
Reference checks run the other way round: they find the siblings whose
resolved dependencies still point at a given external ID.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from kubernetes.client.exceptions import ApiException

from .constants import (
    COND_READY,
    KIND_NAT_GATEWAY,
    KIND_NETWORK,
    KIND_PUBLIC_IP,
    KIND_SECURITY_GROUP,
    KIND_SECURITY_GROUP_RULE,
    KIND_SNAT_RULE,
    KIND_SUBNET,
)
from .exceptions import (
    DependencyAmbiguousError,
    DependencyError,
    DependencyNotFoundError,
    DependencyNotReadyError,
    InvalidDependencyError,
    ReferenceCheckError,
)
from .models import ByID, ByRef, BySelector, Dependency, Resource
from .store import ObjectStore

logger = logging.getLogger(__name__)

# Human readable names used in resolution errors
DEPENDENCY_LABELS = {
    KIND_NETWORK: "network",
    KIND_SUBNET: "subnet",
    KIND_SECURITY_GROUP: "security group",
    KIND_NAT_GATEWAY: "NAT gateway",
    KIND_PUBLIC_IP: "public IP",
}


def _format_labels(match_labels: Mapping[str, str]) -> str:
    return "map[" + " ".join(f"{k}:{v}" for k, v in sorted(match_labels.items())) + "]"


class DependencyResolver:
    """Resolves dependencies of objects in one namespace."""

    def __init__(self, store: ObjectStore, namespace: str):
        self.store = store
        self.namespace = namespace

    def resolve(self, kind: str, dependency: Dependency) -> str:
        """Return the external ID ``dependency`` points at.

        An explicit ID is returned as is. A reference or a selector must
        lead to exactly one object that has an external ID and is Ready.

        Raises:
            DependencyError: If the dependency cannot be resolved yet
        """
        label = DEPENDENCY_LABELS.get(kind, kind)

        if isinstance(dependency, ByID) and dependency.id:
            return dependency.id

        if isinstance(dependency, ByRef):
            try:
                obj = self._get(kind, dependency.name)
            except DependencyError as e:
                raise type(e)(f"failed to resolve {label} by reference: {e}") from e
            return check_readiness(kind, obj)

        if isinstance(dependency, BySelector):
            try:
                obj = self._select(kind, dependency.match_labels)
            except DependencyError as e:
                raise type(e)(f"failed to resolve {label} by selector: {e}") from e
            return check_readiness(kind, obj)

        raise InvalidDependencyError(f"no {label} specified")

    def resolve_all(self, dependencies: list[tuple[str, str, Dependency]]) -> dict[str, str]:
        """Resolve ``(kind, status key, dependency)`` triples in order.

        Stops at the first dependency that cannot be resolved.

        Returns:
            Mapping of status key (e.g. ``networkID``) to external ID
        """
        resolved: dict[str, str] = {}
        for kind, key, dependency in dependencies:
            resolved[key] = self.resolve(kind, dependency)
        return resolved

    def _get(self, kind: str, name: str) -> dict[str, Any]:
        try:
            obj = self.store.get(kind, self.namespace, name)
        except ApiException as e:
            raise DependencyError(f"failed to get {kind} {self.namespace}/{name}: {e.reason}") from e
        if obj is None:
            raise DependencyNotFoundError(f'{kind} "{name}" not found')
        return obj

    def _select(self, kind: str, match_labels: Mapping[str, str]) -> dict[str, Any]:
        if not match_labels:
            raise InvalidDependencyError("matchLabels cannot be empty for selector")

        try:
            items = self.store.list(kind, self.namespace, match_labels)
        except ApiException as e:
            raise DependencyError(
                f"failed to list resources with selector {_format_labels(match_labels)}: {e.reason}"
            ) from e

        if not items:
            raise DependencyNotFoundError(
                f"no resources found matching selector {_format_labels(match_labels)} "
                f"in namespace {self.namespace}"
            )
        if len(items) > 1:
            raise DependencyAmbiguousError(
                f"expected exactly one resource to match selector {_format_labels(match_labels)}, "
                f"but found {len(items)}"
            )
        return items[0]


def check_readiness(kind: str, obj: Mapping[str, Any]) -> str:
    """Return the external ID of a ready dependency.

    Raises:
        DependencyNotReadyError: If the external ID is unset or Ready is not true
    """
    resource = Resource(kind, obj)
    if not resource.external_id:
        raise DependencyNotReadyError(
            f"{kind} dependency '{resource.name}' is not ready: external ID is not yet set"
        )
    if not resource.conditions.is_true(COND_READY):
        raise DependencyNotReadyError(
            f"{kind} dependency '{resource.name}' is not ready: 'Ready' condition is not true"
        )
    return resource.external_id


@dataclass(frozen=True)
class ReferenceCheck:
    """Finds objects of ``kind`` whose resolved ``field`` equals an external ID."""

    kind: str
    field: str

    @property
    def resource(self) -> str:
        return f"{self.kind}s"

    def check(self, store: ObjectStore, namespace: str, external_id: str) -> list[str]:
        try:
            items = store.list(self.kind, namespace)
        except ApiException as e:
            raise ReferenceCheckError(self.resource, e) from e

        names = []
        for item in items:
            resolved = (item.get("status") or {}).get("resolvedDependencies") or {}
            if resolved.get(self.field) == external_id:
                names.append(item["metadata"]["name"])
        return names


def find_references(
    store: ObjectStore,
    namespace: str,
    external_id: str,
    checks: list[ReferenceCheck],
) -> list[str]:
    """Run every check and return the names of all referencing objects.

    Raises:
        ReferenceCheckError: If any check fails to list its kind
    """
    references: list[str] = []
    for check in checks:
        names = check.check(store, namespace, external_id)
        if names:
            logger.debug(
                f"Found deletion-blocking references to {external_id}: {check.resource} {names}"
            )
            references.extend(names)
    return references


# Dependents that block deletion, per referenced kind
SUBNETS_BY_NETWORK = ReferenceCheck(KIND_SUBNET, "networkID")
NAT_GATEWAYS_BY_NETWORK = ReferenceCheck(KIND_NAT_GATEWAY, "networkID")
NAT_GATEWAYS_BY_SUBNET = ReferenceCheck(KIND_NAT_GATEWAY, "subnetID")
SNAT_RULES_BY_SUBNET = ReferenceCheck(KIND_SNAT_RULE, "subnetID")
SNAT_RULES_BY_NAT_GATEWAY = ReferenceCheck(KIND_SNAT_RULE, "natGatewayID")
SNAT_RULES_BY_PUBLIC_IP = ReferenceCheck(KIND_SNAT_RULE, "publicIPID")
SECURITY_GROUP_RULES_BY_SECURITY_GROUP = ReferenceCheck(KIND_SECURITY_GROUP_RULE, "securityGroupID")
