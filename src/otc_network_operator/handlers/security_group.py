"""Handler for SecurityGroup CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_SECURITY_GROUP, RECONCILE_INTERVAL
from ..dependencies import SECURITY_GROUP_RULES_BY_SECURITY_GROUP
from ..models import Resource
from ..reconciler import KindLogic
from ..services.otc.base import OTCProvider
from ..services.otc.models import (
    CreateSecurityGroupRequest,
    SecurityGroupInfo,
    UpdateSecurityGroupRequest,
)
from .base import ManagedResourceHandler


class SecurityGroupLogic(KindLogic):
    kind = KIND_SECURITY_GROUP
    reference_checks = (SECURITY_GROUP_RULES_BY_SECURITY_GROUP,)

    def create(self, provider: OTCProvider, resource: Resource, resolved: dict[str, str]) -> str:
        return provider.create_security_group(
            CreateSecurityGroupRequest(name=resource.name, description=resource.spec.get("description", ""))
        )

    def get(self, provider: OTCProvider, resource: Resource) -> SecurityGroupInfo | None:
        return provider.get_security_group(resource.external_id)

    def detect_drift(
        self, spec: dict[str, Any], baseline: dict[str, Any]
    ) -> UpdateSecurityGroupRequest | None:
        if spec.get("description", "") != baseline.get("description", ""):
            return UpdateSecurityGroupRequest(description=spec.get("description", ""))
        return None

    def apply_update(
        self, provider: OTCProvider, resource: Resource, update: UpdateSecurityGroupRequest
    ) -> None:
        provider.update_security_group(resource.external_id, update)

    def delete(self, provider: OTCProvider, resource: Resource) -> None:
        provider.delete_security_group(resource.external_id)


_handler = ManagedResourceHandler(SecurityGroupLogic())


@kopf.on.create(API_GROUP_VERSION, KIND_SECURITY_GROUP)
@kopf.on.update(API_GROUP_VERSION, KIND_SECURITY_GROUP)
@kopf.on.resume(API_GROUP_VERSION, KIND_SECURITY_GROUP)
@kopf.timer(API_GROUP_VERSION, KIND_SECURITY_GROUP, interval=RECONCILE_INTERVAL)
def handle_security_group(body: kopf.Body, **kwargs: Any) -> None:
    """Handle SecurityGroup resource reconciliation."""
    _handler.handle(dict(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_SECURITY_GROUP)
def handle_security_group_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle SecurityGroup resource deletion."""
    _handler.handle_delete(dict(body))
