"""Handler for SecurityGroupRule CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    API_GROUP_VERSION,
    KIND_SECURITY_GROUP,
    KIND_SECURITY_GROUP_RULE,
    RECONCILE_INTERVAL,
)
from ..models import Resource
from ..reconciler import DependencyField, KindLogic
from ..services.otc.base import OTCProvider
from ..services.otc.models import (
    CreateSecurityGroupRuleRequest,
    SecurityGroupRuleInfo,
    UpdateSecurityGroupRuleRequest,
)
from .base import ManagedResourceHandler


class SecurityGroupRuleLogic(KindLogic):
    """A rule of a SecurityGroup.

    The cloud only allows the description of a rule to change; every other
    field identifies the rule.
    """

    kind = KIND_SECURITY_GROUP_RULE
    dependency_fields = (DependencyField("securityGroup", KIND_SECURITY_GROUP, "securityGroupID"),)

    def create(self, provider: OTCProvider, resource: Resource, resolved: dict[str, str]) -> str:
        spec = resource.spec
        return provider.create_security_group_rule(
            CreateSecurityGroupRuleRequest(
                security_group_id=resolved["securityGroupID"],
                direction=spec.get("direction", ""),
                description=spec.get("description", ""),
                protocol=spec.get("protocol") or "all",
                ethertype=spec.get("ethertype") or "IPv4",
                multiport=spec.get("multiport", ""),
                action=spec.get("action") or "allow",
                priority=spec.get("priority"),
            )
        )

    def get(self, provider: OTCProvider, resource: Resource) -> SecurityGroupRuleInfo | None:
        return provider.get_security_group_rule(resource.external_id)

    def detect_drift(
        self, spec: dict[str, Any], baseline: dict[str, Any]
    ) -> UpdateSecurityGroupRuleRequest | None:
        if spec.get("description", "") != baseline.get("description", ""):
            return UpdateSecurityGroupRuleRequest(description=spec.get("description", ""))
        return None

    def apply_update(
        self, provider: OTCProvider, resource: Resource, update: UpdateSecurityGroupRuleRequest
    ) -> None:
        provider.update_security_group_rule(resource.external_id, update)

    def delete(self, provider: OTCProvider, resource: Resource) -> None:
        provider.delete_security_group_rule(resource.external_id)


_handler = ManagedResourceHandler(SecurityGroupRuleLogic())


@kopf.on.create(API_GROUP_VERSION, KIND_SECURITY_GROUP_RULE)
@kopf.on.update(API_GROUP_VERSION, KIND_SECURITY_GROUP_RULE)
@kopf.on.resume(API_GROUP_VERSION, KIND_SECURITY_GROUP_RULE)
@kopf.timer(API_GROUP_VERSION, KIND_SECURITY_GROUP_RULE, interval=RECONCILE_INTERVAL)
def handle_security_group_rule(body: kopf.Body, **kwargs: Any) -> None:
    """Handle SecurityGroupRule resource reconciliation."""
    _handler.handle(dict(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_SECURITY_GROUP_RULE)
def handle_security_group_rule_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle SecurityGroupRule resource deletion."""
    _handler.handle_delete(dict(body))
