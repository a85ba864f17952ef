"""Handler for SNATRule CRD."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import kopf

from ..constants import (
    API_GROUP_VERSION,
    KIND_NAT_GATEWAY,
    KIND_PUBLIC_IP,
    KIND_SNAT_RULE,
    KIND_SUBNET,
    RECONCILE_INTERVAL,
)
from ..models import Resource
from ..reconciler import DependencyField, KindLogic
from ..services.otc.base import OTCProvider
from ..services.otc.models import CreateSNATRuleRequest, SNATRuleInfo, UpdateSNATRuleRequest
from .base import ManagedResourceHandler


class SNATRuleLogic(KindLogic):
    """Translates traffic from a Subnet through a NATGateway to a PublicIP."""

    kind = KIND_SNAT_RULE
    dependency_fields = (
        DependencyField("natGateway", KIND_NAT_GATEWAY, "natGatewayID"),
        DependencyField("subnet", KIND_SUBNET, "subnetID"),
        DependencyField("publicIP", KIND_PUBLIC_IP, "publicIPID"),
    )

    def create(self, provider: OTCProvider, resource: Resource, resolved: dict[str, str]) -> str:
        return provider.create_snat_rule(
            CreateSNATRuleRequest(
                nat_gateway_id=resolved["natGatewayID"],
                subnet_id=resolved["subnetID"],
                public_ip_id=resolved["publicIPID"],
                description=resource.spec.get("description", ""),
            )
        )

    def get(self, provider: OTCProvider, resource: Resource) -> SNATRuleInfo | None:
        return provider.get_snat_rule(resource.external_id)

    def detect_drift(self, spec: dict[str, Any], baseline: dict[str, Any]) -> UpdateSNATRuleRequest | None:
        if spec.get("description", "") != baseline.get("description", ""):
            return UpdateSNATRuleRequest(nat_gateway_id="", description=spec.get("description", ""))
        return None

    def apply_update(self, provider: OTCProvider, resource: Resource, update: UpdateSNATRuleRequest) -> None:
        update = replace(update, nat_gateway_id=resource.resolved_dependencies.get("natGatewayID", ""))
        provider.update_snat_rule(resource.external_id, update)

    def delete(self, provider: OTCProvider, resource: Resource) -> None:
        provider.delete_snat_rule(resource.external_id)


_handler = ManagedResourceHandler(SNATRuleLogic())


@kopf.on.create(API_GROUP_VERSION, KIND_SNAT_RULE)
@kopf.on.update(API_GROUP_VERSION, KIND_SNAT_RULE)
@kopf.on.resume(API_GROUP_VERSION, KIND_SNAT_RULE)
@kopf.timer(API_GROUP_VERSION, KIND_SNAT_RULE, interval=RECONCILE_INTERVAL)
def handle_snat_rule(body: kopf.Body, **kwargs: Any) -> None:
    """Handle SNATRule resource reconciliation."""
    _handler.handle(dict(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_SNAT_RULE)
def handle_snat_rule_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle SNATRule resource deletion."""
    _handler.handle_delete(dict(body))
