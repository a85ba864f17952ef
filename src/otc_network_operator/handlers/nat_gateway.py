"""Handler for NATGateway CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    API_GROUP_VERSION,
    KIND_NAT_GATEWAY,
    KIND_NETWORK,
    KIND_SUBNET,
    RECONCILE_INTERVAL,
)
from ..dependencies import SNAT_RULES_BY_NAT_GATEWAY
from ..models import Resource
from ..reconciler import DependencyField, KindLogic
from ..services.otc.base import OTCProvider
from ..services.otc.models import CreateNATGatewayRequest, NATGatewayInfo, UpdateNATGatewayRequest
from .base import ManagedResourceHandler


class NATGatewayLogic(KindLogic):
    kind = KIND_NAT_GATEWAY
    dependency_fields = (
        DependencyField("network", KIND_NETWORK, "networkID"),
        DependencyField("subnet", KIND_SUBNET, "subnetID"),
    )
    reference_checks = (SNAT_RULES_BY_NAT_GATEWAY,)

    def create(self, provider: OTCProvider, resource: Resource, resolved: dict[str, str]) -> str:
        return provider.create_nat_gateway(
            CreateNATGatewayRequest(
                name=resource.name,
                type=resource.spec.get("type", ""),
                network_id=resolved["networkID"],
                subnet_id=resolved["subnetID"],
                description=resource.spec.get("description", ""),
            )
        )

    def get(self, provider: OTCProvider, resource: Resource) -> NATGatewayInfo | None:
        return provider.get_nat_gateway(resource.external_id)

    def detect_drift(self, spec: dict[str, Any], baseline: dict[str, Any]) -> UpdateNATGatewayRequest | None:
        description_changed = spec.get("description", "") != baseline.get("description", "")
        type_changed = spec.get("type", "") != baseline.get("type", "")
        if not description_changed and not type_changed:
            return None
        return UpdateNATGatewayRequest(
            description=spec.get("description", ""),
            type=spec.get("type", "") if type_changed else "",
        )

    def apply_update(self, provider: OTCProvider, resource: Resource, update: UpdateNATGatewayRequest) -> None:
        provider.update_nat_gateway(resource.external_id, update)

    def delete(self, provider: OTCProvider, resource: Resource) -> None:
        provider.delete_nat_gateway(resource.external_id)


_handler = ManagedResourceHandler(NATGatewayLogic())


@kopf.on.create(API_GROUP_VERSION, KIND_NAT_GATEWAY)
@kopf.on.update(API_GROUP_VERSION, KIND_NAT_GATEWAY)
@kopf.on.resume(API_GROUP_VERSION, KIND_NAT_GATEWAY)
@kopf.timer(API_GROUP_VERSION, KIND_NAT_GATEWAY, interval=RECONCILE_INTERVAL)
def handle_nat_gateway(body: kopf.Body, **kwargs: Any) -> None:
    """Handle NATGateway resource reconciliation."""
    _handler.handle(dict(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_NAT_GATEWAY)
def handle_nat_gateway_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle NATGateway resource deletion."""
    _handler.handle_delete(dict(body))
