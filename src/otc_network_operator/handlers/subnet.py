"""Handler for Subnet CRD."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_NETWORK, KIND_SUBNET, RECONCILE_INTERVAL
from ..dependencies import NAT_GATEWAYS_BY_SUBNET, SNAT_RULES_BY_SUBNET
from ..models import Resource
from ..reconciler import DependencyField, KindLogic
from ..services.otc.base import OTCProvider
from ..services.otc.models import CreateSubnetRequest, SubnetInfo, UpdateSubnetRequest
from .base import ManagedResourceHandler


class SubnetLogic(KindLogic):
    """A subnet inside a Network.

    Updates and deletion address the subnet through its parent VPC, so they
    use the network ID recorded when the subnet was created.
    """

    kind = KIND_SUBNET
    dependency_fields = (DependencyField("network", KIND_NETWORK, "networkID"),)
    reference_checks = (NAT_GATEWAYS_BY_SUBNET, SNAT_RULES_BY_SUBNET)

    def create(self, provider: OTCProvider, resource: Resource, resolved: dict[str, str]) -> str:
        return provider.create_subnet(
            CreateSubnetRequest(
                name=resource.name,
                cidr=resource.spec.get("cidr", ""),
                gateway_ip=resource.spec.get("gatewayIP", ""),
                network_id=resolved["networkID"],
                description=resource.spec.get("description", ""),
            )
        )

    def get(self, provider: OTCProvider, resource: Resource) -> SubnetInfo | None:
        return provider.get_subnet(resource.external_id)

    def detect_drift(self, spec: dict[str, Any], baseline: dict[str, Any]) -> UpdateSubnetRequest | None:
        if spec.get("description", "") != baseline.get("description", ""):
            # The network and name are filled in by apply_update.
            return UpdateSubnetRequest(name="", network_id="", description=spec.get("description", ""))
        return None

    def apply_update(self, provider: OTCProvider, resource: Resource, update: UpdateSubnetRequest) -> None:
        update = replace(
            update,
            name=resource.name,
            network_id=resource.resolved_dependencies.get("networkID", ""),
        )
        provider.update_subnet(resource.external_id, update)

    def delete(self, provider: OTCProvider, resource: Resource) -> None:
        provider.delete_subnet(resource.external_id, resource.resolved_dependencies.get("networkID", ""))


_handler = ManagedResourceHandler(SubnetLogic())


@kopf.on.create(API_GROUP_VERSION, KIND_SUBNET)
@kopf.on.update(API_GROUP_VERSION, KIND_SUBNET)
@kopf.on.resume(API_GROUP_VERSION, KIND_SUBNET)
@kopf.timer(API_GROUP_VERSION, KIND_SUBNET, interval=RECONCILE_INTERVAL)
def handle_subnet(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Subnet resource reconciliation."""
    _handler.handle(dict(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_SUBNET)
def handle_subnet_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Subnet resource deletion."""
    _handler.handle_delete(dict(body))
