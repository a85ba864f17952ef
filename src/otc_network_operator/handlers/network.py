"""Handler for Network CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_NETWORK, RECONCILE_INTERVAL
from ..dependencies import NAT_GATEWAYS_BY_NETWORK, SUBNETS_BY_NETWORK
from ..models import Resource
from ..reconciler import KindLogic
from ..services.otc.base import OTCProvider
from ..services.otc.models import CreateNetworkRequest, NetworkInfo, UpdateNetworkRequest
from .base import ManagedResourceHandler


class NetworkLogic(KindLogic):
    """A VPC. Only its description can change after creation."""

    kind = KIND_NETWORK
    reference_checks = (SUBNETS_BY_NETWORK, NAT_GATEWAYS_BY_NETWORK)

    def create(self, provider: OTCProvider, resource: Resource, resolved: dict[str, str]) -> str:
        return provider.create_network(
            CreateNetworkRequest(
                name=resource.name,
                cidr=resource.spec.get("cidr", ""),
                description=resource.spec.get("description", ""),
            )
        )

    def get(self, provider: OTCProvider, resource: Resource) -> NetworkInfo | None:
        return provider.get_network(resource.external_id)

    def detect_drift(self, spec: dict[str, Any], baseline: dict[str, Any]) -> UpdateNetworkRequest | None:
        if spec.get("description", "") != baseline.get("description", ""):
            return UpdateNetworkRequest(description=spec.get("description", ""))
        return None

    def apply_update(self, provider: OTCProvider, resource: Resource, update: UpdateNetworkRequest) -> None:
        provider.update_network(resource.external_id, update)

    def delete(self, provider: OTCProvider, resource: Resource) -> None:
        provider.delete_network(resource.external_id)


_handler = ManagedResourceHandler(NetworkLogic())


@kopf.on.create(API_GROUP_VERSION, KIND_NETWORK)
@kopf.on.update(API_GROUP_VERSION, KIND_NETWORK)
@kopf.on.resume(API_GROUP_VERSION, KIND_NETWORK)
@kopf.timer(API_GROUP_VERSION, KIND_NETWORK, interval=RECONCILE_INTERVAL)
def handle_network(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Network resource reconciliation."""
    _handler.handle(dict(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_NETWORK)
def handle_network_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle Network resource deletion."""
    _handler.handle_delete(dict(body))
