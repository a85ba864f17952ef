"""Handler for PublicIP CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP_VERSION, KIND_PUBLIC_IP, RECONCILE_INTERVAL
from ..dependencies import SNAT_RULES_BY_PUBLIC_IP
from ..models import Resource
from ..reconciler import KindLogic
from ..services.otc.base import OTCProvider
from ..services.otc.models import CreatePublicIPRequest, PublicIPInfo, UpdatePublicIPRequest
from .base import ManagedResourceHandler


class PublicIPLogic(KindLogic):
    """An elastic IP with its own dedicated or shared bandwidth.

    Resizing the bandwidth is the only supported change.
    """

    kind = KIND_PUBLIC_IP
    reference_checks = (SNAT_RULES_BY_PUBLIC_IP,)

    def create(self, provider: OTCProvider, resource: Resource, resolved: dict[str, str]) -> str:
        spec = resource.spec
        return provider.create_public_ip(
            CreatePublicIPRequest(
                name=resource.name,
                type=spec.get("type", ""),
                bandwidth_name=f"bandwidth-{resource.name}",
                bandwidth_size=int(spec.get("bandwidthSize") or 0),
                bandwidth_share_type=spec.get("bandwidthShareType", ""),
            )
        )

    def get(self, provider: OTCProvider, resource: Resource) -> PublicIPInfo | None:
        return provider.get_public_ip(resource.external_id)

    def detect_drift(self, spec: dict[str, Any], baseline: dict[str, Any]) -> UpdatePublicIPRequest | None:
        desired = int(spec.get("bandwidthSize") or 0)
        if desired != int(baseline.get("bandwidthSize") or 0):
            return UpdatePublicIPRequest(bandwidth_size=desired)
        return None

    def apply_update(self, provider: OTCProvider, resource: Resource, update: UpdatePublicIPRequest) -> None:
        provider.update_public_ip(resource.external_id, update)

    def delete(self, provider: OTCProvider, resource: Resource) -> None:
        provider.delete_public_ip(resource.external_id)


_handler = ManagedResourceHandler(PublicIPLogic())


@kopf.on.create(API_GROUP_VERSION, KIND_PUBLIC_IP)
@kopf.on.update(API_GROUP_VERSION, KIND_PUBLIC_IP)
@kopf.on.resume(API_GROUP_VERSION, KIND_PUBLIC_IP)
@kopf.timer(API_GROUP_VERSION, KIND_PUBLIC_IP, interval=RECONCILE_INTERVAL)
def handle_public_ip(body: kopf.Body, **kwargs: Any) -> None:
    """Handle PublicIP resource reconciliation."""
    _handler.handle(dict(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_PUBLIC_IP)
def handle_public_ip_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle PublicIP resource deletion."""
    _handler.handle_delete(dict(body))
