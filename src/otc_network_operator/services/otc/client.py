"""OTC networking client built on an authenticated openstacksdk connection.

OTC exposes VPC, subnet and EIP management through its own v1 API, security
groups through VPC v3 and NAT through v2.0. The keystone session of the
connection signs every request; endpoints are derived from the identity URL.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable
from urllib.parse import urlparse

from keystoneauth1 import exceptions as ks_exceptions
from openstack import exceptions as sdk_exceptions
from openstack.connection import Connection

from ... import metrics
from ...constants import OTC_REQUEST_TIMEOUT, PROVIDER_WAIT_DELAY, PROVIDER_WAIT_MAX_ATTEMPTS
from ...exceptions import ProviderError, ProvisioningFailedError
from ...tracing import trace_span
from ...utils.rate_limit import rate_limit_otc
from ...utils.retry import MaxRetriesExceeded, RetryCancelled, retry
from .models import (
    CreateNATGatewayRequest,
    CreateNetworkRequest,
    CreatePublicIPRequest,
    CreateSecurityGroupRequest,
    CreateSecurityGroupRuleRequest,
    CreateSNATRuleRequest,
    CreateSubnetRequest,
    NATGatewayInfo,
    NetworkInfo,
    PublicIPInfo,
    ResourceInfo,
    SecurityGroupInfo,
    SecurityGroupRuleInfo,
    SNATRuleInfo,
    State,
    SubnetInfo,
    UpdateNATGatewayRequest,
    UpdateNetworkRequest,
    UpdatePublicIPRequest,
    UpdateSecurityGroupRequest,
    UpdateSecurityGroupRuleRequest,
    UpdateSNATRuleRequest,
    UpdateSubnetRequest,
)

logger = logging.getLogger(__name__)

PUBLIC_IP_TYPES = {"BGP": "5_bgp", "Mail": "5_mailbgp"}
BANDWIDTH_SHARE_TYPES = {"Dedicated": "PER", "Shared": "WHOLE"}
NAT_GATEWAY_TYPES = {"micro": "0", "small": "1", "medium": "2", "large": "3", "extra-large": "4"}

_NOT_FOUND = object()


def service_endpoint(identity_endpoint: str, service: str) -> str | None:
    """Derive ``https://vpc.eu-de.example.com`` from ``https://iam.eu-de.example.com/v3``."""
    parsed = urlparse(identity_endpoint)
    host = parsed.hostname or ""
    if not host.startswith("iam."):
        return None
    netloc = f"{service}.{host[len('iam.'):]}"
    if parsed.port:
        netloc = f"{netloc}:{parsed.port}"
    return f"{parsed.scheme or 'https'}://{netloc}"


class OTCClient:
    """OTC provider implementation."""

    def __init__(
        self,
        connection: Connection,
        identity_endpoint: str,
        region: str,
        project_id: str = "",
        cancel: threading.Event | None = None,
        timeout: float = OTC_REQUEST_TIMEOUT,
        wait_attempts: int = PROVIDER_WAIT_MAX_ATTEMPTS,
        wait_delay: float = PROVIDER_WAIT_DELAY,
    ) -> None:
        """Initialize the OTC client.

        Args:
            connection: Authenticated openstacksdk connection
            identity_endpoint: IAM endpoint URL the connection authenticated against
            region: OTC region (e.g. eu-de)
            project_id: Project to operate in (defaults to the token's project)
            cancel: Event that aborts create-path polling when set
            timeout: HTTP timeout in seconds
            wait_attempts: Maximum polls while waiting for a new resource
            wait_delay: Seconds between two polls
        """
        self.connection = connection
        self.identity_endpoint = identity_endpoint
        self.region = region
        self.project_id = project_id or connection.current_project_id
        self.cancel = cancel
        self.timeout = timeout
        self.wait_attempts = wait_attempts
        self.wait_delay = wait_delay
        self._endpoints: dict[str, str] = {}

    # Transport

    def _endpoint(self, service: str) -> str:
        if service not in self._endpoints:
            endpoint = service_endpoint(self.identity_endpoint, service)
            if endpoint is None:
                endpoint = self.connection.endpoint_for(service, region_name=self.region)
            if not endpoint:
                raise ProviderError(f"no endpoint found for service {service}")
            self._endpoints[service] = endpoint.rstrip("/")
        return self._endpoints[service]

    def _request(
        self,
        operation: str,
        method: str,
        service: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded body, or ``_NOT_FOUND`` on 404."""
        url = f"{self._endpoint(service)}{path}"
        with trace_span(f"otc.{operation}", attributes={"http.method": method, "otc.service": service}):
            try:
                response = rate_limit_otc(self.connection.session.request)(
                    url,
                    method,
                    json=body,
                    raise_exc=False,
                    timeout=self.timeout,
                )
            except ks_exceptions.ClientException as e:
                metrics.provider_operations_total.labels(operation=operation, result="error").inc()
                raise ProviderError(f"{operation} failed: {e}") from e

        if response.status_code == 404:
            metrics.provider_operations_total.labels(operation=operation, result="not_found").inc()
            return _NOT_FOUND
        if response.status_code >= 400:
            metrics.provider_operations_total.labels(operation=operation, result="error").inc()
            raise ProviderError(f"{operation} failed with HTTP {response.status_code}: {response.text}")

        metrics.provider_operations_total.labels(operation=operation, result="success").inc()
        if not response.content:
            return {}
        return response.json()

    def _wait_until_ready(
        self,
        label: str,
        resource_id: str,
        get: Callable[[str], ResourceInfo | None],
    ) -> None:
        """Poll ``get`` until the new resource is ready.

        Raises:
            ProvisioningFailedError: If the resource reached a failed state, or
                polling gave up (the cause is then MaxRetriesExceeded or
                RetryCancelled). The error carries ``resource_id`` so the
                caller can record it instead of creating a duplicate.
        """
        failed: list[ResourceInfo] = []

        def check() -> bool:
            info = get(resource_id)
            if info is None:
                return False
            state = info.state()
            if state is State.FAILED:
                failed.append(info)
                return True
            return state is State.READY

        try:
            retry(
                check,
                max_attempts=self.wait_attempts,
                delay=self.wait_delay,
                cancel=self.cancel,
                retry_on=(ProviderError,),
            )
        except (MaxRetriesExceeded, RetryCancelled) as e:
            raise ProvisioningFailedError(
                f"failed to wait for {label} {resource_id}: {e}", resource_id=resource_id
            ) from e

        if failed:
            raise ProvisioningFailedError(failed[0].message(), resource_id=resource_id)

    @property
    def _v1(self) -> str:
        return f"/v1/{self.project_id}"

    @property
    def _v3(self) -> str:
        return f"/v3/{self.project_id}/vpc"

    # Validation

    def validate(self) -> None:
        """Check identity access and VPC permissions."""
        try:
            list(self.connection.identity.regions())
        except (ks_exceptions.ClientException, sdk_exceptions.SDKException) as e:
            raise ProviderError(f"identity validation failed: failed to list regions: {e}") from e

        try:
            self._request("list_vpcs", "GET", "vpc", f"{self._v1}/vpcs?limit=1")
        except ProviderError as e:
            raise ProviderError(f"network validation failed: could not list VPCs (check permissions): {e}") from e

        try:
            self._request("list_subnets", "GET", "vpc", f"{self._v1}/subnets?limit=1")
        except ProviderError as e:
            raise ProviderError(f"network validation failed: could not list subnets (check permissions): {e}") from e

    # Network (VPC)

    def create_network(self, request: CreateNetworkRequest) -> str:
        body = {"vpc": {"name": request.name, "description": request.description, "cidr": request.cidr}}
        data = self._request("create_network", "POST", "vpc", f"{self._v1}/vpcs", body)
        network_id = data["vpc"]["id"]
        logger.info(f"Created network {request.name} ({network_id}), waiting for it to become active")
        self._wait_until_ready("network", network_id, self.get_network)
        return network_id

    def get_network(self, network_id: str) -> NetworkInfo | None:
        data = self._request("get_network", "GET", "vpc", f"{self._v1}/vpcs/{network_id}")
        if data is _NOT_FOUND:
            return None
        vpc = data["vpc"]
        return NetworkInfo(
            id=vpc["id"],
            status=vpc.get("status", ""),
            name=vpc.get("name", ""),
            description=vpc.get("description", ""),
            cidr=vpc.get("cidr", ""),
        )

    def update_network(self, network_id: str, request: UpdateNetworkRequest) -> None:
        body = {"vpc": {"description": request.description}}
        if self._request("update_network", "PUT", "vpc", f"{self._v1}/vpcs/{network_id}", body) is _NOT_FOUND:
            raise ProviderError(f"failed to update network {network_id}: not found")

    def delete_network(self, network_id: str) -> None:
        self._request("delete_network", "DELETE", "vpc", f"{self._v1}/vpcs/{network_id}")

    # Subnet

    def create_subnet(self, request: CreateSubnetRequest) -> str:
        body = {
            "subnet": {
                "name": request.name,
                "description": request.description,
                "cidr": request.cidr,
                "gateway_ip": request.gateway_ip,
                "vpc_id": request.network_id,
            }
        }
        data = self._request("create_subnet", "POST", "vpc", f"{self._v1}/subnets", body)
        subnet_id = data["subnet"]["id"]
        logger.info(f"Created subnet {request.name} ({subnet_id}), waiting for it to become active")
        self._wait_until_ready("subnet", subnet_id, self.get_subnet)
        return subnet_id

    def get_subnet(self, subnet_id: str) -> SubnetInfo | None:
        data = self._request("get_subnet", "GET", "vpc", f"{self._v1}/subnets/{subnet_id}")
        if data is _NOT_FOUND:
            return None
        subnet = data["subnet"]
        return SubnetInfo(
            id=subnet["id"],
            status=subnet.get("status", ""),
            name=subnet.get("name", ""),
            description=subnet.get("description", ""),
            cidr=subnet.get("cidr", ""),
            gateway_ip=subnet.get("gateway_ip", ""),
            network_id=subnet.get("vpc_id", ""),
        )

    def update_subnet(self, subnet_id: str, request: UpdateSubnetRequest) -> None:
        body = {"subnet": {"name": request.name, "description": request.description}}
        path = f"{self._v1}/vpcs/{request.network_id}/subnets/{subnet_id}"
        if self._request("update_subnet", "PUT", "vpc", path, body) is _NOT_FOUND:
            raise ProviderError(f"failed to update subnet {subnet_id}: not found")

    def delete_subnet(self, subnet_id: str, network_id: str = "") -> None:
        if not network_id:
            info = self.get_subnet(subnet_id)
            if info is None:
                return
            network_id = info.network_id
        self._request("delete_subnet", "DELETE", "vpc", f"{self._v1}/vpcs/{network_id}/subnets/{subnet_id}")

    # Security group

    def create_security_group(self, request: CreateSecurityGroupRequest) -> str:
        body = {"security_group": {"name": request.name, "description": request.description}}
        data = self._request("create_security_group", "POST", "vpc", f"{self._v3}/security-groups", body)
        return data["security_group"]["id"]

    def get_security_group(self, security_group_id: str) -> SecurityGroupInfo | None:
        data = self._request(
            "get_security_group", "GET", "vpc", f"{self._v3}/security-groups/{security_group_id}"
        )
        if data is _NOT_FOUND:
            return None
        group = data["security_group"]
        return SecurityGroupInfo(
            id=group["id"],
            name=group.get("name", ""),
            description=group.get("description", ""),
        )

    def update_security_group(self, security_group_id: str, request: UpdateSecurityGroupRequest) -> None:
        body = {"security_group": {"description": request.description}}
        path = f"{self._v3}/security-groups/{security_group_id}"
        if self._request("update_security_group", "PUT", "vpc", path, body) is _NOT_FOUND:
            raise ProviderError(f"failed to update security group {security_group_id}: not found")

    def delete_security_group(self, security_group_id: str) -> None:
        self._request(
            "delete_security_group", "DELETE", "vpc", f"{self._v3}/security-groups/{security_group_id}"
        )

    # Security group rule

    def create_security_group_rule(self, request: CreateSecurityGroupRuleRequest) -> str:
        rule: dict[str, Any] = {
            "security_group_id": request.security_group_id,
            "description": request.description,
            "direction": request.direction,
            "ethertype": request.ethertype,
            "action": request.action,
        }
        # The API treats an absent protocol as "any protocol".
        if request.protocol and request.protocol != "all":
            rule["protocol"] = request.protocol
        if request.multiport:
            rule["multiport"] = request.multiport
        if request.priority is not None:
            rule["priority"] = request.priority

        data = self._request(
            "create_security_group_rule",
            "POST",
            "vpc",
            f"{self._v3}/security-group-rules",
            {"security_group_rule": rule},
        )
        return data["security_group_rule"]["id"]

    def get_security_group_rule(self, rule_id: str) -> SecurityGroupRuleInfo | None:
        data = self._request(
            "get_security_group_rule", "GET", "vpc", f"{self._v3}/security-group-rules/{rule_id}"
        )
        if data is _NOT_FOUND:
            return None
        rule = data["security_group_rule"]
        return SecurityGroupRuleInfo(
            id=rule["id"],
            security_group_id=rule.get("security_group_id", ""),
            description=rule.get("description", ""),
            direction=rule.get("direction", ""),
            protocol=rule.get("protocol") or "all",
            ethertype=rule.get("ethertype", ""),
            multiport=rule.get("multiport") or "",
            action=rule.get("action", ""),
            priority=int(rule.get("priority") or 0),
        )

    def update_security_group_rule(self, rule_id: str, request: UpdateSecurityGroupRuleRequest) -> None:
        body = {"security_group_rule": {"description": request.description}}
        path = f"{self._v3}/security-group-rules/{rule_id}"
        if self._request("update_security_group_rule", "PUT", "vpc", path, body) is _NOT_FOUND:
            raise ProviderError(f"failed to update security group rule {rule_id}: not found")

    def delete_security_group_rule(self, rule_id: str) -> None:
        self._request(
            "delete_security_group_rule", "DELETE", "vpc", f"{self._v3}/security-group-rules/{rule_id}"
        )

    # Public IP (EIP)

    def create_public_ip(self, request: CreatePublicIPRequest) -> str:
        if request.type not in PUBLIC_IP_TYPES:
            raise ProviderError(f"unsupported public IP type: {request.type}")
        if request.bandwidth_share_type not in BANDWIDTH_SHARE_TYPES:
            raise ProviderError(f"unsupported bandwidth share type: {request.bandwidth_share_type}")

        body = {
            "publicip": {"type": PUBLIC_IP_TYPES[request.type]},
            "bandwidth": {
                "name": request.bandwidth_name,
                "size": request.bandwidth_size,
                "share_type": BANDWIDTH_SHARE_TYPES[request.bandwidth_share_type],
            },
        }
        data = self._request("create_public_ip", "POST", "vpc", f"{self._v1}/publicips", body)
        public_ip_id = data["publicip"]["id"]
        logger.info(f"Created public IP {request.name} ({public_ip_id}), waiting for it to become available")
        self._wait_until_ready("public IP", public_ip_id, self._get_public_ip_for_wait)
        return public_ip_id

    def _get_public_ip_for_wait(self, public_ip_id: str) -> PublicIPInfo | None:
        # A fresh EIP is unbound, which the API reports as DOWN.
        info = self.get_public_ip(public_ip_id)
        if info is not None and info.status == "DOWN":
            info.status = "ACTIVE"
        return info

    def get_public_ip(self, public_ip_id: str) -> PublicIPInfo | None:
        data = self._request("get_public_ip", "GET", "vpc", f"{self._v1}/publicips/{public_ip_id}")
        if data is _NOT_FOUND:
            return None
        eip = data["publicip"]
        return PublicIPInfo(
            id=eip["id"],
            status=eip.get("status", ""),
            name=eip.get("alias", "") or "",
            public_address=eip.get("public_ip_address", ""),
            private_address=eip.get("private_ip_address", "") or "",
            type=eip.get("type", ""),
            bandwidth_id=eip.get("bandwidth_id", ""),
            bandwidth_name=eip.get("bandwidth_name", ""),
            bandwidth_size=int(eip.get("bandwidth_size") or 0),
            bandwidth_share_type=eip.get("bandwidth_share_type", ""),
        )

    def update_public_ip(self, public_ip_id: str, request: UpdatePublicIPRequest) -> None:
        info = self.get_public_ip(public_ip_id)
        if info is None:
            raise ProviderError(f"failed to update public IP {public_ip_id}: not found")
        body = {"bandwidth": {"size": request.bandwidth_size}}
        path = f"{self._v1}/bandwidths/{info.bandwidth_id}"
        if self._request("update_bandwidth", "PUT", "vpc", path, body) is _NOT_FOUND:
            raise ProviderError(f"failed to update bandwidth of public IP {public_ip_id}: not found")

    def delete_public_ip(self, public_ip_id: str) -> None:
        self._request("delete_public_ip", "DELETE", "vpc", f"{self._v1}/publicips/{public_ip_id}")

    # NAT gateway

    def create_nat_gateway(self, request: CreateNATGatewayRequest) -> str:
        if request.type not in NAT_GATEWAY_TYPES:
            raise ProviderError(f"unsupported NAT gateway type: {request.type}")

        body = {
            "nat_gateway": {
                "name": request.name,
                "description": request.description,
                "spec": NAT_GATEWAY_TYPES[request.type],
                "router_id": request.network_id,
                "internal_network_id": request.subnet_id,
            }
        }
        data = self._request("create_nat_gateway", "POST", "nat", "/v2.0/nat_gateways", body)
        nat_gateway_id = data["nat_gateway"]["id"]
        logger.info(f"Created NAT gateway {request.name} ({nat_gateway_id}), waiting for it to become active")
        self._wait_until_ready("NAT gateway", nat_gateway_id, self.get_nat_gateway)
        return nat_gateway_id

    def get_nat_gateway(self, nat_gateway_id: str) -> NATGatewayInfo | None:
        data = self._request("get_nat_gateway", "GET", "nat", f"/v2.0/nat_gateways/{nat_gateway_id}")
        if data is _NOT_FOUND:
            return None
        gateway = data["nat_gateway"]
        return NATGatewayInfo(
            id=gateway["id"],
            status=gateway.get("status", ""),
            name=gateway.get("name", ""),
            description=gateway.get("description", ""),
            type=gateway.get("spec", ""),
            network_id=gateway.get("router_id", ""),
            subnet_id=gateway.get("internal_network_id", ""),
        )

    def update_nat_gateway(self, nat_gateway_id: str, request: UpdateNATGatewayRequest) -> None:
        update: dict[str, Any] = {"description": request.description}
        if request.type:
            if request.type not in NAT_GATEWAY_TYPES:
                raise ProviderError(f"unsupported NAT gateway type: {request.type}")
            update["spec"] = NAT_GATEWAY_TYPES[request.type]
        path = f"/v2.0/nat_gateways/{nat_gateway_id}"
        if self._request("update_nat_gateway", "PUT", "nat", path, {"nat_gateway": update}) is _NOT_FOUND:
            raise ProviderError(f"failed to update NAT gateway {nat_gateway_id}: not found")

    def delete_nat_gateway(self, nat_gateway_id: str) -> None:
        self._request("delete_nat_gateway", "DELETE", "nat", f"/v2.0/nat_gateways/{nat_gateway_id}")

    # SNAT rule

    def create_snat_rule(self, request: CreateSNATRuleRequest) -> str:
        body = {
            "snat_rule": {
                "nat_gateway_id": request.nat_gateway_id,
                "network_id": request.subnet_id,
                "floating_ip_id": request.public_ip_id,
                "description": request.description,
            }
        }
        data = self._request("create_snat_rule", "POST", "nat", "/v2.0/snat_rules", body)
        snat_rule_id = data["snat_rule"]["id"]
        logger.info(f"Created SNAT rule {snat_rule_id}, waiting for it to become active")
        self._wait_until_ready("SNAT rule", snat_rule_id, self.get_snat_rule)
        return snat_rule_id

    def get_snat_rule(self, snat_rule_id: str) -> SNATRuleInfo | None:
        data = self._request("get_snat_rule", "GET", "nat", f"/v2.0/snat_rules/{snat_rule_id}")
        if data is _NOT_FOUND:
            return None
        rule = data["snat_rule"]
        return SNATRuleInfo(
            id=rule["id"],
            status=rule.get("status", ""),
            description=rule.get("description", ""),
            nat_gateway_id=rule.get("nat_gateway_id", ""),
            subnet_id=rule.get("network_id", ""),
            public_ip_id=rule.get("floating_ip_id", ""),
        )

    def update_snat_rule(self, snat_rule_id: str, request: UpdateSNATRuleRequest) -> None:
        body = {"snat_rule": {"nat_gateway_id": request.nat_gateway_id, "description": request.description}}
        path = f"/v2.0/snat_rules/{snat_rule_id}"
        if self._request("update_snat_rule", "PUT", "nat", path, body) is _NOT_FOUND:
            raise ProviderError(f"failed to update SNAT rule {snat_rule_id}: not found")

    def delete_snat_rule(self, snat_rule_id: str) -> None:
        self._request("delete_snat_rule", "DELETE", "nat", f"/v2.0/snat_rules/{snat_rule_id}")
