"""Base OTC provider interface."""

from __future__ import annotations

from typing import Protocol

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
    SecurityGroupInfo,
    SecurityGroupRuleInfo,
    SNATRuleInfo,
    SubnetInfo,
    UpdateNATGatewayRequest,
    UpdateNetworkRequest,
    UpdatePublicIPRequest,
    UpdateSecurityGroupRequest,
    UpdateSecurityGroupRuleRequest,
    UpdateSNATRuleRequest,
    UpdateSubnetRequest,
)


class OTCProvider(Protocol):
    """Protocol defining the OTC networking operations used by the controllers.

    ``create_*`` returns the new external ID once the resource is ready,
    ``get_*`` returns None when the resource does not exist and ``delete_*``
    treats a missing resource as success.
    """

    def validate(self) -> None:
        """Check that the credentials work and may list networking resources."""
        ...

    def create_network(self, request: CreateNetworkRequest) -> str: ...

    def get_network(self, network_id: str) -> NetworkInfo | None: ...

    def update_network(self, network_id: str, request: UpdateNetworkRequest) -> None: ...

    def delete_network(self, network_id: str) -> None: ...

    def create_subnet(self, request: CreateSubnetRequest) -> str: ...

    def get_subnet(self, subnet_id: str) -> SubnetInfo | None: ...

    def update_subnet(self, subnet_id: str, request: UpdateSubnetRequest) -> None: ...

    def delete_subnet(self, subnet_id: str, network_id: str = "") -> None:
        """Delete a subnet. The parent network is looked up when not given."""
        ...

    def create_security_group(self, request: CreateSecurityGroupRequest) -> str: ...

    def get_security_group(self, security_group_id: str) -> SecurityGroupInfo | None: ...

    def update_security_group(
        self, security_group_id: str, request: UpdateSecurityGroupRequest
    ) -> None: ...

    def delete_security_group(self, security_group_id: str) -> None: ...

    def create_security_group_rule(self, request: CreateSecurityGroupRuleRequest) -> str: ...

    def get_security_group_rule(self, rule_id: str) -> SecurityGroupRuleInfo | None: ...

    def update_security_group_rule(
        self, rule_id: str, request: UpdateSecurityGroupRuleRequest
    ) -> None: ...

    def delete_security_group_rule(self, rule_id: str) -> None: ...

    def create_public_ip(self, request: CreatePublicIPRequest) -> str: ...

    def get_public_ip(self, public_ip_id: str) -> PublicIPInfo | None: ...

    def update_public_ip(self, public_ip_id: str, request: UpdatePublicIPRequest) -> None: ...

    def delete_public_ip(self, public_ip_id: str) -> None: ...

    def create_nat_gateway(self, request: CreateNATGatewayRequest) -> str: ...

    def get_nat_gateway(self, nat_gateway_id: str) -> NATGatewayInfo | None: ...

    def update_nat_gateway(self, nat_gateway_id: str, request: UpdateNATGatewayRequest) -> None: ...

    def delete_nat_gateway(self, nat_gateway_id: str) -> None: ...

    def create_snat_rule(self, request: CreateSNATRuleRequest) -> str: ...

    def get_snat_rule(self, snat_rule_id: str) -> SNATRuleInfo | None: ...

    def update_snat_rule(self, snat_rule_id: str, request: UpdateSNATRuleRequest) -> None: ...

    def delete_snat_rule(self, snat_rule_id: str) -> None: ...
