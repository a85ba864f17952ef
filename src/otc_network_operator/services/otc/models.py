"""Data models for OTC networking resources."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar, Mapping


class State(enum.Enum):
    """Generalized lifecycle state of an external resource."""

    UNKNOWN = "Unknown"
    PROVISIONING = "Provisioning"
    READY = "Ready"
    STOPPED = "Stopped"
    FAILED = "Failed"


@dataclass
class ResourceInfo:
    """Live view of an external resource, classified from its raw status."""

    label: ClassVar[str] = "Resource"
    states: ClassVar[Mapping[str, State]] = {}

    id: str = ""
    status: str = ""

    def state(self) -> State:
        return self.states.get(self.status, State.UNKNOWN)

    def message(self) -> str:
        state = self.state()
        if state is State.READY:
            return f"{self.label} is active"
        if state is State.FAILED:
            return f"{self.label} is in a failed state: {self.status}"
        if state is State.PROVISIONING:
            return f"{self.label} busy with status: {self.status}"
        if state is State.STOPPED:
            return f"{self.label} is stopped: {self.status}"
        return f"{self.label} is in an unhandled state: {self.status}"


_VPC_STATES = {
    "ACTIVE": State.READY,
    "OK": State.READY,
    "DOWN": State.FAILED,
    "ERROR": State.FAILED,
    "error": State.FAILED,
    "CREATING": State.PROVISIONING,
}

_NAT_STATES = {
    "ACTIVE": State.READY,
    "INACTIVE": State.FAILED,
    "DOWN": State.FAILED,
    "ERROR": State.FAILED,
    "PENDING_CREATE": State.PROVISIONING,
    "PENDING_UPDATE": State.PROVISIONING,
    "PENDING_DELETE": State.PROVISIONING,
}


@dataclass
class NetworkInfo(ResourceInfo):
    label: ClassVar[str] = "Network"
    states: ClassVar[Mapping[str, State]] = _VPC_STATES

    name: str = ""
    description: str = ""
    cidr: str = ""


@dataclass
class SubnetInfo(ResourceInfo):
    label: ClassVar[str] = "Subnet"
    states: ClassVar[Mapping[str, State]] = {**_VPC_STATES, "UNKNOWN": State.PROVISIONING}

    name: str = ""
    description: str = ""
    cidr: str = ""
    gateway_ip: str = ""
    network_id: str = ""


@dataclass
class SecurityGroupInfo(ResourceInfo):
    """Security groups have no lifecycle status; an existing one is usable."""

    label: ClassVar[str] = "SecurityGroup"

    name: str = ""
    description: str = ""

    def state(self) -> State:
        return State.READY


@dataclass
class SecurityGroupRuleInfo(ResourceInfo):
    label: ClassVar[str] = "SecurityGroupRule"

    security_group_id: str = ""
    description: str = ""
    direction: str = ""
    protocol: str = ""
    ethertype: str = ""
    multiport: str = ""
    action: str = ""
    priority: int = 0

    def state(self) -> State:
        return State.READY


@dataclass
class PublicIPInfo(ResourceInfo):
    label: ClassVar[str] = "PublicIP"
    states: ClassVar[Mapping[str, State]] = {
        "ACTIVE": State.READY,
        "OK": State.READY,
        "ELB": State.READY,
        "VPN": State.READY,
        "DOWN": State.STOPPED,
        "FREEZED": State.STOPPED,
        "ERROR": State.FAILED,
        "error": State.FAILED,
        "BINDING": State.PROVISIONING,
        "NOTIFYING": State.PROVISIONING,
        "NOTIFY_DELETE": State.PROVISIONING,
        "PENDING_CREATE": State.PROVISIONING,
        "PENDING_UPDATE": State.PROVISIONING,
        "PENDING_DELETE": State.PROVISIONING,
    }

    name: str = ""
    public_address: str = ""
    private_address: str = ""
    type: str = ""
    bandwidth_id: str = ""
    bandwidth_name: str = ""
    bandwidth_size: int = 0
    bandwidth_share_type: str = ""


@dataclass
class NATGatewayInfo(ResourceInfo):
    label: ClassVar[str] = "NATGateway"
    states: ClassVar[Mapping[str, State]] = _NAT_STATES

    name: str = ""
    description: str = ""
    type: str = ""
    network_id: str = ""
    subnet_id: str = ""


@dataclass
class SNATRuleInfo(ResourceInfo):
    label: ClassVar[str] = "SNATRule"
    states: ClassVar[Mapping[str, State]] = _NAT_STATES

    description: str = ""
    nat_gateway_id: str = ""
    subnet_id: str = ""
    public_ip_id: str = ""


# Requests


@dataclass
class CreateNetworkRequest:
    name: str
    cidr: str
    description: str = ""


@dataclass
class UpdateNetworkRequest:
    description: str = ""


@dataclass
class CreateSubnetRequest:
    name: str
    cidr: str
    gateway_ip: str
    network_id: str
    description: str = ""


@dataclass
class UpdateSubnetRequest:
    name: str
    network_id: str
    description: str = ""


@dataclass
class CreateSecurityGroupRequest:
    name: str
    description: str = ""


@dataclass
class UpdateSecurityGroupRequest:
    description: str = ""


@dataclass
class CreateSecurityGroupRuleRequest:
    security_group_id: str
    direction: str
    description: str = ""
    protocol: str = "all"
    ethertype: str = "IPv4"
    multiport: str = ""
    action: str = "allow"
    priority: int | None = None


@dataclass
class UpdateSecurityGroupRuleRequest:
    description: str = ""


@dataclass
class CreatePublicIPRequest:
    name: str
    type: str
    bandwidth_name: str
    bandwidth_size: int
    bandwidth_share_type: str


@dataclass
class UpdatePublicIPRequest:
    bandwidth_size: int


@dataclass
class CreateNATGatewayRequest:
    name: str
    type: str
    network_id: str
    subnet_id: str
    description: str = ""


@dataclass
class UpdateNATGatewayRequest:
    description: str = ""
    type: str = ""


@dataclass
class CreateSNATRuleRequest:
    nat_gateway_id: str
    subnet_id: str
    public_ip_id: str
    description: str = ""


@dataclass
class UpdateSNATRuleRequest:
    nat_gateway_id: str
    description: str = ""
