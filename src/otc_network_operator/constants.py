"""Constants for the OTC Network Operator."""

import os

# API Group
API_GROUP = "otc.peertech.de"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_PROVIDER_CONFIG = "ProviderConfig"
KIND_NETWORK = "Network"
KIND_SUBNET = "Subnet"
KIND_SECURITY_GROUP = "SecurityGroup"
KIND_SECURITY_GROUP_RULE = "SecurityGroupRule"
KIND_PUBLIC_IP = "PublicIP"
KIND_NAT_GATEWAY = "NATGateway"
KIND_SNAT_RULE = "SNATRule"

# Plural resource names as served by the API server
PLURALS = {
    KIND_PROVIDER_CONFIG: "providerconfigs",
    KIND_NETWORK: "networks",
    KIND_SUBNET: "subnets",
    KIND_SECURITY_GROUP: "securitygroups",
    KIND_SECURITY_GROUP_RULE: "securitygrouprules",
    KIND_PUBLIC_IP: "publicips",
    KIND_NAT_GATEWAY: "natgateways",
    KIND_SNAT_RULE: "snatrules",
}


def finalizer_for(kind: str) -> str:
    """Return the finalizer owned by the controller of ``kind``."""
    return f"{kind.lower()}.{API_GROUP}/finalizer"


# Field Manager / controller name used in logs
CONTROLLER_NAME = "otc-network-operator"

# Condition Types
COND_READY = "Ready"
COND_SYNCED = "Synced"
COND_DEPENDENCIES_READY = "DependenciesReady"

# Condition Reasons
REASON_CREATING = "Creating"
REASON_PROVISIONING = "Provisioning"
REASON_PROVISIONED = "Provisioned"
REASON_SYNCED = "Synced"
REASON_READY = "Ready"
REASON_STOPPED = "Stopped"
REASON_RECONCILING = "Reconciling"
REASON_DELETING = "Deleting"
REASON_DELETED = "Deleted"
REASON_DELETION_BLOCKED = "DeletionBlocked"
REASON_ORPHANED = "Orphaned"
REASON_UNKNOWN = "Unknown"
REASON_FAILED = "Failed"
REASON_VALIDATION_SUCCESSFUL = "ValidationSuccessful"
REASON_VALIDATION_FAILED = "ValidationFailed"
REASON_DEPENDENCIES_RESOLVED = "DependenciesResolved"
REASON_DEPENDENCIES_NOT_RESOLVED = "DependenciesNotResolved"
REASON_PROVIDER_CONFIG_READY = "ProviderConfigReady"
REASON_PROVIDER_CONFIG_NOT_READY = "ProviderConfigNotReady"
REASON_PROVIDER_CONFIG_ERROR = "ProviderConfigError"
REASON_PROVIDER_INITIALIZATION_FAILED = "ProviderInitializationFailed"
REASON_PROVIDER_ERROR = "ProviderError"
REASON_PROVISIONING_FAILED = "ProvisioningFailed"
REASON_UPDATE_FAILED = "UpdateFailed"
REASON_DELETION_FAILED = "DeletionFailed"
REASON_NOT_FOUND = "NotFound"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_SUCCEEDED = "ValidateSucceeded"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_CREATED = "Created"
EVENT_REASON_UPDATED = "Updated"
EVENT_REASON_DELETED = "Deleted"
EVENT_REASON_ORPHANED = "Orphaned"
EVENT_REASON_DELETION_BLOCKED = "DeletionBlocked"
EVENT_REASON_RECREATING = "Recreating"

# Requeue timings (seconds)
REQUEUE_DEFAULT = float(os.getenv("REQUEUE_DEFAULT_SECONDS", "30"))
REQUEUE_DEPENDENCY = float(os.getenv("REQUEUE_DEPENDENCY_SECONDS", "10"))
REQUEUE_POST_CREATE = float(os.getenv("REQUEUE_POST_CREATE_SECONDS", "5"))
REQUEUE_VALIDATION = float(os.getenv("REQUEUE_VALIDATION_SECONDS", "300"))
REQUEUE_IMMEDIATE = 1.0

# Periodic re-entry for steady-state drift and readiness checks
RECONCILE_INTERVAL = float(os.getenv("RECONCILE_INTERVAL_SECONDS", "300"))

# Create-path polling bounds
PROVIDER_WAIT_MAX_ATTEMPTS = int(os.getenv("PROVIDER_WAIT_MAX_ATTEMPTS", "60"))
PROVIDER_WAIT_DELAY = float(os.getenv("PROVIDER_WAIT_DELAY_SECONDS", "5"))
OTC_REQUEST_TIMEOUT = float(os.getenv("OTC_REQUEST_TIMEOUT_SECONDS", "30"))

# Credentials secret keys
SECRET_KEY_USERNAME = "username"
SECRET_KEY_PASSWORD = "password"
SECRET_KEY_TOKEN = "token"
SECRET_KEY_ACCESS_KEY = "accessKey"
SECRET_KEY_SECRET_KEY = "secretKey"

# Operator runtime
METRICS_PORT = int(os.getenv("METRICS_PORT", "8080"))
MAX_WORKERS = int(os.getenv("MAX_WORKERS", "4"))
K8S_REQUEST_TIMEOUT = float(os.getenv("K8S_REQUEST_TIMEOUT_SECONDS", "30"))
