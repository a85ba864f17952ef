"""Exception hierarchy for the OTC Network Operator."""

from __future__ import annotations


class OperatorError(Exception):
    """Base class for all errors raised by the operator."""


class ProviderConfigNotFoundError(OperatorError):
    """The referenced ProviderConfig does not exist."""

    def __init__(self, name: str, namespace: str):
        self.name = name
        self.namespace = namespace
        super().__init__(f"ProviderConfig '{name}' not found in namespace '{namespace}'")


class ProviderConfigNotReadyError(OperatorError):
    """The referenced ProviderConfig exists but is not Ready."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"referenced ProviderConfig '{name}' is not ready: {reason}")


class CredentialsError(OperatorError):
    """The credentials secret is missing or unusable."""


class DependencyError(OperatorError):
    """A dependency could not be resolved to a ready external ID."""


class InvalidDependencyError(DependencyError):
    """A dependency does not populate exactly one of ID, reference and selector."""


class DependencyNotFoundError(DependencyError):
    """The referenced object does not exist or no object matches the selector."""


class DependencyAmbiguousError(DependencyError):
    """A selector matched more than one object."""


class DependencyNotReadyError(DependencyError):
    """The dependency exists but has no external ID or is not Ready."""


class ReferenceCheckError(OperatorError):
    """Listing dependents failed while checking whether deletion is safe."""

    def __init__(self, resource: str, error: Exception):
        self.resource = resource
        self.error = error
        super().__init__(f"list {resource}: {error}")


class ProviderError(OperatorError):
    """A call to the cloud API failed.

    ``resource_id`` is set when the failure happened after the cloud had
    already assigned an ID to a new resource.
    """

    def __init__(self, message: str, resource_id: str = ""):
        self.resource_id = resource_id
        super().__init__(message)


class ProvisioningFailedError(ProviderError):
    """The cloud reported a failed state while the resource was being created."""
