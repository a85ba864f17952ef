"""Tests for the generic reconciliation engine."""

from __future__ import annotations

import pytest
from kubernetes.client.exceptions import ApiException

from otc_network_operator.constants import (
    KIND_NETWORK,
    KIND_NAT_GATEWAY,
    KIND_PROVIDER_CONFIG,
    KIND_PUBLIC_IP,
    KIND_SUBNET,
    REQUEUE_DEFAULT,
    REQUEUE_DEPENDENCY,
    REQUEUE_IMMEDIATE,
    REQUEUE_POST_CREATE,
    finalizer_for,
)
from otc_network_operator.exceptions import ProviderError, ReferenceCheckError
from otc_network_operator.handlers.network import NetworkLogic
from otc_network_operator.handlers.public_ip import PublicIPLogic
from otc_network_operator.handlers.subnet import SubnetLogic
from otc_network_operator.models import ObjectKey
from otc_network_operator.reconciler import GenericReconciler, Result, reconcile
from otc_network_operator.services.otc.models import (
    NetworkInfo,
    PublicIPInfo,
    UpdateNetworkRequest,
)
from otc_network_operator.utils.cache import ProviderCache
from otc_network_operator.utils.conditions import ConditionSet

from .conftest import make_object, ready_condition, ready_dependency

NETWORK_FINALIZER = finalizer_for(KIND_NETWORK)
NETWORK_SPEC = {
    "providerConfigRef": {"name": "otc"},
    "cidr": "10.0.0.0/16",
    "description": "main",
}


def conditions_of(store, kind, name) -> ConditionSet:
    return ConditionSet.from_list(store.stored(kind, name)["status"].get("conditions"))


def run(store, providers, logic, name="vpc") -> Result:
    return reconcile(store, providers, logic, ObjectKey("default", name))


def add_network(store, status=None, spec=None, **kwargs):
    return store.add(
        KIND_NETWORK,
        make_object(
            "vpc",
            spec=spec or dict(NETWORK_SPEC),
            status=status,
            finalizers=kwargs.pop("finalizers", [NETWORK_FINALIZER]),
            **kwargs,
        ),
    )


def provisioned_status(**extra):
    status = {
        "externalID": "vpc-1",
        "lastAppliedSpec": dict(NETWORK_SPEC),
        "conditions": [ready_condition()],
    }
    status.update(extra)
    return status


class TestReconcileEntry:
    """Test cases for loading and finalizer handling."""

    def test_missing_object_is_a_no_op(self, store, providers, provider):
        """Test that a vanished object is not reconciled."""
        assert run(store, providers, NetworkLogic()) == Result()
        provider.create_network.assert_not_called()

    def test_adds_finalizer_first(self, store, providers, provider):
        """Test that the finalizer is added before anything else happens."""
        add_network(store, finalizers=[])

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_IMMEDIATE)
        stored = store.stored(KIND_NETWORK, "vpc")
        assert stored["metadata"]["finalizers"] == [NETWORK_FINALIZER]
        assert stored["status"]["observedGeneration"] == 1
        provider.create_network.assert_not_called()

    def test_conflict_requeues_immediately(self, store, providers):
        """Test that a stale resourceVersion turns into an immediate requeue."""
        body = add_network(store, finalizers=[])
        body["metadata"]["resourceVersion"] = "stale"

        result = GenericReconciler(store, providers, NetworkLogic(), body).run()

        assert result == Result(REQUEUE_IMMEDIATE)
        assert store.stored(KIND_NETWORK, "vpc")["metadata"]["finalizers"] == []


class TestProviderConfigCheck:
    """Test cases for ProviderConfig gating."""

    def test_missing_provider_config(self, store, providers, provider):
        """Test that a missing ProviderConfig blocks creation."""
        add_network(store, spec={**NETWORK_SPEC, "providerConfigRef": {"name": "missing"}})

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_DEFAULT)
        cond = conditions_of(store, KIND_NETWORK, "vpc").get("DependenciesReady")
        assert cond.status is False
        assert cond.reason == "ProviderConfigNotReady"
        assert cond.message == "ProviderConfig 'missing' not found in namespace 'default'"
        provider.create_network.assert_not_called()

    def test_provider_config_not_ready(self, store, providers, provider):
        """Test that a ProviderConfig that is not Ready blocks creation."""
        store.add(
            KIND_PROVIDER_CONFIG,
            make_object(
                "pending",
                status={"conditions": [ready_condition("False", "Provider validation failed: denied")]},
            ),
        )
        add_network(store, spec={**NETWORK_SPEC, "providerConfigRef": {"name": "pending"}})

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_DEFAULT)
        cond = conditions_of(store, KIND_NETWORK, "vpc").get("DependenciesReady")
        assert cond.message == (
            "referenced ProviderConfig 'pending' is not ready: Provider validation failed: denied"
        )

    def test_provider_client_failure(self, store, provider):
        """Test that a failing client factory is reported as a ProviderConfig error."""
        def factory(provider_config):
            raise ProviderError("failed to authenticate")

        add_network(store)

        result = run(store, ProviderCache(store, factory), NetworkLogic())

        assert result == Result(REQUEUE_DEFAULT)
        ready = conditions_of(store, KIND_NETWORK, "vpc").get("Ready")
        assert ready.reason == "ProviderConfigError"
        assert ready.message == "failed to authenticate"


class TestCreate:
    """Test cases for the create path."""

    def test_create_records_external_id(self, store, providers, provider, mock_kopf_event):
        """Test that a successful create records the ID and the applied spec."""
        provider.create_network.return_value = "vpc-1"
        add_network(store)

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_POST_CREATE)
        status = store.stored(KIND_NETWORK, "vpc")["status"]
        assert status["externalID"] == "vpc-1"
        assert status["lastAppliedSpec"] == NETWORK_SPEC
        assert "resolvedDependencies" not in status
        request = provider.create_network.call_args[0][0]
        assert (request.name, request.cidr, request.description) == ("vpc", "10.0.0.0/16", "main")

        conditions = conditions_of(store, KIND_NETWORK, "vpc")
        assert conditions.get("Ready").reason == "Creating"
        assert conditions.is_true("DependenciesReady")
        reasons = [c.kwargs["reason"] for c in mock_kopf_event.call_args_list]
        assert "Created" in reasons

    def test_create_failure(self, store, providers, provider):
        """Test that a failed create is reported and retried."""
        provider.create_network.side_effect = ProviderError("quota exceeded")
        add_network(store)

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_DEFAULT)
        status = store.stored(KIND_NETWORK, "vpc")["status"]
        assert not status.get("externalID")
        ready = conditions_of(store, KIND_NETWORK, "vpc").get("Ready")
        assert ready.reason == "ProvisioningFailed"
        assert ready.message == "Failed to create resource: quota exceeded"

    def test_create_failure_adopts_assigned_id(self, store, providers, provider):
        """Test that an ID assigned before the failure is kept to avoid duplicates."""
        provider.create_network.side_effect = ProviderError("Network is in a failed state: ERROR", "vpc-9")
        add_network(store)

        run(store, providers, NetworkLogic())

        status = store.stored(KIND_NETWORK, "vpc")["status"]
        assert status["externalID"] == "vpc-9"
        assert status["lastAppliedSpec"] == NETWORK_SPEC

    def test_dependency_not_found(self, store, providers, provider):
        """Test that an unresolvable reference waits for the dependency."""
        store.add(
            KIND_SUBNET,
            make_object(
                "sn",
                spec={"providerConfigRef": {"name": "otc"}, "network": {"networkRef": {"name": "vpc"}}},
                finalizers=[finalizer_for(KIND_SUBNET)],
            ),
        )

        result = run(store, providers, SubnetLogic(), "sn")

        assert result == Result(REQUEUE_DEPENDENCY)
        conditions = conditions_of(store, KIND_SUBNET, "sn")
        deps = conditions.get("DependenciesReady")
        assert deps.status is False
        assert deps.message == 'failed to resolve network by reference: Network "vpc" not found'
        assert conditions.get("Ready").reason == "DependenciesNotResolved"
        provider.create_subnet.assert_not_called()

    def test_invalid_dependency(self, store, providers, provider):
        """Test that a dependency with two variants set is rejected before provider access."""
        store.add(
            KIND_SUBNET,
            make_object(
                "sn",
                spec={
                    "providerConfigRef": {"name": "otc"},
                    "network": {"networkID": "vpc-1", "networkRef": {"name": "vpc"}},
                },
                finalizers=[finalizer_for(KIND_SUBNET)],
            ),
        )

        result = run(store, providers, SubnetLogic(), "sn")

        assert result == Result(REQUEUE_DEFAULT)
        deps = conditions_of(store, KIND_SUBNET, "sn").get("DependenciesReady")
        assert "exactly one of networkID, networkRef or networkSelector" in deps.message

    def test_resolved_dependencies_recorded(self, store, providers, provider):
        """Test that resolved dependency IDs are written to status."""
        store.add(KIND_NETWORK, ready_dependency("vpc", "vpc-1"))
        store.add(
            KIND_SUBNET,
            make_object(
                "sn",
                spec={
                    "providerConfigRef": {"name": "otc"},
                    "network": {"networkRef": {"name": "vpc"}},
                    "cidr": "10.0.1.0/24",
                    "gatewayIP": "10.0.1.1",
                },
                finalizers=[finalizer_for(KIND_SUBNET)],
            ),
        )
        provider.create_subnet.return_value = "subnet-1"

        run(store, providers, SubnetLogic(), "sn")

        status = store.stored(KIND_SUBNET, "sn")["status"]
        assert status["resolvedDependencies"] == {"networkID": "vpc-1"}
        assert provider.create_subnet.call_args[0][0].network_id == "vpc-1"


class TestUpdate:
    """Test cases for the steady-state path."""

    def test_first_ready_is_provisioned(self, store, providers, provider):
        """Test that the first Ready observation sets Provisioned and lastSyncTime."""
        provider.get_network.return_value = NetworkInfo(id="vpc-1", status="ACTIVE")
        add_network(store, status=provisioned_status())

        result = run(store, providers, NetworkLogic())

        assert result == Result()
        status = store.stored(KIND_NETWORK, "vpc")["status"]
        assert status["lastSyncTime"]
        conditions = conditions_of(store, KIND_NETWORK, "vpc")
        assert conditions.get("Ready").reason == "Provisioned"
        assert conditions.is_true("Synced")

    def test_later_ready_is_synced(self, store, providers, provider):
        """Test that subsequent Ready observations use Synced/Ready."""
        provider.get_network.return_value = NetworkInfo(id="vpc-1", status="ACTIVE")
        add_network(store, status=provisioned_status(lastSyncTime="2024-01-01T00:00:00Z"))

        run(store, providers, NetworkLogic())

        conditions = conditions_of(store, KIND_NETWORK, "vpc")
        assert conditions.get("Ready").reason == "Ready"
        assert conditions.get("Synced").reason == "Synced"

    def test_reconcile_is_idempotent(self, store, providers, provider):
        """Test that reconciling an up-to-date object again changes nothing in the cloud."""
        provider.get_network.return_value = NetworkInfo(id="vpc-1", status="ACTIVE")
        add_network(store, status=provisioned_status())
        run(store, providers, NetworkLogic())
        first_status = store.stored(KIND_NETWORK, "vpc")["status"]
        provider.reset_mock()

        result = run(store, providers, NetworkLogic())

        assert result == Result()
        mutating = [
            name for name, _, _ in provider.method_calls
            if name.startswith(("create_", "update_", "delete_"))
        ]
        assert mutating == []
        status = store.stored(KIND_NETWORK, "vpc")["status"]
        assert status["externalID"] == first_status["externalID"]
        assert status["lastAppliedSpec"] == first_status["lastAppliedSpec"]
        assert conditions_of(store, KIND_NETWORK, "vpc").is_true("Ready")

    def test_missing_baseline_is_established(self, store, providers, provider):
        """Test that a missing lastAppliedSpec is set from the current spec."""
        status = provisioned_status()
        del status["lastAppliedSpec"]
        add_network(store, status=status)

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_IMMEDIATE)
        assert store.stored(KIND_NETWORK, "vpc")["status"]["lastAppliedSpec"] == NETWORK_SPEC
        provider.get_network.assert_not_called()

    def test_drift_is_applied(self, store, providers, provider, mock_kopf_event):
        """Test that a changed description is pushed to the cloud."""
        provider.get_network.return_value = NetworkInfo(id="vpc-1", status="ACTIVE")
        add_network(store, spec={**NETWORK_SPEC, "description": "changed"}, status=provisioned_status())

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_IMMEDIATE)
        provider.update_network.assert_called_once_with("vpc-1", UpdateNetworkRequest(description="changed"))
        status = store.stored(KIND_NETWORK, "vpc")["status"]
        assert status["lastAppliedSpec"]["description"] == "changed"
        reasons = [c.kwargs["reason"] for c in mock_kopf_event.call_args_list]
        assert "Updated" in reasons

    def test_drift_update_failure(self, store, providers, provider):
        """Test that a failed update keeps the old baseline."""
        provider.get_network.return_value = NetworkInfo(id="vpc-1", status="ACTIVE")
        provider.update_network.side_effect = ProviderError("conflict")
        add_network(store, spec={**NETWORK_SPEC, "description": "changed"}, status=provisioned_status())

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_DEFAULT)
        status = store.stored(KIND_NETWORK, "vpc")["status"]
        assert status["lastAppliedSpec"]["description"] == "main"
        assert conditions_of(store, KIND_NETWORK, "vpc").get("Ready").reason == "UpdateFailed"

    def test_external_resource_gone(self, store, providers, provider, mock_kopf_event):
        """Test that a vanished external resource is scheduled for recreation."""
        provider.get_network.return_value = None
        add_network(store, status=provisioned_status())

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_IMMEDIATE)
        status = store.stored(KIND_NETWORK, "vpc")["status"]
        assert status["externalID"] == ""
        assert status["lastAppliedSpec"] is None
        synced = conditions_of(store, KIND_NETWORK, "vpc").get("Synced")
        assert synced.reason == "NotFound"
        assert "vpc-1" in synced.message
        reasons = [c.kwargs["reason"] for c in mock_kopf_event.call_args_list]
        assert "Recreating" in reasons

    def test_recreated_after_external_resource_gone(self, store, providers, provider):
        """Test that the reconcile after a vanished resource creates a new one."""
        provider.get_network.return_value = None
        provider.create_network.return_value = "vpc-2"
        add_network(store, status=provisioned_status())

        assert run(store, providers, NetworkLogic()) == Result(REQUEUE_IMMEDIATE)
        provider.create_network.assert_not_called()

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_POST_CREATE)
        provider.create_network.assert_called_once()
        status = store.stored(KIND_NETWORK, "vpc")["status"]
        assert status["externalID"] == "vpc-2"
        assert status["lastAppliedSpec"] == NETWORK_SPEC

    def test_lookup_failure(self, store, providers, provider):
        """Test that a failing lookup is reported as a provider error."""
        provider.get_network.side_effect = ProviderError("timeout")
        add_network(store, status=provisioned_status())

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_DEFAULT)
        ready = conditions_of(store, KIND_NETWORK, "vpc").get("Ready")
        assert ready.reason == "ProviderError"
        assert ready.message == "Failed to check existing Network: timeout"

    @pytest.mark.parametrize(
        "status,reason",
        [
            ("ERROR", "Failed"),
            ("CREATING", "Provisioning"),
            ("SOMETHING", "Unknown"),
        ],
    )
    def test_non_ready_states(self, store, providers, provider, status, reason):
        """Test that non-ready states are mapped to conditions and requeued."""
        provider.get_network.return_value = NetworkInfo(id="vpc-1", status=status)
        add_network(store, status=provisioned_status())

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_DEFAULT)
        ready = conditions_of(store, KIND_NETWORK, "vpc").get("Ready")
        assert ready.status is False
        assert ready.reason == reason

    def test_stopped_public_ip(self, store, providers, provider):
        """Test that a frozen public IP is reported as stopped."""
        provider.get_public_ip.return_value = PublicIPInfo(id="eip-1", status="FREEZED")
        spec = {"providerConfigRef": {"name": "otc"}, "type": "BGP", "bandwidthSize": 10}
        store.add(
            KIND_PUBLIC_IP,
            make_object(
                "eip",
                spec=spec,
                status={"externalID": "eip-1", "lastAppliedSpec": spec},
                finalizers=[finalizer_for(KIND_PUBLIC_IP)],
            ),
        )

        run(store, providers, PublicIPLogic(), "eip")

        ready = conditions_of(store, KIND_PUBLIC_IP, "eip").get("Ready")
        assert ready.reason == "Stopped"
        assert ready.message == "PublicIP is stopped: FREEZED"


class TestDelete:
    """Test cases for the deletion path."""

    def test_without_finalizer_is_a_no_op(self, store, providers, provider):
        """Test that an object we never finalized is left alone."""
        add_network(store, status=provisioned_status(), finalizers=["other"], deleting=True)

        assert run(store, providers, NetworkLogic()) == Result()
        provider.delete_network.assert_not_called()

    def test_deletes_external_resource(self, store, providers, provider, mock_kopf_event):
        """Test that deletion removes the cloud resource and the finalizer."""
        add_network(store, status=provisioned_status(), deleting=True)

        result = run(store, providers, NetworkLogic())

        assert result == Result()
        provider.delete_network.assert_called_once_with("vpc-1")
        assert store.stored(KIND_NETWORK, "vpc") is None
        reasons = [c.kwargs["reason"] for c in mock_kopf_event.call_args_list]
        assert "Deleted" in reasons

    def test_finalizer_removed_after_status_write(self, store, providers, provider):
        """Test that the Terminating status write does not make the finalizer update conflict."""
        add_network(store, status=provisioned_status(), finalizers=[NETWORK_FINALIZER, "other"], deleting=True)

        result = run(store, providers, NetworkLogic())

        assert result == Result()
        assert store.stored(KIND_NETWORK, "vpc")["metadata"]["finalizers"] == ["other"]
        assert conditions_of(store, KIND_NETWORK, "vpc").get("Ready").reason == "Deleted"

    def test_blocked_by_references(self, store, providers, provider, mock_kopf_event):
        """Test that a network still used by a subnet is not deleted."""
        add_network(store, status=provisioned_status(), deleting=True)
        store.add(
            KIND_SUBNET,
            make_object("subnet-a", status={"resolvedDependencies": {"networkID": "vpc-1"}}),
        )
        store.add(
            KIND_SUBNET,
            make_object("subnet-b", status={"resolvedDependencies": {"networkID": "vpc-2"}}),
        )

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_DEFAULT)
        provider.delete_network.assert_not_called()
        stored = store.stored(KIND_NETWORK, "vpc")
        assert stored["metadata"]["finalizers"] == [NETWORK_FINALIZER]
        ready = conditions_of(store, KIND_NETWORK, "vpc").get("Ready")
        assert ready.reason == "DeletionBlocked"
        assert ready.message == "Still referenced by [subnet-a]"
        reasons = [c.kwargs["reason"] for c in mock_kopf_event.call_args_list]
        assert "DeletionBlocked" in reasons

    def test_reference_check_failure(self, store, providers, provider):
        """Test that a failed reference listing aborts deletion."""
        add_network(store, status=provisioned_status(), deleting=True)
        store.list_errors[KIND_NAT_GATEWAY] = ApiException(status=500, reason="Internal Server Error")

        with pytest.raises(ReferenceCheckError):
            run(store, providers, NetworkLogic())

        provider.delete_network.assert_not_called()
        ready = conditions_of(store, KIND_NETWORK, "vpc").get("Ready")
        assert ready.message.startswith("Failed reference check (NATGateways):")

    def test_orphan_on_delete(self, store, providers, provider, mock_kopf_event):
        """Test that orphanOnDelete keeps the cloud resource."""
        add_network(
            store,
            spec={**NETWORK_SPEC, "orphanOnDelete": True},
            status=provisioned_status(),
            deleting=True,
        )

        result = run(store, providers, NetworkLogic())

        assert result == Result()
        provider.delete_network.assert_not_called()
        assert store.stored(KIND_NETWORK, "vpc") is None
        reasons = [c.kwargs["reason"] for c in mock_kopf_event.call_args_list]
        assert "Orphaned" in reasons

    def test_missing_provider_config_orphans(self, store, providers, provider):
        """Test that deletion without a ProviderConfig orphans the resource."""
        add_network(
            store,
            spec={**NETWORK_SPEC, "providerConfigRef": {"name": "missing"}},
            status=provisioned_status(),
            deleting=True,
        )

        result = run(store, providers, NetworkLogic())

        assert result == Result()
        provider.delete_network.assert_not_called()
        assert store.stored(KIND_NETWORK, "vpc") is None

    def test_references_block_before_orphaning(self, store, providers, provider):
        """Test that a missing ProviderConfig does not bypass the reference guard."""
        add_network(
            store,
            spec={**NETWORK_SPEC, "providerConfigRef": {"name": "missing"}},
            status=provisioned_status(externalID="net-1"),
            deleting=True,
        )
        store.add(
            KIND_SUBNET,
            make_object("subnet-a", status={"resolvedDependencies": {"networkID": "net-1"}}),
        )

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_DEFAULT)
        provider.delete_network.assert_not_called()
        stored = store.stored(KIND_NETWORK, "vpc")
        assert stored is not None
        assert stored["metadata"]["finalizers"] == [NETWORK_FINALIZER]
        ready = conditions_of(store, KIND_NETWORK, "vpc").get("Ready")
        assert ready.reason == "DeletionBlocked"
        assert ready.message == "Still referenced by [subnet-a]"

    def test_delete_failure_keeps_finalizer(self, store, providers, provider):
        """Test that a failed cloud deletion is retried."""
        provider.delete_network.side_effect = ProviderError("in use")
        add_network(store, status=provisioned_status(), deleting=True)

        result = run(store, providers, NetworkLogic())

        assert result == Result(REQUEUE_DEFAULT)
        stored = store.stored(KIND_NETWORK, "vpc")
        assert stored["metadata"]["finalizers"] == [NETWORK_FINALIZER]
        assert conditions_of(store, KIND_NETWORK, "vpc").get("Synced").reason == "DeletionFailed"

    def test_never_created(self, store, providers, provider):
        """Test that an object without external ID only drops its finalizer."""
        add_network(store, deleting=True)

        result = run(store, providers, NetworkLogic())

        assert result == Result()
        provider.delete_network.assert_not_called()
        assert store.stored(KIND_NETWORK, "vpc") is None
