"""Generic reconciliation engine shared by every managed kind.

One :class:`GenericReconciler` is built per invocation. It owns a working copy
of the object, drives it through the lifecycle (finalizer, provider
acquisition, create, update, delete) using the per-kind :class:`KindLogic`,
and persists the status as a merge patch against the snapshot it started from.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from kubernetes.client.exceptions import ApiException

from . import metrics
from .constants import (
    CONTROLLER_NAME,
    KIND_PROVIDER_CONFIG,
    REASON_DELETION_FAILED,
    REASON_DEPENDENCIES_NOT_RESOLVED,
    REASON_FAILED,
    REASON_NOT_FOUND,
    REASON_PROVIDER_CONFIG_ERROR,
    REASON_PROVIDER_ERROR,
    REASON_PROVISIONING_FAILED,
    REASON_UNKNOWN,
    REASON_UPDATE_FAILED,
    REQUEUE_DEFAULT,
    REQUEUE_DEPENDENCY,
    REQUEUE_IMMEDIATE,
    REQUEUE_POST_CREATE,
    finalizer_for,
)
from .dependencies import DependencyResolver, ReferenceCheck, find_references
from .exceptions import (
    DependencyError,
    OperatorError,
    ProviderConfigNotFoundError,
    ProviderConfigNotReadyError,
    ProviderError,
    ReferenceCheckError,
)
from .logging import log_resource_event
from .models import Dependency, ObjectKey, Resource, parse_dependency
from .services.otc.base import OTCProvider
from .services.otc.models import ResourceInfo, State
from .store import ObjectStore
from .utils import conditions as cond
from .utils import events
from .utils.cache import ProviderCache
from .utils.errors import sanitize_exception

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Result:
    """Outcome of one reconcile: done, or run again after ``requeue_after`` seconds."""

    requeue_after: float | None = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


@dataclass(frozen=True)
class DependencyField:
    """A dependency block of a spec and where its resolved ID is recorded."""

    field: str
    kind: str
    key: str


class KindLogic:
    """Create, drift detection, update and delete for one managed kind."""

    kind: str = ""
    dependency_fields: tuple[DependencyField, ...] = ()
    reference_checks: tuple[ReferenceCheck, ...] = ()
    requeue_after: float = REQUEUE_DEFAULT

    def parse_dependencies(self, spec: dict[str, Any]) -> list[tuple[str, str, Dependency]]:
        """Parse every dependency block of ``spec``.

        Raises:
            InvalidDependencyError: If a block populates zero or several variants
        """
        return [
            (dep.kind, dep.key, parse_dependency(spec.get(dep.field), dep.field))
            for dep in self.dependency_fields
        ]

    def create(self, provider: OTCProvider, resource: Resource, resolved: dict[str, str]) -> str:
        raise NotImplementedError

    def get(self, provider: OTCProvider, resource: Resource) -> ResourceInfo | None:
        raise NotImplementedError

    def detect_drift(self, spec: dict[str, Any], baseline: dict[str, Any]) -> Any | None:
        """Return the update request needed to apply ``spec``, or None without drift."""
        return None

    def apply_update(self, provider: OTCProvider, resource: Resource, update: Any) -> None:
        raise NotImplementedError

    def delete(self, provider: OTCProvider, resource: Resource) -> None:
        raise NotImplementedError


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GenericReconciler:
    """Drives a single object through one reconcile."""

    def __init__(
        self,
        store: ObjectStore,
        providers: ProviderCache,
        logic: KindLogic,
        body: dict[str, Any],
    ):
        self.store = store
        self.providers = providers
        self.logic = logic
        self.kind = logic.kind
        self.finalizer = finalizer_for(logic.kind)
        self.original = body
        self.resource = Resource(logic.kind, body)

    # Entry point

    def run(self) -> Result:
        try:
            result = self._run()
        except ApiException as e:
            if e.status != 409:
                raise
            self._log(logging.INFO, "conflict", "Conflict", "Object changed while reconciling, retrying")
            result = Result(REQUEUE_IMMEDIATE)
        finally:
            self.persist()
        return result

    def _run(self) -> Result:
        if self.resource.deletion_requested:
            return self.reconcile_delete()

        if self.finalizer not in self.resource.finalizers:
            self._add_finalizer()
            return Result(REQUEUE_IMMEDIATE)

        try:
            dependencies = self.logic.parse_dependencies(self.resource.spec)
        except DependencyError as e:
            self._dependencies_not_ready(e)
            return Result(self.logic.requeue_after)

        if not self.check_provider_config():
            return Result(self.logic.requeue_after)

        try:
            provider, _ = self.providers.get_or_create(
                self.resource.provider_config_ref, self.resource.namespace
            )
        except (OperatorError, ValueError, ApiException) as e:
            message = sanitize_exception(e)
            self._set(cond.set_reconciliation_failed, REASON_PROVIDER_CONFIG_ERROR, message)
            self._log(logging.ERROR, "provider", REASON_PROVIDER_CONFIG_ERROR,
                      f"Failed to get or create provider client: {message}")
            return Result(self.logic.requeue_after)

        if not self.resource.external_id:
            return self.reconcile_create(provider, dependencies)
        return self.reconcile_update(provider)

    # Status and finalizers

    def persist(self) -> None:
        """Patch the status difference against the snapshot taken at the start."""
        self.resource.status["observedGeneration"] = self.resource.generation
        try:
            updated = self.store.patch_status(self.kind, self.original, self.resource.body)
        except ApiException as e:
            # The object is gone once the last finalizer has been removed.
            if e.status == 404:
                return
            self._log(logging.ERROR, "status", "StatusUpdateFailed", f"Failed to update status: {e.reason}")
            raise
        if updated:
            self._track_resource_version(updated)
        self.original = copy.deepcopy(self.resource.body)

    def _track_resource_version(self, updated: dict[str, Any]) -> None:
        # Later conditional writes must carry the version the server last returned.
        version = updated.get("metadata", {}).get("resourceVersion")
        if version:
            self.resource.metadata["resourceVersion"] = version

    def _add_finalizer(self) -> None:
        finalizers = self.resource.finalizers + [self.finalizer]
        updated = self.store.set_finalizers(self.kind, self.resource.body, finalizers)
        self.resource.metadata["finalizers"] = finalizers
        if updated:
            self._track_resource_version(updated)
        self._log(logging.DEBUG, "finalizer", "FinalizerAdded", "Added finalizer")

    def _remove_finalizer(self) -> None:
        finalizers = [f for f in self.resource.finalizers if f != self.finalizer]
        self.store.set_finalizers(self.kind, self.resource.body, finalizers)
        self.resource.metadata["finalizers"] = finalizers
        self._log(logging.DEBUG, "finalizer", "FinalizerRemoved", "Removed finalizer")

    def _set(self, fn: Callable[..., cond.ConditionSet], *args: Any) -> None:
        self.resource.conditions = fn(self.resource.conditions, self.resource.generation, *args)

    # ProviderConfig

    def check_provider_config(self) -> bool:
        """Record whether the referenced ProviderConfig exists and is Ready."""
        key = self.resource.provider_config_ref.key(self.resource.namespace)
        try:
            body = self.store.get(KIND_PROVIDER_CONFIG, key.namespace, key.name)
        except ApiException as e:
            message = f"failed to get ProviderConfig '{key.name}': {e.reason}"
        else:
            if body is None:
                message = str(ProviderConfigNotFoundError(key.name, key.namespace))
            else:
                provider_config = Resource(KIND_PROVIDER_CONFIG, body)
                if provider_config.is_ready():
                    self._set(cond.set_provider_config_ready)
                    return True
                message = str(ProviderConfigNotReadyError(key.name, provider_config.ready_message()))

        self._set(cond.set_provider_config_not_ready, message)
        self._log(logging.WARNING, "provider", "ProviderConfigNotReady", message)
        return False

    # Create

    def _dependencies_not_ready(self, error: Exception) -> None:
        self._set(cond.set_dependencies_not_ready, str(error))
        self._set(cond.set_not_ready, REASON_DEPENDENCIES_NOT_RESOLVED, f"Waiting for dependencies: {error}")
        self._log(logging.INFO, "dependencies", REASON_DEPENDENCIES_NOT_RESOLVED, str(error))

    def reconcile_create(
        self, provider: OTCProvider, dependencies: list[tuple[str, str, Dependency]]
    ) -> Result:
        resolver = DependencyResolver(self.store, self.resource.namespace)
        try:
            resolved = resolver.resolve_all(dependencies)
        except DependencyError as e:
            self._dependencies_not_ready(e)
            return Result(REQUEUE_DEPENDENCY)

        self._set(cond.set_dependencies_ready)
        if self.logic.dependency_fields:
            self.resource.resolved_dependencies = resolved

        self._log(logging.INFO, "create", "Creating", f"Creating {self.kind}")
        self._set(cond.set_creating)

        try:
            external_id = self.logic.create(provider, self.resource, resolved)
        except ProviderError as e:
            message = sanitize_exception(e)
            # The cloud already holds a resource; adopt it instead of creating another one.
            if e.resource_id:
                self.resource.external_id = e.resource_id
                self.resource.last_applied_spec = self.resource.spec
            self._set(cond.set_reconciliation_failed, REASON_PROVISIONING_FAILED,
                      f"Failed to create resource: {message}")
            self._log(logging.ERROR, "create", REASON_PROVISIONING_FAILED,
                      f"Failed to create {self.kind}: {message}", external_id=e.resource_id)
            return Result(self.logic.requeue_after)

        self.resource.external_id = external_id
        self.resource.last_applied_spec = self.resource.spec
        events.emit_created(self.resource.body, self.kind, external_id)
        self._log(logging.INFO, "create", "Created", f"Successfully created {self.kind}", external_id=external_id)
        return Result(REQUEUE_POST_CREATE)

    # Update

    def reconcile_update(self, provider: OTCProvider) -> Result:
        baseline = self.resource.last_applied_spec
        if baseline is None:
            self._log(logging.WARNING, "update", "BaselineMissing",
                      "LastAppliedSpec is not set, establishing baseline from current spec")
            self.resource.last_applied_spec = self.resource.spec
            return Result(REQUEUE_IMMEDIATE)

        external_id = self.resource.external_id
        try:
            info = self.logic.get(provider, self.resource)
        except ProviderError as e:
            message = sanitize_exception(e)
            self._set(cond.set_reconciliation_failed, REASON_PROVIDER_ERROR,
                      f"Failed to check existing {self.kind}: {message}")
            self._log(logging.ERROR, "update", REASON_PROVIDER_ERROR,
                      f"Failed to check existing {self.kind}: {message}")
            return Result(self.logic.requeue_after)

        if info is None:
            self._set(cond.set_not_synced, REASON_NOT_FOUND,
                      f"External resource with ID {external_id} was not found and will be recreated")
            self._set(cond.set_not_ready, REASON_NOT_FOUND, "Resource needs to be recreated")
            self.resource.external_id = ""
            self.resource.last_applied_spec = None
            events.emit_recreating(self.resource.body, external_id)
            self._log(logging.WARNING, "update", REASON_NOT_FOUND,
                      "External resource not found by ID, resetting externalID to trigger creation",
                      external_id=external_id)
            return Result(REQUEUE_IMMEDIATE)

        update = self.logic.detect_drift(self.resource.spec, baseline)
        if update is not None:
            return self._apply_drift(provider, update)

        return self.check_readiness(info)

    def _apply_drift(self, provider: OTCProvider, update: Any) -> Result:
        metrics.drift_detected_total.labels(kind=self.kind).inc()
        self._log(logging.INFO, "update", "DriftDetected", "Applying updates to external resource",
                  update=repr(update))
        self._set(cond.set_updating)

        try:
            self.logic.apply_update(provider, self.resource, update)
        except ProviderError as e:
            message = sanitize_exception(e)
            self._set(cond.set_reconciliation_failed, REASON_UPDATE_FAILED,
                      f"Failed to update resource: {message}")
            self._log(logging.ERROR, "update", REASON_UPDATE_FAILED, f"Failed to update resource: {message}")
            return Result(self.logic.requeue_after)

        self.resource.last_applied_spec = self.resource.spec
        events.emit_updated(self.resource.body, self.kind, self.resource.external_id)
        self._log(logging.INFO, "update", "Updated", "Successfully updated")
        return Result(REQUEUE_IMMEDIATE)

    def check_readiness(self, info: ResourceInfo) -> Result:
        state = info.state()
        if state is State.READY:
            newly_provisioned = self.resource.last_sync_time is None
            self.resource.last_sync_time = _now()
            if newly_provisioned:
                self._set(cond.set_provisioned)
            else:
                self._set(cond.set_synced_and_ready)
            return Result()

        if state is State.FAILED:
            self._set(cond.set_reconciliation_failed, REASON_FAILED, info.message())
        elif state is State.PROVISIONING:
            self._set(cond.set_provisioning, None, info.message())
        elif state is State.STOPPED:
            self._set(cond.set_stopped, None, info.message())
        else:
            self._set(cond.set_reconciliation_failed, REASON_UNKNOWN, info.message())
        return Result(self.logic.requeue_after)

    # Delete

    def reconcile_delete(self) -> Result:
        if self.finalizer not in self.resource.finalizers:
            return Result()

        external_id = self.resource.external_id
        orphan = self.resource.orphan_on_delete
        self._log(logging.INFO, "delete", "Deleting", "Deleting resource",
                  external_id=external_id, orphan_on_delete=orphan)

        self._set(cond.set_terminating)
        try:
            self.persist()
        except ApiException as e:
            # The final status is written again on exit.
            logger.warning(f"Could not persist Terminating status for {self.resource!r}: {e.reason}")

        # Dependents block deletion even when the resource would be orphaned.
        if external_id and self.logic.reference_checks:
            blocked = self.block_on_references(external_id)
            if blocked is not None:
                return blocked

        try:
            provider, _ = self.providers.get_or_create(
                self.resource.provider_config_ref, self.resource.namespace
            )
        except ProviderConfigNotFoundError:
            message = "Resource was orphaned because ProviderConfig was not found"
            self._set(cond.set_orphaned, None, message)
            events.emit_orphaned(self.resource.body, message)
            self._log(logging.WARNING, "delete", "Orphaned",
                      "ProviderConfig not found during deletion, removing finalizer to orphan resource")
            self._remove_finalizer()
            return Result()
        except (OperatorError, ValueError, ApiException) as e:
            message = sanitize_exception(e)
            self._set(cond.set_not_synced, REASON_DELETION_FAILED, f"Cannot access provider: {message}")
            self._set(cond.set_not_ready, REASON_DELETION_FAILED, "Deletion blocked by provider error")
            self._log(logging.ERROR, "delete", REASON_DELETION_FAILED,
                      f"Provider access failed during deletion: {message}")
            return Result(self.logic.requeue_after)

        if not orphan and external_id:
            try:
                self.logic.delete(provider, self.resource)
            except ProviderError as e:
                message = sanitize_exception(e)
                self._set(cond.set_not_synced, REASON_DELETION_FAILED, message)
                self._set(cond.set_not_ready, REASON_DELETION_FAILED, "External resource deletion failed")
                self._log(logging.ERROR, "delete", REASON_DELETION_FAILED, f"External deletion failed: {message}")
                return Result(self.logic.requeue_after)

            self._set(cond.set_deleted)
            events.emit_deleted(self.resource.body, self.kind, external_id)
            self._log(logging.INFO, "delete", "Deleted", "External resource deleted", external_id=external_id)
        elif orphan:
            self._set(cond.set_orphaned)
            events.emit_orphaned(self.resource.body, "External resource preserved (orphanOnDelete=true)")
            self._log(logging.INFO, "delete", "Orphaned", "Skipping external deletion (orphanOnDelete=true)")

        self._remove_finalizer()
        return Result()

    def block_on_references(self, external_id: str) -> Result | None:
        """Return a requeue result if any sibling still references ``external_id``.

        Raises:
            ReferenceCheckError: If a dependent kind could not be listed
        """
        try:
            references = find_references(
                self.store, self.resource.namespace, external_id, list(self.logic.reference_checks)
            )
        except ReferenceCheckError as e:
            self._set(cond.set_reconciliation_failed, None,
                      f"Failed reference check ({e.resource}): {e.error}")
            raise

        if not references:
            return None

        message = f"Still referenced by [{' '.join(references)}]"
        self._set(cond.set_deletion_blocked, None, message)
        metrics.deletion_blocked_total.labels(kind=self.kind).inc()
        events.emit_deletion_blocked(self.resource.body, message)
        self._log(logging.INFO, "delete", "DeletionBlocked", "Deletion blocked by active references",
                  external_id=external_id, referencers=references)
        return Result(self.logic.requeue_after)

    def _log(self, level: int, event: str, reason: str, message: str, **kwargs: Any) -> None:
        log_resource_event(
            logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=self.resource.name,
            namespace=self.resource.namespace,
            uid=self.resource.metadata.get("uid", "unknown"),
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )


def reconcile(
    store: ObjectStore,
    providers: ProviderCache,
    logic: KindLogic,
    key: ObjectKey,
) -> Result:
    """Load the object named by ``key`` and reconcile it once."""
    body = store.get(logic.kind, key.namespace, key.name)
    if body is None:
        return Result()
    return GenericReconciler(store, providers, logic, body).run()
