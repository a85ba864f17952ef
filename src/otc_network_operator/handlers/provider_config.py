"""Handler for ProviderConfig CRD and its credentials secret."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import kopf
from kubernetes.client.exceptions import ApiException

from ..constants import (
    API_GROUP_VERSION,
    KIND_PROVIDER_CONFIG,
    REASON_PROVIDER_INITIALIZATION_FAILED,
    REQUEUE_DEFAULT,
    REQUEUE_IMMEDIATE,
    REQUEUE_VALIDATION,
)
from ..exceptions import OperatorError, ProviderError
from ..models import ObjectKey, ProviderConfigReference
from ..reconciler import GenericReconciler, KindLogic, Result
from ..utils import conditions as cond
from ..utils.errors import sanitize_exception
from ..utils.events import emit_validate_failed, emit_validate_succeeded
from .base import BaseHandler, forget_object_lock
from .shared import get_context


class ProviderConfigLogic(KindLogic):
    kind = KIND_PROVIDER_CONFIG
    requeue_after = REQUEUE_DEFAULT


class ProviderConfigReconciler(GenericReconciler):
    """Validates a ProviderConfig by building a client from it and calling the cloud with it."""

    def _run(self) -> Result:
        if self.resource.deletion_requested:
            return self.reconcile_delete()

        if self.finalizer not in self.resource.finalizers:
            self._add_finalizer()
            return Result(REQUEUE_IMMEDIATE)

        ref = self._self_reference()
        try:
            provider, _ = self.providers.get_or_create(ref, self.resource.namespace)
        except (OperatorError, ValueError, ApiException) as e:
            message = sanitize_exception(e)
            self._set(
                cond.set_not_ready,
                REASON_PROVIDER_INITIALIZATION_FAILED,
                f"Failed to initialize provider client: {message}",
            )
            self._log(logging.ERROR, "provider", REASON_PROVIDER_INITIALIZATION_FAILED,
                      f"Failed to initialize provider client: {message}")
            return Result(self.logic.requeue_after)

        try:
            provider.validate()
        except ProviderError as e:
            message = f"Provider validation failed: {sanitize_exception(e)}"
            self._set(cond.set_validation_failed, None, message)
            emit_validate_failed(self.resource.body, message)
            self._log(logging.INFO, "validate", "ValidationFailed",
                      "Provider validation failed, invalidating client cache")
            self.providers.invalidate(ref, self.resource.namespace)
            return Result(REQUEUE_VALIDATION)

        self._set(cond.set_validation_successful)
        self.resource.status["lastValidationTime"] = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        emit_validate_succeeded(self.resource.body)
        return Result(REQUEUE_VALIDATION)

    def reconcile_delete(self) -> Result:
        if self.finalizer not in self.resource.finalizers:
            return Result()

        self._log(logging.INFO, "delete", "Deleting", "Deleting provider config")
        self.providers.invalidate(self._self_reference(), self.resource.namespace)
        self._remove_finalizer()
        return Result()

    def _self_reference(self) -> ProviderConfigReference:
        return ProviderConfigReference(name=self.resource.name, namespace=self.resource.namespace)


class ProviderConfigHandler(BaseHandler):
    """Handler for ProviderConfig resources."""

    def __init__(self):
        super().__init__(KIND_PROVIDER_CONFIG, timer_interval=REQUEUE_VALIDATION)
        self.logic = ProviderConfigLogic()

    def reconcile(self, key: ObjectKey) -> Result:
        context = get_context()
        body = context.store.get(KIND_PROVIDER_CONFIG, key.namespace, key.name)
        if body is None:
            return Result()
        return ProviderConfigReconciler(context.store, context.providers, self.logic, body).run()

    def handle(self, body: dict[str, Any]) -> None:
        meta = body.get("metadata", {})
        key = ObjectKey(meta.get("namespace", "default"), meta.get("name", ""))
        self.run(body, lambda: self.reconcile(key))

    def handle_delete(self, body: dict[str, Any]) -> None:
        meta = body.get("metadata", {})
        self.handle(body)
        forget_object_lock(self.kind, ObjectKey(meta.get("namespace", "default"), meta.get("name", "")))

    def find_for_secret(self, namespace: str, secret_name: str) -> list[dict[str, Any]]:
        """Return the ProviderConfigs in ``namespace`` whose credentials live in ``secret_name``."""
        provider_configs = get_context().store.list(KIND_PROVIDER_CONFIG, namespace)
        return [
            pc
            for pc in provider_configs
            if ((pc.get("spec") or {}).get("credentialsSecretRef") or {}).get("name") == secret_name
        ]

    def handle_secret_change(self, secret: dict[str, Any]) -> None:
        """Re-validate every ProviderConfig using ``secret``."""
        meta = secret.get("metadata", {})
        namespace = meta.get("namespace", "default")
        try:
            provider_configs = self.find_for_secret(namespace, meta.get("name", ""))
        except ApiException as e:
            self.log_error(meta, "Failed to list ProviderConfigs for secret watch", error=e)
            return

        for pc in provider_configs:
            self.log(logging.INFO, pc.get("metadata", {}), "Credentials secret changed, re-validating",
                     "secret", "SecretChanged")
            try:
                self.handle(pc)
            except kopf.TemporaryError:
                # The ProviderConfig's own handlers and timer retry it.
                continue


_handler = ProviderConfigHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.on.update(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.on.resume(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.timer(API_GROUP_VERSION, KIND_PROVIDER_CONFIG, interval=REQUEUE_VALIDATION)
def handle_provider_config(body: kopf.Body, **kwargs: Any) -> None:
    """Handle ProviderConfig resource reconciliation."""
    _handler.handle(dict(body))


@kopf.on.delete(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
def handle_provider_config_delete(body: kopf.Body, **kwargs: Any) -> None:
    """Handle ProviderConfig resource deletion."""
    _handler.handle_delete(dict(body))


@kopf.on.event("", "v1", "secrets")
def handle_credentials_secret(event: dict[str, Any], body: kopf.Body, **kwargs: Any) -> None:
    """Re-validate ProviderConfigs whose credentials secret changed."""
    # Skip the initial listing; a None type marks objects seen at startup.
    if event.get("type") is None:
        return
    _handler.handle_secret_change(dict(body))
