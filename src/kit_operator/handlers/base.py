"""Base handler class driving a composed controller from kopf events."""

from __future__ import annotations

import copy
import logging
import time
from typing import Any, Mapping

import kopf

from .. import metrics
from ..apis.v1alpha1 import DesiredState
from ..constants import (
    CONTROLLER_NAME,
    FINALIZER,
    PHASE_PENDING,
    PHASE_PROVISIONING,
    PHASE_READY,
    PHASE_TERMINATING,
    REASON_FINALIZE_FAILED,
    REASON_READY,
    REASON_RECONCILE_FAILED,
    REASON_TERMINATING,
    REASON_WAITING,
    STAGE_FINALIZE,
    STAGE_RECONCILE,
)
from ..controllers.composer import Composer
from ..logging import log_resource_event
from ..tracing import trace_span
from ..utils.backoff import Backoff
from ..utils.conditions import set_ready_condition
from ..utils.context import with_reconcile_id
from ..utils.errors import sanitize_exception
from ..utils.events import (
    emit_finalize_failed,
    emit_finalize_started,
    emit_finalized,
    emit_reconcile_failed,
    emit_reconcile_succeeded,
    emit_waiting,
)


def status_patch(old: Mapping[str, Any], new: Mapping[str, Any]) -> dict[str, Any]:
    """JSON merge patch turning old status into new, including removed keys."""
    patch: dict[str, Any] = {}
    for key in old:
        if key not in new:
            patch[key] = None
    for key, value in new.items():
        current = old.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            nested = status_patch(current, value)
            if nested:
                patch[key] = nested
        elif current != value:
            patch[key] = value
    return patch


class BaseHandler:
    """Base class mapping one reconcile pass onto kopf's retry semantics.

    A pass ends in one of three ways: success (the handler returns and the
    object stays dormant until the next change or resync), an unmet
    precondition (kopf.TemporaryError with the composer's fixed delay), or a
    failure (kopf.TemporaryError with a delay that grows with the persisted
    failure count).
    """

    state_class: type[DesiredState] = DesiredState

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "ControlPlane", "Substrate")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)
        self.composer: Composer | None = None
        self.backoff = Backoff()

    def install(self, composer: Composer, backoff: Backoff | None = None) -> None:
        """Attach the composed controller built at startup."""
        self.composer = composer
        if backoff is not None:
            self.backoff = backoff

    @property
    def installed(self) -> bool:
        return self.composer is not None

    def _get_resource_context(self, meta: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(self, level: int, meta: Mapping[str, Any], message: str, event: str, reason: str, **kwargs: Any) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self, meta: Mapping[str, Any], message: str, event: str = "info", reason: str = "Info", **kwargs: Any
    ) -> None:
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: Mapping[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def ensure_finalizer(self, meta: Mapping[str, Any], patch: kopf.Patch) -> None:
        """Ensure finalizer is present in metadata."""
        finalizers = list(meta.get("finalizers", []) or [])
        if FINALIZER not in finalizers:
            finalizers.append(FINALIZER)
            patch.metadata["finalizers"] = finalizers

    def remove_finalizer(self, meta: Mapping[str, Any], patch: kopf.Patch) -> None:
        """Remove finalizer from metadata."""
        finalizers = list(meta.get("finalizers", []) or [])
        if FINALIZER in finalizers:
            finalizers.remove(FINALIZER)
            patch.metadata["finalizers"] = finalizers if finalizers else None

    def _write_status(self, obj: DesiredState, original: Mapping[str, Any], patch: kopf.Patch) -> None:
        changes = status_patch(original, obj.status)
        if changes:
            patch.status.update(changes)
        if obj.status.get("phase") != original.get("phase"):
            metrics.resource_status_total.labels(kind=self.kind, phase=obj.status.get("phase")).inc()

    def _record_failure(self, obj: DesiredState, error: Exception, reason: str) -> tuple[int, str]:
        failures = int(obj.status.get("failureCount") or 0) + 1
        message = sanitize_exception(error)
        obj.status["failureCount"] = failures
        obj.status["lastError"] = message
        set_ready_condition(obj.conditions, False, message, reason, obj.generation)
        return failures, message

    def handle(self, body: Mapping[str, Any], patch: kopf.Patch) -> None:
        """Run one pass for body, routing to finalize once deletion is requested.

        Raises:
            kopf.TemporaryError: When the object must be handled again later
        """
        if self.composer is None:
            raise kopf.TemporaryError(f"{self.kind} controllers are not installed yet", delay=1)
        obj = self.state_class(body)
        with with_reconcile_id():
            if obj.deletion_timestamp:
                self._finalize(obj, patch)
            else:
                self._reconcile(obj, patch)

    def _reconcile(self, obj: DesiredState, patch: kopf.Patch) -> None:
        original = copy.deepcopy(obj.status)
        was_ready = obj.is_ready()
        self.ensure_finalizer(obj.meta, patch)
        obj.status.setdefault("phase", PHASE_PENDING)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()
        start_time = time.time()
        try:
            with trace_span(f"{STAGE_RECONCILE}_{self.kind.lower()}", kind=self.kind, attributes={"resource.name": obj.name}):
                obj.validate()
                if obj.status["phase"] != PHASE_READY:
                    obj.status["phase"] = PHASE_PROVISIONING
                result = self.composer.reconcile(obj)
        except Exception as e:
            failures, message = self._record_failure(obj, e, REASON_RECONCILE_FAILED)
            obj.status["phase"] = PHASE_PROVISIONING
            self.log_error(obj.meta, "Reconciliation failed", error=e, reason=REASON_RECONCILE_FAILED, failures=failures)
            emit_reconcile_failed(obj.body, f"Reconciliation failed: {message}")
            metrics.error_total.labels(kind=self.kind, phase=STAGE_RECONCILE).inc()
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            self._write_status(obj, original, patch)
            raise kopf.TemporaryError(f"Reconciliation failed: {message}", delay=self.backoff.delay(failures)) from e
        finally:
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(time.time() - start_time)

        if result.requeue:
            message = f"Waiting in {result.stage}: {result.reason}"
            obj.status["phase"] = PHASE_PROVISIONING
            set_ready_condition(obj.conditions, False, message, REASON_WAITING, obj.generation)
            self.log_info(obj.meta, message, event="requeue", reason=REASON_WAITING, stage=result.stage)
            if obj.status != original:
                emit_waiting(obj.body, message)
            metrics.reconcile_total.labels(kind=self.kind, result="requeue").inc()
            self._write_status(obj, original, patch)
            raise kopf.TemporaryError(message, delay=result.requeue_after)

        obj.status.update(
            phase=PHASE_READY,
            failureCount=0,
            lastError=None,
            observedGeneration=obj.generation,
        )
        set_ready_condition(obj.conditions, True, f"{self.kind} is ready", REASON_READY, obj.generation)
        if not was_ready:
            self.log_info(obj.meta, f"{self.kind} is ready", event="ready", reason=REASON_READY)
            emit_reconcile_succeeded(obj.body)
        metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
        self._write_status(obj, original, patch)

    def _finalize(self, obj: DesiredState, patch: kopf.Patch) -> None:
        original = copy.deepcopy(obj.status)
        if original.get("phase") != PHASE_TERMINATING:
            emit_finalize_started(obj.body)
        obj.status["phase"] = PHASE_TERMINATING
        set_ready_condition(obj.conditions, False, f"{self.kind} is being deleted", REASON_TERMINATING, obj.generation)
        try:
            with trace_span(f"{STAGE_FINALIZE}_{self.kind.lower()}", kind=self.kind, attributes={"resource.name": obj.name}):
                result = self.composer.finalize(obj)
        except Exception as e:
            failures, message = self._record_failure(obj, e, REASON_FINALIZE_FAILED)
            self.log_error(obj.meta, "Finalization failed", error=e, reason=REASON_FINALIZE_FAILED, failures=failures)
            emit_finalize_failed(obj.body, f"Finalization failed: {message}")
            metrics.error_total.labels(kind=self.kind, phase=STAGE_FINALIZE).inc()
            self._write_status(obj, original, patch)
            raise kopf.TemporaryError(f"Finalization failed: {message}", delay=self.backoff.delay(failures)) from e

        if result.requeue:
            message = f"Waiting in {result.stage}: {result.reason}"
            self.log_info(obj.meta, message, event="requeue", reason=REASON_WAITING, stage=result.stage)
            self._write_status(obj, original, patch)
            raise kopf.TemporaryError(message, delay=result.requeue_after)

        self.remove_finalizer(obj.meta, patch)
        self.log_info(obj.meta, "External resources released", event="deletion", reason="Finalized")
        emit_finalized(obj.body)
        self._write_status(obj, original, patch)
