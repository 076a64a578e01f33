"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any, Mapping

import kopf

from ..constants import (
    EVENT_REASON_FINALIZE_FAILED,
    EVENT_REASON_FINALIZE_STARTED,
    EVENT_REASON_FINALIZED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_SUCCEEDED,
    EVENT_REASON_WAITING,
)


def emit_event(
    body: Mapping[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body the event refers to
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_succeeded(body: Mapping[str, Any]) -> None:
    emit_event(body, EVENT_REASON_RECONCILE_SUCCEEDED, "All sub-resources are ready")


def emit_reconcile_failed(body: Mapping[str, Any], message: str) -> None:
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_waiting(body: Mapping[str, Any], message: str) -> None:
    emit_event(body, EVENT_REASON_WAITING, message)


def emit_finalize_started(body: Mapping[str, Any]) -> None:
    emit_event(body, EVENT_REASON_FINALIZE_STARTED, "Releasing external resources")


def emit_finalize_failed(body: Mapping[str, Any], message: str) -> None:
    emit_event(body, EVENT_REASON_FINALIZE_FAILED, message, type_="Warning")


def emit_finalized(body: Mapping[str, Any]) -> None:
    emit_event(body, EVENT_REASON_FINALIZED, "External resources released")
