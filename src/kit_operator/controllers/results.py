"""Outcome of a composed reconcile or finalize pass."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReconcileResult:
    """requeue=True means a precondition is unmet; errors are raised instead."""

    requeue: bool = False
    requeue_after: float | None = None
    stage: str | None = None
    reason: str | None = None


DONE = ReconcileResult()
