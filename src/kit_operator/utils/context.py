"""Reconcile id propagation through contextvars."""

from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

# Context variable holding the id of the reconcile pass being run
reconcile_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("reconcile_id", default=None)


def new_reconcile_id() -> str:
    return uuid.uuid4().hex[:12]


def get_reconcile_id() -> str | None:
    return reconcile_id.get()


@contextmanager
def with_reconcile_id(value: str | None = None) -> Iterator[str]:
    """Set a reconcile id for the duration of a block.

    Args:
        value: Id to use; a new one is generated when omitted

    Yields:
        The reconcile id
    """
    value = value or new_reconcile_id()
    token = reconcile_id.set(value)
    try:
        yield value
    finally:
        reconcile_id.reset(token)


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Context values to attach to log records and span attributes."""
    ctx: dict[str, Any] = {}
    current = get_reconcile_id()
    if current:
        ctx["reconcile_id"] = current
    if additional:
        ctx.update(additional)
    return ctx
