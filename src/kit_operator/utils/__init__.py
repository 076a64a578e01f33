"""Utility functions for the KIT Operator."""

from .backoff import Backoff
from .conditions import get_condition, set_ready_condition, update_condition
from .context import get_context_dict, get_reconcile_id, with_reconcile_id
from .errors import sanitize_exception
from .events import emit_event

__all__ = [
    "Backoff",
    "update_condition",
    "set_ready_condition",
    "get_condition",
    "emit_event",
    "sanitize_exception",
    "get_reconcile_id",
    "with_reconcile_id",
    "get_context_dict",
]
