"""Handler for Substrate CRD."""

from __future__ import annotations

import os
from typing import Any

import kopf

from ..apis.v1alpha1 import Substrate
from ..constants import API_GROUP_VERSION, KIND_SUBSTRATE
from .base import BaseHandler

RESYNC_INTERVAL = float(os.getenv("RESYNC_INTERVAL_SECONDS", "300"))


class SubstrateHandler(BaseHandler):
    """Handler for Substrate resources."""

    state_class = Substrate

    def __init__(self):
        super().__init__(KIND_SUBSTRATE)


# Global handler instance, composed controller installed at startup
_handler = SubstrateHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_SUBSTRATE)
@kopf.on.update(API_GROUP_VERSION, KIND_SUBSTRATE)
@kopf.on.resume(API_GROUP_VERSION, KIND_SUBSTRATE)
def handle_substrate(body: kopf.Body, patch: kopf.Patch, **kwargs: Any) -> None:
    """Handle Substrate resource reconciliation."""
    _handler.handle(body, patch)


@kopf.timer(API_GROUP_VERSION, KIND_SUBSTRATE, interval=RESYNC_INTERVAL, idle=RESYNC_INTERVAL)
def resync_substrate(body: kopf.Body, meta: kopf.Meta, patch: kopf.Patch, **kwargs: Any) -> None:
    """Periodically converge Substrate resources that saw no changes."""
    if meta.get("deletionTimestamp"):
        return
    _handler.handle(body, patch)


@kopf.on.delete(API_GROUP_VERSION, KIND_SUBSTRATE)
def handle_substrate_delete(body: kopf.Body, patch: kopf.Patch, **kwargs: Any) -> None:
    """Handle Substrate resource deletion."""
    _handler.handle(body, patch)
