"""Handler for ControlPlane CRD."""

from __future__ import annotations

import os
from typing import Any

import kopf

from ..apis.v1alpha1 import ControlPlane
from ..constants import API_GROUP_VERSION, KIND_CONTROL_PLANE
from .base import BaseHandler

RESYNC_INTERVAL = float(os.getenv("RESYNC_INTERVAL_SECONDS", "300"))


class ControlPlaneHandler(BaseHandler):
    """Handler for ControlPlane resources."""

    state_class = ControlPlane

    def __init__(self):
        super().__init__(KIND_CONTROL_PLANE)


# Global handler instance, composed controller installed at startup
_handler = ControlPlaneHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_CONTROL_PLANE)
@kopf.on.update(API_GROUP_VERSION, KIND_CONTROL_PLANE)
@kopf.on.resume(API_GROUP_VERSION, KIND_CONTROL_PLANE)
def handle_control_plane(body: kopf.Body, patch: kopf.Patch, **kwargs: Any) -> None:
    """Handle ControlPlane resource reconciliation."""
    _handler.handle(body, patch)


@kopf.timer(API_GROUP_VERSION, KIND_CONTROL_PLANE, interval=RESYNC_INTERVAL, idle=RESYNC_INTERVAL)
def resync_control_plane(body: kopf.Body, meta: kopf.Meta, patch: kopf.Patch, **kwargs: Any) -> None:
    """Periodically converge ControlPlane resources that saw no changes."""
    if meta.get("deletionTimestamp"):
        return
    _handler.handle(body, patch)


@kopf.on.delete(API_GROUP_VERSION, KIND_CONTROL_PLANE)
def handle_control_plane_delete(body: kopf.Body, patch: kopf.Patch, **kwargs: Any) -> None:
    """Handle ControlPlane resource deletion."""
    _handler.handle(body, patch)
