"""Custom resource views."""

from .v1alpha1 import ControlPlane, DesiredState, Substrate

__all__ = ["ControlPlane", "DesiredState", "Substrate"]
