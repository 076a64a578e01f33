"""The contract every sub-controller implements."""

from __future__ import annotations

from typing import Protocol

from ..apis.v1alpha1 import DesiredState


class SubController(Protocol):
    """Converges one slice of a desired-state object.

    reconcile is idempotent and never assumes it is the first call; it may
    update obj.status in place and raises NotReadyError while a dependency is
    still being provisioned. finalize releases everything reconcile created
    outside the reach of owner references and is a no-op when nothing exists.
    """

    def reconcile(self, obj: DesiredState) -> None:
        ...

    def finalize(self, obj: DesiredState) -> None:
        ...
