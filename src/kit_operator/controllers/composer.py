"""Run sub-controllers in dependency order."""

from __future__ import annotations

import logging
import time
from typing import Sequence

from .. import metrics
from ..apis.v1alpha1 import DesiredState
from ..constants import STAGE_FINALIZE, STAGE_RECONCILE
from ..errors import NotReadyError, StageError
from ..tracing import trace_span
from .base import SubController
from .results import DONE, ReconcileResult

logger = logging.getLogger(__name__)

Stage = tuple[str, SubController]


class Composer:
    """A fixed, ordered chain of named sub-controllers for one kind.

    reconcile walks the chain forward and finalize walks it backward. Both
    stop at the first stage that is not ready or fails, so a later stage never
    runs before the stages it depends on have converged in the same pass.
    """

    def __init__(self, kind: str, stages: Sequence[Stage], requeue_after: float = 10.0) -> None:
        names = [name for name, _ in stages]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate stage names for {kind}: {names}")
        self.kind = kind
        self.stages: tuple[Stage, ...] = tuple(stages)
        self.requeue_after = requeue_after

    @property
    def stage_names(self) -> list[str]:
        return [name for name, _ in self.stages]

    def reconcile(self, obj: DesiredState) -> ReconcileResult:
        return self._run(obj, STAGE_RECONCILE, self.stages)

    def finalize(self, obj: DesiredState) -> ReconcileResult:
        return self._run(obj, STAGE_FINALIZE, tuple(reversed(self.stages)))

    def _run(self, obj: DesiredState, phase: str, stages: Sequence[Stage]) -> ReconcileResult:
        for name, controller in stages:
            start_time = time.time()
            try:
                with trace_span(f"{phase}_{name}", kind=self.kind, attributes={"stage": name, "resource.name": obj.name}):
                    getattr(controller, phase)(obj)
            except NotReadyError as e:
                logger.info(f"{self.kind} {obj.namespace}/{obj.name} waiting in {name}: {e}")
                metrics.requeue_total.labels(kind=self.kind, stage=name).inc()
                return ReconcileResult(
                    requeue=True,
                    requeue_after=e.requeue_after if e.requeue_after is not None else self.requeue_after,
                    stage=name,
                    reason=str(e),
                )
            except Exception as e:
                raise StageError(name, phase, e) from e
            finally:
                metrics.stage_duration_seconds.labels(kind=self.kind, stage=name, phase=phase).observe(
                    time.time() - start_time
                )
        return DONE
