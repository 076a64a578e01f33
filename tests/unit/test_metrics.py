"""Tests for Prometheus metrics."""

from __future__ import annotations

from prometheus_client import REGISTRY

from kit_operator import metrics
from kit_operator.apis.v1alpha1 import ControlPlane
from kit_operator.controllers.composer import Composer
from kit_operator.errors import NotReadyError


def sample(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetrics:
    """Test cases for metric definitions and updates."""

    def test_metric_names(self):
        """Metrics share the operator prefix."""
        assert metrics.reconcile_total._name == "kit_operator_reconcile"
        assert metrics.stage_duration_seconds._name == "kit_operator_stage_duration_seconds"

    def test_requeue_counted_per_stage(self, recorder, make_control_plane):
        """A requeue increments the counter of the waiting stage."""
        stage = recorder("gate")
        stage.reconcile_error = NotReadyError("not yet")
        labels = {"kind": "MetricsKind", "stage": "gate"}
        before = sample("kit_operator_requeue_total", labels)

        Composer("MetricsKind", [("gate", stage)]).reconcile(ControlPlane(make_control_plane()))

        assert sample("kit_operator_requeue_total", labels) == before + 1

    def test_stage_duration_observed(self, recorder, make_control_plane):
        """Every stage run is timed."""
        labels = {"kind": "MetricsKind", "stage": "timed", "phase": "reconcile"}
        before = sample("kit_operator_stage_duration_seconds_count", labels)

        Composer("MetricsKind", [("timed", recorder("timed"))]).reconcile(ControlPlane(make_control_plane()))

        assert sample("kit_operator_stage_duration_seconds_count", labels) == before + 1
