"""Tests for base handler functionality."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import kopf
import pytest

from kit_operator.constants import FINALIZER
from kit_operator.controllers.composer import Composer
from kit_operator.errors import NotReadyError
from kit_operator.handlers import controlplane
from kit_operator.handlers.base import BaseHandler, status_patch
from kit_operator.handlers.controlplane import ControlPlaneHandler
from kit_operator.utils.backoff import Backoff
from kit_operator.utils.conditions import get_condition


@pytest.fixture
def events():
    with patch("kopf.event") as event:
        yield event


def reasons(events: MagicMock) -> list[str]:
    return [call.kwargs["reason"] for call in events.call_args_list]


@pytest.fixture
def stages(recorder):
    return {"etcd": recorder("etcd"), "master": recorder("master"), "addons": recorder("addons")}


@pytest.fixture
def handler(stages):
    handler = ControlPlaneHandler()
    handler.install(
        Composer("ControlPlane", list(stages.items()), requeue_after=7.0),
        Backoff(base=1.0, factor=2.0, maximum=300.0, jitter=0.1, rand=lambda: 0.5),
    )
    return handler


def deleting(body: dict, finalizers: list[str]) -> dict:
    body["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    body["metadata"]["finalizers"] = finalizers
    return body


class TestStatusPatch:
    """Test cases for status_patch."""

    def test_unchanged(self):
        """Equal status yields an empty patch."""
        assert status_patch({"phase": "Ready"}, {"phase": "Ready"}) == {}

    def test_removed_keys_become_none(self):
        """Keys dropped by a controller are deleted through the patch."""
        old = {"vpcId": "vpc-1", "cluster": {"address": "1.2.3.4", "bucket": "b"}}
        new = {"cluster": {"address": "1.2.3.4"}}
        assert status_patch(old, new) == {"vpcId": None, "cluster": {"bucket": None}}

    def test_changed_values(self):
        """Changed and new keys are included."""
        assert status_patch({"phase": "Pending"}, {"phase": "Ready", "endpoint": "lb"}) == {
            "phase": "Ready",
            "endpoint": "lb",
        }


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init(self):
        """Test handler initialization."""
        handler = BaseHandler(kind="TestKind")
        assert handler.kind == "TestKind"
        assert handler.logger is not None
        assert handler.installed is False

    def test_ensure_finalizer_adds_when_missing(self):
        """Test that finalizer is added when not present."""
        handler = BaseHandler(kind="TestKind")
        patch_obj = kopf.Patch()

        handler.ensure_finalizer({"finalizers": ["other"]}, patch_obj)

        assert patch_obj.metadata["finalizers"] == ["other", FINALIZER]

    def test_ensure_finalizer_no_duplicate(self):
        """Test that a present finalizer produces no patch."""
        handler = BaseHandler(kind="TestKind")
        patch_obj = kopf.Patch()

        handler.ensure_finalizer({"finalizers": [FINALIZER]}, patch_obj)

        assert "finalizers" not in patch_obj.metadata

    def test_remove_finalizer_keeps_others(self):
        """Test that only our finalizer is removed."""
        handler = BaseHandler(kind="TestKind")
        patch_obj = kopf.Patch()

        handler.remove_finalizer({"finalizers": [FINALIZER, "other"]}, patch_obj)

        assert patch_obj.metadata["finalizers"] == ["other"]

    def test_remove_finalizer_sets_none_when_empty(self):
        """Test that finalizers is set to None when last finalizer is removed."""
        handler = BaseHandler(kind="TestKind")
        patch_obj = kopf.Patch()

        handler.remove_finalizer({"finalizers": [FINALIZER]}, patch_obj)

        assert patch_obj.metadata["finalizers"] is None

    def test_not_installed_retries(self, make_control_plane):
        """Events arriving before startup finished are retried shortly."""
        with pytest.raises(kopf.TemporaryError) as exc_info:
            ControlPlaneHandler().handle(make_control_plane(), kopf.Patch())
        assert exc_info.value.delay == 1


class TestReconcile:
    """Test cases for the reconcile path."""

    def test_success_marks_ready(self, handler, make_control_plane, journal, events):
        """A clean pass adds the finalizer and reports Ready."""
        patch_obj = kopf.Patch()

        handler.handle(make_control_plane(), patch_obj)

        assert journal == ["reconcile:etcd", "reconcile:master", "reconcile:addons"]
        assert patch_obj.metadata["finalizers"] == [FINALIZER]
        assert patch_obj.status["phase"] == "Ready"
        assert patch_obj.status["failureCount"] == 0
        assert patch_obj.status["observedGeneration"] == 1
        ready = get_condition(patch_obj.status["conditions"], "Ready")
        assert ready["status"] == "True"
        assert reasons(events) == ["ReconcileSucceeded"]

    def test_already_ready_is_quiet(self, handler, make_control_plane, events):
        """A pass over a ready object emits no event and no status change."""
        first = kopf.Patch()
        body = make_control_plane()
        handler.handle(body, first)
        events.reset_mock()

        body["status"] = dict(first["status"])
        body["metadata"]["finalizers"] = [FINALIZER]
        second = kopf.Patch()
        handler.handle(body, second)

        assert events.call_count == 0
        assert "status" not in second
        assert "metadata" not in second

    def test_requeue_uses_fixed_delay(self, handler, stages, make_control_plane, events):
        """An unmet precondition requeues without counting a failure."""
        stages["master"].reconcile_error = NotReadyError("waiting for a load balancer address")
        body = make_control_plane(status={"failureCount": 2})
        patch_obj = kopf.Patch()

        with pytest.raises(kopf.TemporaryError) as exc_info:
            handler.handle(body, patch_obj)

        assert exc_info.value.delay == 7.0
        assert "failureCount" not in patch_obj.status
        assert patch_obj.status["phase"] == "Provisioning"
        ready = get_condition(patch_obj.status["conditions"], "Ready")
        assert ready["status"] == "False"
        assert ready["reason"] == "WaitingForSubResources"
        assert "master" in ready["message"]
        assert patch_obj.metadata["finalizers"] == [FINALIZER]
        assert reasons(events) == ["WaitingForSubResources"]

    def test_failure_counts_and_backs_off(self, handler, stages, make_control_plane, journal, events):
        """A failure persists the count and retries after the backoff delay."""
        stages["etcd"].reconcile_error = RuntimeError("kubeadm exited with 1")
        patch_obj = kopf.Patch()

        with pytest.raises(kopf.TemporaryError) as exc_info:
            handler.handle(make_control_plane(), patch_obj)

        assert exc_info.value.delay == 1.0
        assert journal == ["reconcile:etcd"]
        assert patch_obj.status["failureCount"] == 1
        assert "kubeadm exited with 1" in patch_obj.status["lastError"]
        assert get_condition(patch_obj.status["conditions"], "Ready")["reason"] == "ReconcileFailed"
        assert patch_obj.metadata["finalizers"] == [FINALIZER]
        assert reasons(events) == ["ReconcileFailed"]
        assert events.call_args.kwargs["type"] == "Warning"

    def test_backoff_grows_with_failures(self, handler, stages, make_control_plane, events):
        """The delay follows the persisted failure count."""
        stages["etcd"].reconcile_error = RuntimeError("boom")
        patch_obj = kopf.Patch()

        with pytest.raises(kopf.TemporaryError) as exc_info:
            handler.handle(make_control_plane(status={"failureCount": 3}), patch_obj)

        assert patch_obj.status["failureCount"] == 4
        assert exc_info.value.delay == 8.0

    def test_success_resets_failures(self, handler, make_control_plane, events):
        """A clean pass clears the failure count and last error."""
        patch_obj = kopf.Patch()

        handler.handle(make_control_plane(status={"failureCount": 5, "lastError": "boom"}), patch_obj)

        assert patch_obj.status["failureCount"] == 0
        assert patch_obj.status["lastError"] is None

    def test_error_message_is_sanitized(self, handler, stages, make_control_plane, events):
        """Credentials never reach the status."""
        stages["etcd"].reconcile_error = RuntimeError("denied for session_token=abc123")
        patch_obj = kopf.Patch()

        with pytest.raises(kopf.TemporaryError):
            handler.handle(make_control_plane(), patch_obj)

        assert "abc123" not in patch_obj.status["lastError"]

    def test_invalid_spec_is_a_failure(self, handler, make_control_plane, journal, events):
        """Validation errors take the failure path before any stage runs."""
        body = make_control_plane(spec={"etcd": {"replicas": 0}})
        patch_obj = kopf.Patch()

        with pytest.raises(kopf.TemporaryError):
            handler.handle(body, patch_obj)

        assert journal == []
        assert patch_obj.status["failureCount"] == 1
        assert "etcd.replicas" in patch_obj.status["lastError"]


class TestFinalize:
    """Test cases for the finalize path."""

    def test_success_removes_finalizer(self, handler, make_control_plane, journal, events):
        """Finalizers are removed only after every stage finalized."""
        body = deleting(make_control_plane(), [FINALIZER, "other"])
        patch_obj = kopf.Patch()

        handler.handle(body, patch_obj)

        assert journal == ["finalize:addons", "finalize:master", "finalize:etcd"]
        assert patch_obj.metadata["finalizers"] == ["other"]
        assert patch_obj.status["phase"] == "Terminating"
        assert reasons(events) == ["FinalizeStarted", "Finalized"]

    def test_failure_keeps_finalizer(self, handler, stages, make_control_plane, journal, events):
        """A failed finalize leaves the finalizer and backs off."""
        stages["master"].finalize_error = RuntimeError("load balancer still attached")
        body = deleting(make_control_plane(status={"phase": "Terminating"}), [FINALIZER])
        patch_obj = kopf.Patch()

        with pytest.raises(kopf.TemporaryError) as exc_info:
            handler.handle(body, patch_obj)

        assert journal == ["finalize:addons", "finalize:master"]
        assert "finalizers" not in patch_obj.metadata
        assert patch_obj.status["failureCount"] == 1
        assert exc_info.value.delay == 1.0
        assert reasons(events) == ["FinalizeFailed"]

    def test_requeue_keeps_finalizer(self, handler, stages, make_control_plane, events):
        """A finalize waiting on a precondition requeues with the fixed delay."""
        stages["addons"].finalize_error = NotReadyError("guest cluster draining")
        body = deleting(make_control_plane(), [FINALIZER])
        patch_obj = kopf.Patch()

        with pytest.raises(kopf.TemporaryError) as exc_info:
            handler.handle(body, patch_obj)

        assert exc_info.value.delay == 7.0
        assert "finalizers" not in patch_obj.metadata


class TestControlPlaneHandlers:
    """Test cases for the kopf entry points."""

    def test_resync_skips_deleting_objects(self, make_control_plane):
        """The timer leaves objects being deleted to the delete handler."""
        with patch.object(controlplane, "_handler") as mock_handler:
            controlplane.resync_control_plane(
                body=make_control_plane(), meta={"deletionTimestamp": "now"}, patch=kopf.Patch()
            )
            mock_handler.handle.assert_not_called()

    def test_resync_reconciles(self, make_control_plane):
        """The timer runs a regular pass."""
        body = make_control_plane()
        patch_obj = kopf.Patch()
        with patch.object(controlplane, "_handler") as mock_handler:
            controlplane.resync_control_plane(body=body, meta=body["metadata"], patch=patch_obj)
            mock_handler.handle.assert_called_once_with(body, patch_obj)
