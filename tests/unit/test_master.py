"""Tests for the master sub-controller and its readiness gate."""

from __future__ import annotations

import kopf
import pytest

from kit_operator.apis.v1alpha1 import ControlPlane
from kit_operator.constants import FINALIZER
from kit_operator.controllers.etcd import EtcdController
from kit_operator.controllers.composer import Composer
from kit_operator.controllers.master import MasterController, load_balancer_hostname
from kit_operator.errors import NotReadyError
from kit_operator.handlers.controlplane import ControlPlaneHandler
from kit_operator.utils.backoff import Backoff
from kit_operator.utils.secrets import decode_secret_data


def assign_hostname(store, hostname="demo-cp.elb.amazonaws.com"):
    service = store.find("Service", "demo-cp")
    service["status"] = {"loadBalancer": {"ingress": [{"hostname": hostname}]}}


@pytest.fixture
def control_plane(make_control_plane):
    return ControlPlane(make_control_plane())


@pytest.fixture
def controller(kube, cloud, kubeadm, config):
    return MasterController(kube, cloud, kubeadm, config)


class TestLoadBalancerHostname:
    """Test cases for load_balancer_hostname."""

    def test_missing(self):
        """No ingress means no address."""
        assert load_balancer_hostname(None) is None
        assert load_balancer_hostname({"status": {"loadBalancer": {}}}) is None

    def test_hostname_or_ip(self):
        """A hostname is preferred and an IP is accepted."""
        assert load_balancer_hostname({"status": {"loadBalancer": {"ingress": [{"hostname": "lb"}]}}}) == "lb"
        assert load_balancer_hostname({"status": {"loadBalancer": {"ingress": [{"ip": "1.2.3.4"}]}}}) == "1.2.3.4"


class TestMasterController:
    """Test cases for MasterController."""

    def test_waits_for_load_balancer(self, controller, control_plane, store, kubeadm):
        """Nothing past the endpoint Service is created before it has an address."""
        with pytest.raises(NotReadyError):
            controller.reconcile(control_plane)

        service = store.find("Service", "demo-cp")
        assert service["spec"]["type"] == "LoadBalancer"
        assert service["spec"]["ports"][0]["port"] == 443
        assert store.find("Secret", "demo-controlplane-pki") is None
        assert store.find("Deployment", "demo-apiserver") is None
        assert kubeadm.calls == []
        assert "endpoint" not in control_plane.status

    def test_reconcile_after_address_assigned(self, controller, control_plane, store, kubeadm):
        """Certificates, config and Deployments follow the endpoint."""
        with pytest.raises(NotReadyError):
            controller.reconcile(control_plane)
        assign_hostname(store)

        controller.reconcile(control_plane)

        assert control_plane.status["endpoint"] == "demo-cp.elb.amazonaws.com"
        data = decode_secret_data(store.find("Secret", "demo-controlplane-pki"))
        assert {"ca.crt", "apiserver.crt", "sa.key", "admin.conf", "scheduler.conf"} <= set(data)
        assert "demo-cp.elb.amazonaws.com" in data["admin.conf"]
        assert ("kubeconfigs", ("admin", "controller-manager", "scheduler")) in kubeadm.calls

        config_map = store.find("ConfigMap", "demo-auth-config")
        assert "arn:aws:iam::123456789012:role/" in config_map["data"]["config.yaml"]

        for name in ("demo-apiserver", "demo-controller-manager", "demo-scheduler"):
            deployment = store.find("Deployment", name)
            assert deployment["spec"]["replicas"] == 1
            assert deployment["metadata"]["ownerReferences"][0]["kind"] == "ControlPlane"

    def test_apiserver_pod(self, controller, control_plane):
        """The API server mounts both PKI Secrets and runs the authenticator sidecar."""
        deployment = controller.apiserver(control_plane)
        pod_spec = deployment["spec"]["template"]["spec"]

        names = [c["name"] for c in pod_spec["containers"]]
        assert names == ["kube-apiserver", "aws-iam-authenticator"]
        command = pod_spec["containers"][0]["command"]
        assert "--etcd-servers=https://demo-etcd.tenants.svc.cluster.local:2379" in command
        sources = pod_spec["volumes"][0]["projected"]["sources"]
        assert [s["secret"]["name"] for s in sources] == ["demo-controlplane-pki", "demo-etcd-pki"]

    def test_finalize_deletes_endpoint(self, controller, control_plane, store):
        """The load balancer Service is deleted and a second finalize is a no-op."""
        with pytest.raises(NotReadyError):
            controller.reconcile(control_plane)

        controller.finalize(control_plane)
        controller.finalize(control_plane)

        assert store.find("Service", "demo-cp") is None


class TestReadinessGate:
    """A control plane is requeued until its endpoint exists, then reports Ready."""

    def test_requeue_until_address_assigned(self, kube, cloud, kubeadm, config, store, make_control_plane, monkeypatch):
        """Passes before the address is assigned requeue with the fixed delay."""
        monkeypatch.setattr(kopf, "event", lambda *args, **kwargs: None)
        handler = ControlPlaneHandler()
        handler.install(
            Composer(
                "ControlPlane",
                [
                    ("etcd", EtcdController(kube, kubeadm, config)),
                    ("master", MasterController(kube, cloud, kubeadm, config)),
                ],
                requeue_after=config.requeue_after_seconds,
            ),
            Backoff(rand=lambda: 0.5),
        )
        body = make_control_plane()
        first = kopf.Patch()

        with pytest.raises(kopf.TemporaryError) as exc_info:
            handler.handle(body, first)

        assert exc_info.value.delay == 5.0
        assert first.status["phase"] == "Provisioning"
        assert "failureCount" not in first.status

        assign_hostname(store)
        body["status"] = dict(first["status"])
        body["metadata"]["finalizers"] = [FINALIZER]
        second = kopf.Patch()

        handler.handle(body, second)

        assert second.status["phase"] == "Ready"
        assert second.status["endpoint"] == "demo-cp.elb.amazonaws.com"
