"""API server, controller-manager and scheduler of a hosted control plane."""

from __future__ import annotations

import logging
from typing import Any

from ..apis.v1alpha1 import ControlPlane
from ..bootstrap import authenticator
from ..bootstrap.kubeadm import CONTROL_PLANE_CERT_PHASES, MASTER_KUBECONFIGS, Kubeadm
from ..bootstrap.manifests import (
    KUBECONFIG_DIR,
    PKI_DIR,
    apiserver_command,
    controller_manager_command,
    scheduler_command,
)
from ..builders.cluster_config import control_plane_configuration
from ..config import OperatorConfig
from ..constants import APISERVER_PORT
from ..errors import NotReadyError
from ..kube.objects import labels_for, metadata, projected_secret_volume, selector_labels, with_owner
from ..kube.provider import KubeProvider
from ..services.base import CloudProvider
from . import pki
from .etcd import client_endpoint
from .names import (
    apiserver_name,
    apiserver_port_name,
    authenticator_config_name,
    controller_manager_name,
    controlplane_pki_secret_name,
    endpoint_service_name,
    etcd_pki_secret_name,
    scheduler_name,
)

logger = logging.getLogger(__name__)

APISERVER = "apiserver"
CONTROLLER_MANAGER = "controller-manager"
SCHEDULER = "scheduler"

ENDPOINT_ANNOTATIONS = {
    "service.beta.kubernetes.io/aws-load-balancer-scheme": "internet-facing",
    "service.beta.kubernetes.io/aws-load-balancer-type": "nlb-ip",
    "service.beta.kubernetes.io/aws-load-balancer-target-group-attributes": "stickiness.enabled=true,stickiness.type=source_ip",
}

APISERVER_CERT_ITEMS = {
    "ca.crt": "ca.crt",
    "apiserver.crt": "apiserver.crt",
    "apiserver.key": "apiserver.key",
    "apiserver-kubelet-client.crt": "apiserver-kubelet-client.crt",
    "apiserver-kubelet-client.key": "apiserver-kubelet-client.key",
    "front-proxy-ca.crt": "front-proxy-ca.crt",
    "front-proxy-client.crt": "front-proxy-client.crt",
    "front-proxy-client.key": "front-proxy-client.key",
    "sa.key": "sa.key",
    "sa.pub": "sa.pub",
}

APISERVER_ETCD_ITEMS = {
    "etcd-ca.crt": "etcd/ca.crt",
    "apiserver-etcd-client.crt": "apiserver-etcd-client.crt",
    "apiserver-etcd-client.key": "apiserver-etcd-client.key",
}

# Paths below /etc/kubernetes
CONTROLLER_MANAGER_ITEMS = {
    "ca.crt": "pki/ca.crt",
    "ca.key": "pki/ca.key",
    "sa.key": "pki/sa.key",
    "front-proxy-ca.crt": "pki/front-proxy-ca.crt",
    "controller-manager.conf": "controller-manager.conf",
}

SCHEDULER_ITEMS = {"scheduler.conf": "scheduler.conf"}


def load_balancer_hostname(service: dict[str, Any] | None) -> str | None:
    ingress = (((service or {}).get("status") or {}).get("loadBalancer") or {}).get("ingress") or []
    if not ingress:
        return None
    return ingress[0].get("hostname") or ingress[0].get("ip")


class MasterController:
    """Endpoint, certificates and control plane Deployments.

    The API server certificate and kubeconfigs embed the load balancer
    hostname, so nothing past the endpoint Service is created until the cloud
    has assigned one.
    """

    def __init__(
        self,
        kube: KubeProvider,
        cloud: CloudProvider,
        kubeadm: Kubeadm,
        config: OperatorConfig,
    ) -> None:
        self.kube = kube
        self.cloud = cloud
        self.kubeadm = kubeadm
        self.config = config

    def reconcile(self, control_plane: ControlPlane) -> None:
        self.kube.ensure_create(with_owner(control_plane, self.endpoint_service(control_plane)))
        endpoint = self.endpoint(control_plane)
        pki.ensure_pki_secret(
            self.kube,
            control_plane,
            controlplane_pki_secret_name(control_plane.cluster_name),
            APISERVER,
            lambda: pki.generate(
                self.kubeadm,
                self.config.staging_dir,
                lambda certs_dir: control_plane_configuration(control_plane, self.config, certs_dir, endpoint),
                CONTROL_PLANE_CERT_PHASES,
                MASTER_KUBECONFIGS,
            ),
        )
        self.kube.ensure_patch(with_owner(control_plane, self.authenticator_config_map(control_plane)))
        for deployment in (
            self.apiserver(control_plane),
            self.controller_manager(control_plane),
            self.scheduler(control_plane),
        ):
            self.kube.ensure_patch(with_owner(control_plane, deployment))
        control_plane.status["endpoint"] = endpoint

    def finalize(self, control_plane: ControlPlane) -> None:
        # Release the load balancer before the owner is removed
        name = endpoint_service_name(control_plane.cluster_name)
        if self.kube.delete("v1", "Service", name, control_plane.namespace):
            logger.info(f"Deleted endpoint service {control_plane.namespace}/{name}")

    def endpoint(self, control_plane: ControlPlane) -> str:
        """Return the load balancer hostname or raise NotReadyError."""
        name = endpoint_service_name(control_plane.cluster_name)
        service = self.kube.get("v1", "Service", name, control_plane.namespace)
        if service is None:
            raise NotReadyError(f"endpoint service {name} does not exist yet")
        hostname = load_balancer_hostname(service)
        if not hostname:
            raise NotReadyError(f"waiting for a load balancer address on service {name}")
        return hostname

    def endpoint_service(self, control_plane: ControlPlane) -> dict[str, Any]:
        cluster = control_plane.cluster_name
        return {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": metadata(
                endpoint_service_name(cluster),
                control_plane.namespace,
                labels_for(cluster, APISERVER),
                ENDPOINT_ANNOTATIONS,
            ),
            "spec": {
                "type": "LoadBalancer",
                "selector": selector_labels(cluster, APISERVER),
                "ports": [
                    {
                        "name": apiserver_port_name(cluster),
                        "port": APISERVER_PORT,
                        "targetPort": APISERVER_PORT,
                        "protocol": "TCP",
                    }
                ],
            },
        }

    def authenticator_config_map(self, control_plane: ControlPlane) -> dict[str, Any]:
        cluster = control_plane.cluster_name
        return {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": metadata(
                authenticator_config_name(cluster), control_plane.namespace, labels_for(cluster, APISERVER)
            ),
            "data": {
                authenticator.CONFIG_FILE: authenticator.render_config(
                    cluster, self.cloud.account_id(), self.config.node_role_name
                )
            },
        }

    def _deployment(
        self,
        control_plane: ControlPlane,
        name: str,
        component: str,
        containers: list[dict[str, Any]],
        volumes: list[dict[str, Any]],
    ) -> dict[str, Any]:
        cluster = control_plane.cluster_name
        return {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": metadata(name, control_plane.namespace, labels_for(cluster, component)),
            "spec": {
                "replicas": control_plane.master_replicas,
                "selector": {"matchLabels": selector_labels(cluster, component)},
                "template": {
                    "metadata": {"labels": {**labels_for(cluster, component), **selector_labels(cluster, component)}},
                    "spec": {"containers": containers, "volumes": volumes},
                },
            },
        }

    def apiserver(self, control_plane: ControlPlane) -> dict[str, Any]:
        cluster = control_plane.cluster_name
        version = control_plane.kubernetes_version(self.config.kubernetes_version)
        command = apiserver_command(
            client_endpoint(control_plane),
            PKI_DIR,
            extra_args={"authentication-token-webhook-config-file": authenticator.WEBHOOK_KUBECONFIG},
        )
        apiserver_container = {
            "name": "kube-apiserver",
            "image": self.config.kube_image("kube-apiserver", version),
            "command": command,
            "ports": [{"name": "https", "containerPort": APISERVER_PORT}],
            "volumeMounts": [
                {"name": "pki", "mountPath": PKI_DIR, "readOnly": True},
                {"name": "authenticator-state", "mountPath": authenticator.STATE_DIR, "readOnly": True},
            ],
        }
        volumes = [
            projected_secret_volume(
                "pki",
                {
                    controlplane_pki_secret_name(cluster): APISERVER_CERT_ITEMS,
                    etcd_pki_secret_name(cluster): APISERVER_ETCD_ITEMS,
                },
            ),
            {"name": "authenticator-config", "configMap": {"name": authenticator_config_name(cluster)}},
            {"name": "authenticator-state", "emptyDir": {}},
        ]
        sidecar = authenticator.container(self.config, "authenticator-config", "authenticator-state")
        return self._deployment(
            control_plane, apiserver_name(cluster), APISERVER, [apiserver_container, sidecar], volumes
        )

    def controller_manager(self, control_plane: ControlPlane) -> dict[str, Any]:
        cluster = control_plane.cluster_name
        version = control_plane.kubernetes_version(self.config.kubernetes_version)
        container = {
            "name": "kube-controller-manager",
            "image": self.config.kube_image("kube-controller-manager", version),
            "command": controller_manager_command(PKI_DIR, f"{KUBECONFIG_DIR}/controller-manager.conf"),
            "volumeMounts": [{"name": "kubernetes", "mountPath": KUBECONFIG_DIR, "readOnly": True}],
        }
        volumes = [
            projected_secret_volume("kubernetes", {controlplane_pki_secret_name(cluster): CONTROLLER_MANAGER_ITEMS})
        ]
        return self._deployment(
            control_plane, controller_manager_name(cluster), CONTROLLER_MANAGER, [container], volumes
        )

    def scheduler(self, control_plane: ControlPlane) -> dict[str, Any]:
        cluster = control_plane.cluster_name
        version = control_plane.kubernetes_version(self.config.kubernetes_version)
        container = {
            "name": "kube-scheduler",
            "image": self.config.kube_image("kube-scheduler", version),
            "command": scheduler_command(f"{KUBECONFIG_DIR}/scheduler.conf"),
            "volumeMounts": [{"name": "kubernetes", "mountPath": KUBECONFIG_DIR, "readOnly": True}],
        }
        volumes = [projected_secret_volume("kubernetes", {controlplane_pki_secret_name(cluster): SCHEDULER_ITEMS})]
        return self._deployment(control_plane, scheduler_name(cluster), SCHEDULER, [container], volumes)
