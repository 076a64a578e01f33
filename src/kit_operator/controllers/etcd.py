"""etcd cluster for a hosted control plane."""

from __future__ import annotations

from typing import Any

from ..apis.v1alpha1 import ControlPlane
from ..bootstrap.kubeadm import ETCD_CERT_PHASES, Kubeadm
from ..bootstrap.manifests import PKI_DIR, etcd_command
from ..builders.cluster_config import control_plane_configuration
from ..config import OperatorConfig
from ..constants import ETCD_CLIENT_PORT, ETCD_PEER_PORT
from ..kube.objects import labels_for, metadata, secret_volume, selector_labels, with_owner
from ..kube.provider import KubeProvider
from . import pki
from .names import etcd_pki_secret_name, etcd_service_name

COMPONENT = "etcd"
DATA_DIR = "/var/lib/etcd"

# Secret key to the path below /etc/kubernetes/pki/etcd
ETCD_CERT_ITEMS = {
    "etcd-ca.crt": "ca.crt",
    "etcd-server.crt": "server.crt",
    "etcd-server.key": "server.key",
    "etcd-peer.crt": "peer.crt",
    "etcd-peer.key": "peer.key",
}


def member_url(control_plane: ControlPlane, member: str, port: int) -> str:
    service = etcd_service_name(control_plane.cluster_name)
    return f"https://{member}.{service}.{control_plane.namespace}.svc.cluster.local:{port}"


def initial_cluster(control_plane: ControlPlane) -> str:
    service = etcd_service_name(control_plane.cluster_name)
    members = [f"{service}-{i}" for i in range(control_plane.etcd_replicas)]
    return ",".join(f"{m}={member_url(control_plane, m, ETCD_PEER_PORT)}" for m in members)


def client_endpoint(control_plane: ControlPlane) -> str:
    service = etcd_service_name(control_plane.cluster_name)
    return f"https://{service}.{control_plane.namespace}.svc.cluster.local:{ETCD_CLIENT_PORT}"


class EtcdController:
    """PKI secret, headless Service and StatefulSet of the etcd members."""

    def __init__(self, kube: KubeProvider, kubeadm: Kubeadm, config: OperatorConfig) -> None:
        self.kube = kube
        self.kubeadm = kubeadm
        self.config = config

    def reconcile(self, control_plane: ControlPlane) -> None:
        pki.ensure_pki_secret(
            self.kube,
            control_plane,
            etcd_pki_secret_name(control_plane.cluster_name),
            COMPONENT,
            lambda: pki.generate(
                self.kubeadm,
                self.config.staging_dir,
                lambda certs_dir: control_plane_configuration(control_plane, self.config, certs_dir),
                ETCD_CERT_PHASES,
            ),
        )
        self.kube.ensure_create(with_owner(control_plane, self.service(control_plane)))
        self.kube.ensure_patch(with_owner(control_plane, self.stateful_set(control_plane)))

    def finalize(self, control_plane: ControlPlane) -> None:
        # Service, StatefulSet and Secret are garbage collected through their owner
        return None

    def service(self, control_plane: ControlPlane) -> dict[str, Any]:
        cluster = control_plane.cluster_name
        return {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": metadata(
                etcd_service_name(cluster), control_plane.namespace, labels_for(cluster, COMPONENT)
            ),
            "spec": {
                "clusterIP": "None",
                "publishNotReadyAddresses": True,
                "selector": selector_labels(cluster, COMPONENT),
                "ports": [
                    {"name": "client", "port": ETCD_CLIENT_PORT, "protocol": "TCP"},
                    {"name": "peer", "port": ETCD_PEER_PORT, "protocol": "TCP"},
                ],
            },
        }

    def stateful_set(self, control_plane: ControlPlane) -> dict[str, Any]:
        cluster = control_plane.cluster_name
        service = etcd_service_name(cluster)
        advertise_peer = member_url(control_plane, "$(POD_NAME)", ETCD_PEER_PORT)
        advertise_client = member_url(control_plane, "$(POD_NAME)", ETCD_CLIENT_PORT)
        command = etcd_command(
            PKI_DIR,
            DATA_DIR,
            {
                "name": "$(POD_NAME)",
                "initial-cluster": initial_cluster(control_plane),
                "initial-cluster-state": "new",
                "initial-cluster-token": cluster,
                "listen-client-urls": f"https://0.0.0.0:{ETCD_CLIENT_PORT}",
                "listen-peer-urls": f"https://0.0.0.0:{ETCD_PEER_PORT}",
                "advertise-client-urls": advertise_client,
                "initial-advertise-peer-urls": advertise_peer,
            },
        )
        return {
            "apiVersion": "apps/v1",
            "kind": "StatefulSet",
            "metadata": metadata(service, control_plane.namespace, labels_for(cluster, COMPONENT)),
            "spec": {
                "serviceName": service,
                "replicas": control_plane.etcd_replicas,
                "podManagementPolicy": "Parallel",
                "selector": {"matchLabels": selector_labels(cluster, COMPONENT)},
                "template": {
                    "metadata": {
                        "labels": {**labels_for(cluster, COMPONENT), **selector_labels(cluster, COMPONENT)}
                    },
                    "spec": {
                        "terminationGracePeriodSeconds": 10,
                        "containers": [
                            {
                                "name": "etcd",
                                "image": self.config.etcd_image,
                                "command": command,
                                "env": [
                                    {
                                        "name": "POD_NAME",
                                        "valueFrom": {"fieldRef": {"fieldPath": "metadata.name"}},
                                    }
                                ],
                                "ports": [
                                    {"name": "client", "containerPort": ETCD_CLIENT_PORT},
                                    {"name": "peer", "containerPort": ETCD_PEER_PORT},
                                ],
                                "volumeMounts": [
                                    {"name": "etcd-certs", "mountPath": f"{PKI_DIR}/etcd", "readOnly": True},
                                    {"name": "etcd-data", "mountPath": DATA_DIR},
                                ],
                            }
                        ],
                        "volumes": [
                            secret_volume("etcd-certs", etcd_pki_secret_name(cluster), ETCD_CERT_ITEMS),
                            {"name": "etcd-data", "emptyDir": {}},
                        ],
                    },
                },
            },
        }
