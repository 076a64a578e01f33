"""Builders for kubeadm configuration documents."""

from __future__ import annotations

from typing import Any

from ..apis.v1alpha1 import ControlPlane, Substrate
from ..bootstrap.authenticator import WEBHOOK_KUBECONFIG
from ..config import OperatorConfig
from ..constants import APISERVER_PORT, ETCD_CLIENT_PORT, ETCD_PEER_PORT
from ..controllers.names import endpoint_service_name, etcd_service_name

KUBEADM_API_VERSION = "kubeadm.k8s.io/v1beta2"

SERVICE_SANS = [
    "kubernetes",
    "kubernetes.default",
    "kubernetes.default.svc",
    "kubernetes.default.svc.cluster.local",
    "10.96.0.1",
]

AUTHENTICATOR_WEBHOOK_CONFIG = WEBHOOK_KUBECONFIG


def init_configuration(
    config: OperatorConfig,
    *,
    node_name: str,
    control_plane_endpoint: str,
    cert_sans: list[str],
    etcd_sans: list[str],
    certificates_dir: str,
    kubernetes_version: str | None = None,
    advertise_address: str | None = None,
    etcd_extra_args: dict[str, str] | None = None,
) -> list[dict[str, Any]]:
    """Build the InitConfiguration and ClusterConfiguration documents.

    Args:
        config: Operator configuration (image repositories and versions)
        node_name: Name registered for the node and used by etcd
        control_plane_endpoint: host:port clients use to reach the API server
        cert_sans: Extra SANs for the API server serving certificate
        etcd_sans: SANs for the etcd server and peer certificates
        certificates_dir: Directory kubeadm writes certificates into
        kubernetes_version: Version tag; defaults to the operator default
        advertise_address: IP the API server advertises, if known
        etcd_extra_args: Extra flags for a local etcd member

    Returns:
        Documents suitable for `kubeadm --config`
    """
    init: dict[str, Any] = {
        "apiVersion": KUBEADM_API_VERSION,
        "kind": "InitConfiguration",
        "nodeRegistration": {
            "name": node_name,
            "kubeletExtraArgs": {
                "cgroup-driver": "systemd",
                "network-plugin": "cni",
                "pod-infra-container-image": config.pause_image,
            },
        },
        "localAPIEndpoint": {"bindPort": APISERVER_PORT},
    }
    if advertise_address:
        init["localAPIEndpoint"]["advertiseAddress"] = advertise_address

    apiserver_args = {
        "secure-port": str(APISERVER_PORT),
        "authentication-token-webhook-config-file": AUTHENTICATOR_WEBHOOK_CONFIG,
    }
    if advertise_address:
        apiserver_args["advertise-address"] = advertise_address

    cluster: dict[str, Any] = {
        "apiVersion": KUBEADM_API_VERSION,
        "kind": "ClusterConfiguration",
        "clusterName": node_name,
        "kubernetesVersion": kubernetes_version or config.kubernetes_version,
        "imageRepository": config.image_repository,
        "controlPlaneEndpoint": control_plane_endpoint,
        "certificatesDir": certificates_dir,
        "etcd": {
            "local": {
                "imageRepository": config.etcd_image_repository,
                "imageTag": config.etcd_version,
                "dataDir": "/var/lib/etcd",
                "serverCertSANs": list(etcd_sans),
                "peerCertSANs": list(etcd_sans),
                "extraArgs": dict(etcd_extra_args or {}),
            }
        },
        "apiServer": {
            "certSANs": list(cert_sans) + SERVICE_SANS,
            "extraArgs": apiserver_args,
        },
        "controllerManager": {"extraArgs": {}},
        "scheduler": {"extraArgs": {}},
    }
    return [init, cluster]


def substrate_configuration(
    substrate: Substrate, config: OperatorConfig, certificates_dir: str
) -> list[dict[str, Any]]:
    """Configuration for a single-node control plane on a substrate instance."""
    address = substrate.address
    if not address:
        raise ValueError(f"substrate {substrate.name} has no address yet")
    peer_url = f"https://127.0.0.1:{ETCD_PEER_PORT}"
    client_url = f"https://127.0.0.1:{ETCD_CLIENT_PORT}"
    return init_configuration(
        config,
        node_name=substrate.name,
        control_plane_endpoint=f"{address}:{APISERVER_PORT}",
        cert_sans=[address, substrate.name],
        etcd_sans=["localhost", "127.0.0.1"],
        certificates_dir=certificates_dir,
        advertise_address=address,
        etcd_extra_args={
            "initial-cluster": f"{substrate.name}={peer_url}",
            "initial-cluster-state": "new",
            "name": substrate.name,
            "listen-peer-urls": peer_url,
            "listen-client-urls": client_url,
            "advertise-client-urls": client_url,
            "initial-advertise-peer-urls": peer_url,
        },
    )


def etcd_sans_for(control_plane: ControlPlane) -> list[str]:
    """SANs covering the etcd service and every member of its StatefulSet."""
    service = etcd_service_name(control_plane.cluster_name)
    namespace = control_plane.namespace
    return [
        "localhost",
        "127.0.0.1",
        service,
        f"{service}.{namespace}",
        f"{service}.{namespace}.svc",
        f"{service}.{namespace}.svc.cluster.local",
        f"*.{service}.{namespace}.svc",
        f"*.{service}.{namespace}.svc.cluster.local",
    ]


def control_plane_configuration(
    control_plane: ControlPlane,
    config: OperatorConfig,
    certificates_dir: str,
    endpoint: str | None = None,
) -> list[dict[str, Any]]:
    """Configuration for a control plane hosted on the management cluster.

    The endpoint is the load balancer hostname; it is only required for the
    API server certificate and kubeconfigs, not for the etcd PKI.
    """
    service = endpoint_service_name(control_plane.cluster_name)
    namespace = control_plane.namespace
    cert_sans = [
        control_plane.cluster_name,
        service,
        f"{service}.{namespace}",
        f"{service}.{namespace}.svc",
        f"{service}.{namespace}.svc.cluster.local",
    ]
    if endpoint:
        cert_sans.insert(0, endpoint)
    return init_configuration(
        config,
        node_name=control_plane.cluster_name,
        control_plane_endpoint=f"{endpoint or service}:{APISERVER_PORT}",
        cert_sans=cert_sans,
        etcd_sans=etcd_sans_for(control_plane),
        certificates_dir=certificates_dir,
        kubernetes_version=control_plane.kubernetes_version(config.kubernetes_version),
    )
