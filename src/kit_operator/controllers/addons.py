"""Add-ons installed into the guest cluster once its API server answers."""

from __future__ import annotations

import base64
from typing import Any

import yaml

from ..apis.v1alpha1 import ControlPlane
from ..config import OperatorConfig
from ..constants import APISERVER_PORT, KUBE_PROXY, KUBE_PROXY_DAEMONSET_NAME, KUBE_SYSTEM
from ..errors import NotReadyError
from ..kube.objects import host_path_volume, metadata, secret_volume
from ..kube.provider import KubeProvider
from ..utils.secrets import decode_secret_data, secret_manifest
from .guest import GuestClusters, guest_api_available
from .names import controlplane_pki_secret_name, kube_proxy_config_name

SERVICE_ACCOUNT_TOKEN = "/var/run/secrets/kubernetes.io/serviceaccount/token"
KUBE_PROXY_LABELS = {"k8s-app": KUBE_PROXY}


def kube_proxy_kubeconfig(endpoint: str, ca_cert: str) -> str:
    """Kubeconfig authenticating kube-proxy with its service account token."""
    config = {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [
            {
                "name": "default",
                "cluster": {
                    "server": f"https://{endpoint}:{APISERVER_PORT}",
                    "certificate-authority-data": base64.b64encode(ca_cert.encode("utf-8")).decode("utf-8"),
                },
            }
        ],
        "users": [{"name": "default", "user": {"tokenFile": SERVICE_ACCOUNT_TOKEN}}],
        "contexts": [
            {"name": "default", "context": {"cluster": "default", "namespace": "default", "user": "default"}}
        ],
        "current-context": "default",
    }
    return yaml.safe_dump(config, default_flow_style=False, sort_keys=False)


class KubeProxy:
    """kube-proxy DaemonSet with its RBAC and kubeconfig."""

    def __init__(self, kube: KubeProvider, guest_clusters: GuestClusters, config: OperatorConfig) -> None:
        self.kube = kube
        self.guest_clusters = guest_clusters
        self.config = config

    def reconcile(self, control_plane: ControlPlane) -> None:
        guest = self.guest_clusters.for_control_plane(control_plane)
        kubeconfig_secret = self.kubeconfig_secret(control_plane)
        with guest_api_available(control_plane):
            guest.ensure_patch(self.service_account())
            guest.ensure_create(self.cluster_role_binding())
            guest.ensure_patch(kubeconfig_secret)
            guest.ensure_patch(self.daemon_set(control_plane))

    def finalize(self, control_plane: ControlPlane) -> None:
        # Everything lives in the guest cluster, which goes away with the control plane
        return None

    def service_account(self) -> dict[str, Any]:
        return {"apiVersion": "v1", "kind": "ServiceAccount", "metadata": metadata(KUBE_PROXY, KUBE_SYSTEM)}

    def cluster_role_binding(self) -> dict[str, Any]:
        return {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRoleBinding",
            "metadata": metadata("kit:kube-proxy"),
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": "system:node-proxier",
            },
            "subjects": [{"kind": "ServiceAccount", "name": KUBE_PROXY, "namespace": KUBE_SYSTEM}],
        }

    def kubeconfig_secret(self, control_plane: ControlPlane) -> dict[str, Any]:
        endpoint = control_plane.endpoint
        if not endpoint:
            raise NotReadyError("control plane endpoint is not recorded yet")
        secret_name = controlplane_pki_secret_name(control_plane.cluster_name)
        secret = self.kube.get("v1", "Secret", secret_name, control_plane.namespace)
        ca_cert = decode_secret_data(secret or {}).get("ca.crt")
        if not ca_cert:
            raise NotReadyError(f"cluster CA missing from secret {secret_name}")
        return secret_manifest(
            kube_proxy_config_name(control_plane.cluster_name),
            KUBE_SYSTEM,
            {"config": kube_proxy_kubeconfig(endpoint, ca_cert)},
        )

    def daemon_set(self, control_plane: ControlPlane) -> dict[str, Any]:
        version = control_plane.kubernetes_version(self.config.kubernetes_version)
        return {
            "apiVersion": "apps/v1",
            "kind": "DaemonSet",
            "metadata": metadata(KUBE_PROXY_DAEMONSET_NAME, KUBE_SYSTEM),
            "spec": {
                "updateStrategy": {"type": "RollingUpdate"},
                "selector": {"matchLabels": dict(KUBE_PROXY_LABELS)},
                "template": {
                    "metadata": {"labels": dict(KUBE_PROXY_LABELS)},
                    "spec": {
                        "terminationGracePeriodSeconds": 1,
                        "serviceAccountName": KUBE_PROXY,
                        "hostNetwork": True,
                        "dnsPolicy": "ClusterFirst",
                        "priorityClassName": "system-node-critical",
                        "tolerations": [{"operator": "Exists"}],
                        "containers": [
                            {
                                "name": "kubeproxy",
                                "image": self.config.kube_image("kube-proxy", version),
                                "resources": {"requests": {"cpu": "1"}},
                                "securityContext": {"privileged": True},
                                "command": ["kube-proxy"],
                                "args": [
                                    "--kubeconfig=/var/lib/kube-proxy/kubeconfig",
                                    "--iptables-min-sync-period=0s",
                                    "--oom-score-adj=-998",
                                ],
                                "volumeMounts": [
                                    {"name": "varlog", "mountPath": "/var/log"},
                                    {"name": "xtables-lock", "mountPath": "/run/xtables.lock"},
                                    {"name": "lib-modules", "mountPath": "/lib/modules", "readOnly": True},
                                    {"name": "kubeproxy-kubeconfig", "mountPath": "/var/lib/kube-proxy", "readOnly": True},
                                ],
                            }
                        ],
                        "volumes": [
                            host_path_volume("varlog", "/var/log"),
                            host_path_volume("xtables-lock", "/run/xtables.lock", "FileOrCreate"),
                            host_path_volume("lib-modules", "/lib/modules"),
                            secret_volume(
                                "kubeproxy-kubeconfig",
                                kube_proxy_config_name(control_plane.cluster_name),
                                {"config": "kubeconfig"},
                            ),
                        ],
                    },
                },
            },
        }


class AddonsController:
    """Runs each add-on in order against the guest cluster."""

    def __init__(self, kube: KubeProvider, guest_clusters: GuestClusters, config: OperatorConfig) -> None:
        self.addons = (KubeProxy(kube, guest_clusters, config),)

    def reconcile(self, control_plane: ControlPlane) -> None:
        for addon in self.addons:
            addon.reconcile(control_plane)

    def finalize(self, control_plane: ControlPlane) -> None:
        for addon in reversed(self.addons):
            addon.finalize(control_plane)
