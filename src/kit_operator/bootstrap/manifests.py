"""Control plane component commands and static pod manifests."""

from __future__ import annotations

import os
from typing import Any, Mapping

import yaml

from ..constants import APISERVER_PORT, KUBE_SYSTEM
from ..kube.objects import host_path_volume

PKI_DIR = "/etc/kubernetes/pki"
KUBECONFIG_DIR = "/etc/kubernetes"
ETCD_DATA_DIR = "/var/lib/etcd"
SERVICE_CIDR = "10.96.0.0/12"


def flags(values: Mapping[str, str]) -> list[str]:
    return [f"--{key}={value}" for key, value in sorted(values.items())]


def etcd_command(pki_dir: str = PKI_DIR, data_dir: str = ETCD_DATA_DIR, extra_args: Mapping[str, str] | None = None) -> list[str]:
    args = {
        "cert-file": f"{pki_dir}/etcd/server.crt",
        "key-file": f"{pki_dir}/etcd/server.key",
        "client-cert-auth": "true",
        "trusted-ca-file": f"{pki_dir}/etcd/ca.crt",
        "peer-cert-file": f"{pki_dir}/etcd/peer.crt",
        "peer-key-file": f"{pki_dir}/etcd/peer.key",
        "peer-client-cert-auth": "true",
        "peer-trusted-ca-file": f"{pki_dir}/etcd/ca.crt",
        "data-dir": data_dir,
        "snapshot-count": "10000",
    }
    args.update(extra_args or {})
    return ["etcd", *flags(args)]


def apiserver_command(
    etcd_servers: str,
    pki_dir: str = PKI_DIR,
    advertise_address: str | None = None,
    extra_args: Mapping[str, str] | None = None,
) -> list[str]:
    args = {
        "allow-privileged": "true",
        "authorization-mode": "Node,RBAC",
        "client-ca-file": f"{pki_dir}/ca.crt",
        "enable-admission-plugins": "NodeRestriction",
        "enable-bootstrap-token-auth": "true",
        "etcd-cafile": f"{pki_dir}/etcd/ca.crt",
        "etcd-certfile": f"{pki_dir}/apiserver-etcd-client.crt",
        "etcd-keyfile": f"{pki_dir}/apiserver-etcd-client.key",
        "etcd-servers": etcd_servers,
        "kubelet-client-certificate": f"{pki_dir}/apiserver-kubelet-client.crt",
        "kubelet-client-key": f"{pki_dir}/apiserver-kubelet-client.key",
        "kubelet-preferred-address-types": "InternalIP,ExternalIP,Hostname",
        "proxy-client-cert-file": f"{pki_dir}/front-proxy-client.crt",
        "proxy-client-key-file": f"{pki_dir}/front-proxy-client.key",
        "requestheader-allowed-names": "front-proxy-client",
        "requestheader-client-ca-file": f"{pki_dir}/front-proxy-ca.crt",
        "requestheader-extra-headers-prefix": "X-Remote-Extra-",
        "requestheader-group-headers": "X-Remote-Group",
        "requestheader-username-headers": "X-Remote-User",
        "secure-port": str(APISERVER_PORT),
        "service-account-issuer": "https://kubernetes.default.svc.cluster.local",
        "service-account-key-file": f"{pki_dir}/sa.pub",
        "service-account-signing-key-file": f"{pki_dir}/sa.key",
        "service-cluster-ip-range": SERVICE_CIDR,
        "tls-cert-file": f"{pki_dir}/apiserver.crt",
        "tls-private-key-file": f"{pki_dir}/apiserver.key",
    }
    if advertise_address:
        args["advertise-address"] = advertise_address
    args.update(extra_args or {})
    return ["kube-apiserver", *flags(args)]


def controller_manager_command(pki_dir: str = PKI_DIR, kubeconfig: str = f"{KUBECONFIG_DIR}/controller-manager.conf") -> list[str]:
    return [
        "kube-controller-manager",
        *flags(
            {
                "authentication-kubeconfig": kubeconfig,
                "authorization-kubeconfig": kubeconfig,
                "bind-address": "127.0.0.1",
                "client-ca-file": f"{pki_dir}/ca.crt",
                "cluster-name": "kubernetes",
                "cluster-signing-cert-file": f"{pki_dir}/ca.crt",
                "cluster-signing-key-file": f"{pki_dir}/ca.key",
                "controllers": "*,bootstrapsigner,tokencleaner",
                "kubeconfig": kubeconfig,
                "leader-elect": "true",
                "requestheader-client-ca-file": f"{pki_dir}/front-proxy-ca.crt",
                "root-ca-file": f"{pki_dir}/ca.crt",
                "service-account-private-key-file": f"{pki_dir}/sa.key",
                "use-service-account-credentials": "true",
            }
        ),
    ]


def scheduler_command(kubeconfig: str = f"{KUBECONFIG_DIR}/scheduler.conf") -> list[str]:
    return [
        "kube-scheduler",
        *flags(
            {
                "authentication-kubeconfig": kubeconfig,
                "authorization-kubeconfig": kubeconfig,
                "bind-address": "127.0.0.1",
                "kubeconfig": kubeconfig,
                "leader-elect": "true",
            }
        ),
    ]


def static_pod(
    name: str,
    image: str,
    command: list[str],
    mounts: Mapping[str, str],
    read_only: bool = True,
) -> dict[str, Any]:
    """A host-network static pod mounting each host path at the same path."""
    volumes = []
    volume_mounts = []
    for volume_name, path in mounts.items():
        volumes.append(host_path_volume(volume_name, path, "DirectoryOrCreate"))
        volume_mounts.append({"name": volume_name, "mountPath": path, "readOnly": read_only})
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {
            "name": name,
            "namespace": KUBE_SYSTEM,
            "labels": {"component": name, "tier": "control-plane"},
        },
        "spec": {
            "hostNetwork": True,
            "priorityClassName": "system-node-critical",
            "containers": [
                {
                    "name": name,
                    "image": image,
                    "command": command,
                    "volumeMounts": volume_mounts,
                }
            ],
            "volumes": volumes,
        },
    }


def _split(documents: list[dict[str, Any]]) -> tuple[dict[str, Any], dict[str, Any]]:
    by_kind = {doc.get("kind"): doc for doc in documents}
    return by_kind["InitConfiguration"], by_kind["ClusterConfiguration"]


def static_pod_manifests(documents: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Render etcd, API server, controller-manager and scheduler static pods.

    Args:
        documents: kubeadm InitConfiguration and ClusterConfiguration

    Returns:
        Mapping of manifest file name to pod object
    """
    init, cluster = _split(documents)
    repository = cluster["imageRepository"]
    version = cluster["kubernetesVersion"]
    etcd = cluster["etcd"]["local"]
    advertise_address = init.get("localAPIEndpoint", {}).get("advertiseAddress")
    apiserver_extra = dict(cluster["apiServer"].get("extraArgs", {}))
    apiserver_extra.pop("advertise-address", None)

    pki = {"k8s-certs": PKI_DIR}
    webhook_dir = os.path.dirname(apiserver_extra.get("authentication-token-webhook-config-file", "")) or None
    apiserver_mounts = dict(pki)
    if webhook_dir:
        apiserver_mounts["authenticator-config"] = webhook_dir

    return {
        "etcd.yaml": static_pod(
            "etcd",
            f"{etcd['imageRepository']}/etcd:{etcd['imageTag']}",
            etcd_command(PKI_DIR, etcd["dataDir"], etcd.get("extraArgs")),
            {"etcd-certs": f"{PKI_DIR}/etcd", "etcd-data": etcd["dataDir"]},
            read_only=False,
        ),
        "kube-apiserver.yaml": static_pod(
            "kube-apiserver",
            f"{repository}/kube-apiserver:{version}",
            apiserver_command("https://127.0.0.1:2379", PKI_DIR, advertise_address, apiserver_extra),
            apiserver_mounts,
        ),
        "kube-controller-manager.yaml": static_pod(
            "kube-controller-manager",
            f"{repository}/kube-controller-manager:{version}",
            controller_manager_command(),
            {"k8s-certs": PKI_DIR, "kubeconfig": f"{KUBECONFIG_DIR}/controller-manager.conf"},
        ),
        "kube-scheduler.yaml": static_pod(
            "kube-scheduler",
            f"{repository}/kube-scheduler:{version}",
            scheduler_command(),
            {"kubeconfig": f"{KUBECONFIG_DIR}/scheduler.conf"},
        ),
    }


def write_manifest(obj: Mapping[str, Any], path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(dict(obj), f, default_flow_style=False, sort_keys=False)


def write_static_pod_manifests(documents: list[dict[str, Any]], manifest_dir: str) -> list[str]:
    """Write the control plane static pod manifests into manifest_dir."""
    written = []
    for file_name, pod in static_pod_manifests(documents).items():
        path = os.path.join(manifest_dir, file_name)
        write_manifest(pod, path)
        written.append(path)
    return written
