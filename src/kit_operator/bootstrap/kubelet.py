"""Kubelet systemd unit for substrate control plane instances."""

from __future__ import annotations

import os

from ..config import OperatorConfig

KUBELET_SYSTEMD_DIR = "/etc/systemd/system"
SUBSTRATE_NODE_LABEL = "kit.aws/substrate=control-plane"


def kubelet_unit(node_name: str, config: OperatorConfig) -> str:
    """Render the kubelet unit that runs the static control plane pods."""
    args = [
        "/usr/bin/kubelet",
        f"--hostname-override={node_name}",
        "--address=127.0.0.1",
        "--pod-manifest-path=/etc/kubernetes/manifests",
        "--kubeconfig=/etc/kubernetes/kubelet.conf",
        "--cgroup-driver=systemd",
        "--container-runtime=docker",
        "--network-plugin=cni",
        f"--pod-infra-container-image={config.pause_image}",
        f"--node-labels={SUBSTRATE_NODE_LABEL}",
    ]
    return (
        "[Unit]\n"
        "After=docker.service iptables-restore.service\n"
        "Requires=docker.service\n"
        "\n"
        "[Service]\n"
        f"ExecStart={' '.join(args)}\n"
        "Restart=always\n"
    )


def write_kubelet_unit(root: str, node_name: str, config: OperatorConfig) -> str:
    """Write kubelet.service below root, mirroring its path on the instance."""
    unit_dir = os.path.join(root, KUBELET_SYSTEMD_DIR.lstrip("/"))
    os.makedirs(unit_dir, exist_ok=True)
    path = os.path.join(unit_dir, "kubelet.service")
    with open(path, "w", encoding="utf-8") as f:
        f.write(kubelet_unit(node_name, config))
    return path
