"""aws-iam-authenticator configuration, container and static pod."""

from __future__ import annotations

import os
from typing import Any

import yaml

from ..config import OperatorConfig
from ..constants import AUTHENTICATOR_PORT, KUBE_SYSTEM
from ..kube.objects import host_path_volume
from .manifests import write_manifest

CONFIG_DIR = "/etc/aws-iam-authenticator"
CONFIG_FILE = "config.yaml"
STATE_DIR = "/var/aws-iam-authenticator"
WEBHOOK_KUBECONFIG = f"{STATE_DIR}/kubeconfig/kubeconfig.yaml"
STATIC_POD_FILE = "aws-iam-authenticator.yaml"


def node_role_arn(account_id: str, role_name: str) -> str:
    return f"arn:aws:iam::{account_id}:role/{role_name}"


def authenticator_config(cluster_name: str, account_id: str, node_role_name: str) -> dict[str, Any]:
    """Server configuration mapping the node role to the node groups.

    The server writes the webhook kubeconfig the API server reads to
    WEBHOOK_KUBECONFIG on start.
    """
    return {
        "clusterID": cluster_name,
        "server": {
            "port": AUTHENTICATOR_PORT,
            "stateDir": STATE_DIR,
            "generateKubeconfig": WEBHOOK_KUBECONFIG,
            "mapRoles": [
                {
                    "roleARN": node_role_arn(account_id, node_role_name),
                    "username": "system:node:{{EC2PrivateDNSName}}",
                    "groups": ["system:bootstrappers", "system:nodes"],
                }
            ],
        },
    }


def render_config(cluster_name: str, account_id: str, node_role_name: str) -> str:
    return yaml.safe_dump(
        authenticator_config(cluster_name, account_id, node_role_name), default_flow_style=False, sort_keys=False
    )


def container(config: OperatorConfig, config_volume: str = "config", state_volume: str = "state") -> dict[str, Any]:
    """The authenticator server container, as a sidecar or a static pod."""
    return {
        "name": "aws-iam-authenticator",
        "image": config.authenticator_image,
        "args": [
            "server",
            f"--config={CONFIG_DIR}/{CONFIG_FILE}",
            f"--state-dir={STATE_DIR}",
        ],
        "ports": [{"name": "authenticator", "containerPort": AUTHENTICATOR_PORT}],
        "volumeMounts": [
            {"name": config_volume, "mountPath": CONFIG_DIR, "readOnly": True},
            {"name": state_volume, "mountPath": STATE_DIR},
        ],
    }


def static_pod(config: OperatorConfig) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {
            "name": "aws-iam-authenticator",
            "namespace": KUBE_SYSTEM,
            "labels": {"component": "aws-iam-authenticator", "tier": "control-plane"},
        },
        "spec": {
            "hostNetwork": True,
            "priorityClassName": "system-node-critical",
            "containers": [container(config)],
            "volumes": [
                host_path_volume("config", CONFIG_DIR, "DirectoryOrCreate"),
                host_path_volume("state", STATE_DIR, "DirectoryOrCreate"),
            ],
        },
    }


def write_authenticator_files(
    root: str,
    manifest_dir: str,
    cluster_name: str,
    account_id: str,
    config: OperatorConfig,
) -> list[str]:
    """Write config.yaml below root and the static pod into manifest_dir."""
    config_dir = os.path.join(root, CONFIG_DIR.lstrip("/"))
    os.makedirs(config_dir, exist_ok=True)
    config_path = os.path.join(config_dir, CONFIG_FILE)
    with open(config_path, "w", encoding="utf-8") as f:
        f.write(render_config(cluster_name, account_id, config.node_role_name))
    pod_path = os.path.join(manifest_dir, STATIC_POD_FILE)
    write_manifest(static_pod(config), pod_path)
    return [config_path, pod_path]
