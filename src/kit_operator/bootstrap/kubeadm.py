"""Certificate tree and kubeconfig generation through the kubeadm binary."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Any, Iterable

import yaml

logger = logging.getLogger(__name__)

ETCD_CERT_PHASES = (
    "etcd-ca",
    "etcd-server",
    "etcd-peer",
    "etcd-healthcheck-client",
    "apiserver-etcd-client",
)

CONTROL_PLANE_CERT_PHASES = (
    "ca",
    "apiserver",
    "apiserver-kubelet-client",
    "front-proxy-ca",
    "front-proxy-client",
    "sa",
)

MASTER_KUBECONFIGS = ("admin", "controller-manager", "scheduler")
NODE_KUBECONFIGS = ("admin", "kubelet", "controller-manager", "scheduler")


class KubeadmError(Exception):
    """kubeadm exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        super().__init__(f"{' '.join(args)} exited with {returncode}: {stderr.strip()}")
        self.returncode = returncode
        self.stderr = stderr


def write_config(documents: Iterable[dict[str, Any]], path: str) -> str:
    """Write kubeadm configuration documents to path as multi-document YAML."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump_all(list(documents), f, default_flow_style=False, sort_keys=False)
    return path


class Kubeadm:
    """Run kubeadm init phases that only write files.

    Certificates go to the certificatesDir named in the configuration file.
    Existing certificates in that directory are reused by kubeadm, so the
    phases can be re-run safely.
    """

    def __init__(self, binary: str = "kubeadm", timeout: float = 120.0) -> None:
        self.binary = binary
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        command = [self.binary, *args]
        logger.debug(f"Running {' '.join(command)}")
        try:
            result = subprocess.run(command, check=True, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            raise KubeadmError(command, e.returncode, e.stderr or "") from e
        return result.stdout

    def certificates(self, config_file: str, phases: Iterable[str] = ("all",)) -> None:
        """Generate the certificate tree for the given phases."""
        for phase in phases:
            self._run("init", "phase", "certs", phase, "--config", config_file)

    def kubeconfigs(
        self,
        config_file: str,
        kubeconfig_dir: str,
        names: Iterable[str] = NODE_KUBECONFIGS,
    ) -> None:
        """Generate kubeconfig files signed by the cluster CA."""
        os.makedirs(kubeconfig_dir, exist_ok=True)
        for name in names:
            self._run("init", "phase", "kubeconfig", name, "--config", config_file, "--kubeconfig-dir", kubeconfig_dir)
