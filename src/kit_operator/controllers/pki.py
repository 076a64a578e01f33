"""One-shot generation of certificate Secrets through kubeadm."""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Any, Callable, Iterable

from ..apis.v1alpha1 import DesiredState
from ..bootstrap.kubeadm import Kubeadm, write_config
from ..kube.objects import labels_for, with_owner
from ..kube.provider import KubeProvider
from ..utils.secrets import read_directory, secret_manifest

logger = logging.getLogger(__name__)


def generate(
    kubeadm: Kubeadm,
    staging_dir: str,
    documents_for: Callable[[str], list[dict[str, Any]]],
    cert_phases: Iterable[str],
    kubeconfigs: Iterable[str] = (),
) -> dict[str, str]:
    """Run kubeadm in a scratch directory and return the files it wrote.

    Args:
        kubeadm: kubeadm runner
        staging_dir: Parent of the scratch directory
        documents_for: Builds the kubeadm documents for a certificates directory
        cert_phases: Certificate phases to run
        kubeconfigs: Kubeconfig phases to run after the certificates

    Returns:
        Secret data keyed by flattened relative path
    """
    os.makedirs(staging_dir, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix="kit-pki-", dir=staging_dir) as workdir:
        pki_dir = os.path.join(workdir, "pki")
        config_file = write_config(documents_for(pki_dir), os.path.join(workdir, "kubeadm.yaml"))
        kubeadm.certificates(config_file, cert_phases)
        data = read_directory(pki_dir)
        kubeconfigs = tuple(kubeconfigs)
        if kubeconfigs:
            kubeconfig_dir = os.path.join(workdir, "kubeconfig")
            kubeadm.kubeconfigs(config_file, kubeconfig_dir, kubeconfigs)
            data.update(read_directory(kubeconfig_dir))
    return data


def ensure_pki_secret(
    kube: KubeProvider,
    owner: DesiredState,
    name: str,
    component: str,
    generate_data: Callable[[], dict[str, str]],
) -> bool:
    """Create the named Secret from freshly generated data unless it exists.

    Certificates are never regenerated once stored, so a second pass keeps
    the first pass's CA. Returns True if the Secret was created.
    """
    if kube.exists("v1", "Secret", name, owner.namespace):
        return False
    secret = secret_manifest(name, owner.namespace, generate_data(), labels_for(owner.cluster_name, component))
    kube.ensure_create(with_owner(owner, secret))
    logger.info(f"Generated {component} PKI secret {owner.namespace}/{name}")
    return True
