"""Node bootstrap artifacts of a substrate, published to S3."""

from __future__ import annotations

import logging
import os
import shutil

from ..apis.v1alpha1 import Substrate
from ..bootstrap.authenticator import write_authenticator_files
from ..bootstrap.kubeadm import NODE_KUBECONFIGS, Kubeadm, write_config
from ..bootstrap.kubelet import write_kubelet_unit
from ..bootstrap.manifests import write_static_pod_manifests
from ..builders.cluster_config import substrate_configuration
from ..config import OperatorConfig
from ..errors import NotReadyError
from ..services.base import CloudProvider

logger = logging.getLogger(__name__)

KUBERNETES_DIR = "etc/kubernetes"
ADMIN_KUBECONFIG = f"{KUBERNETES_DIR}/admin.conf"


class ClusterConfigController:
    """Write every file a substrate node boots from and upload the tree.

    The staging directory mirrors the node's filesystem, so object keys are
    the paths the node copies them to.
    """

    def __init__(self, cloud: CloudProvider, kubeadm: Kubeadm, config: OperatorConfig) -> None:
        self.cloud = cloud
        self.kubeadm = kubeadm
        self.config = config

    def staging_root(self, substrate: Substrate) -> str:
        return os.path.join(self.config.staging_dir, substrate.resource_name())

    def reconcile(self, substrate: Substrate) -> None:
        if not substrate.address:
            raise NotReadyError("substrate address is not allocated yet")
        bucket = substrate.resource_name()
        self.cloud.ensure_bucket(bucket)

        root = self.staging_root(substrate)
        kubernetes_dir = os.path.join(root, KUBERNETES_DIR)
        manifest_dir = os.path.join(kubernetes_dir, "manifests")
        documents = substrate_configuration(substrate, self.config, os.path.join(kubernetes_dir, "pki"))
        config_file = write_config(documents, os.path.join(kubernetes_dir, "kubeadm.yaml"))

        self.kubeadm.certificates(config_file)
        self.kubeadm.kubeconfigs(config_file, kubernetes_dir, NODE_KUBECONFIGS)
        write_static_pod_manifests(documents, manifest_dir)
        write_kubelet_unit(root, substrate.name, self.config)
        write_authenticator_files(root, manifest_dir, substrate.name, self.cloud.account_id(), self.config)

        uploaded = self.cloud.upload_directory(bucket, root)
        logger.info(f"Uploaded {uploaded} cluster configuration files to s3://{bucket}")
        substrate.cluster_status["bucket"] = bucket
        substrate.cluster_status["kubeConfig"] = f"s3://{bucket}/{ADMIN_KUBECONFIG}"

    def finalize(self, substrate: Substrate) -> None:
        bucket = substrate.resource_name()
        if self.cloud.delete_bucket(bucket):
            logger.info(f"Deleted S3 bucket {bucket}")
        root = self.staging_root(substrate)
        if os.path.isdir(root):
            shutil.rmtree(root)
        substrate.cluster_status.pop("bucket", None)
        substrate.cluster_status.pop("kubeConfig", None)
