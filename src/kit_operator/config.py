"""Operator configuration loaded once at startup."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass(frozen=True)
class OperatorConfig:
    """Immutable operator settings passed to every controller.

    Image tags, paths and retry bounds live here instead of module globals so
    controllers can be constructed with test values.
    """

    kubernetes_version: str = "v1.21.2-eks-1-21-4"
    image_repository: str = "public.ecr.aws/eks-distro/kubernetes"
    etcd_version: str = "v3.4.16-eks-1-21-7"
    etcd_image_repository: str = "public.ecr.aws/eks-distro/etcd-io"
    pause_image: str = "public.ecr.aws/eks-distro/kubernetes/pause:v1.18.9-eks-1-18-1"
    authenticator_image: str = (
        "public.ecr.aws/eks-distro/kubernetes-sigs/aws-iam-authenticator:v0.5.3-eks-1-21-4"
    )
    staging_dir: str = "/tmp"
    kubeadm_binary: str = "kubeadm"
    aws_region: str | None = None
    node_role_name: str = "tenant-controlplane-node-role"
    requeue_after_seconds: float = 10.0
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 300.0
    backoff_jitter: float = 0.1
    resync_interval_seconds: float = 300.0
    request_timeout_seconds: float = 30.0
    metrics_port: int = 8080
    max_workers: int = 4
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> OperatorConfig:
        """Build configuration from environment variables.

        Environment Variables:
            KUBERNETES_VERSION: Default Kubernetes version tag for control planes
            IMAGE_REPOSITORY: Registry path for Kubernetes component images
            ETCD_VERSION: etcd image tag
            ETCD_IMAGE_REPOSITORY: Registry path for the etcd image
            PAUSE_IMAGE: Pod infra container image used by the kubelet
            AUTHENTICATOR_IMAGE: aws-iam-authenticator image
            STAGING_DIR: Local directory for generated cluster artifacts
            KUBEADM_BINARY: Path to the kubeadm binary
            AWS_REGION: Region for AWS clients (boto3 default chain if unset)
            NODE_ROLE_NAME: IAM role mapped to system:nodes by the authenticator
            REQUEUE_AFTER_SECONDS: Delay before polling an unmet precondition again
            BACKOFF_BASE_SECONDS: First retry delay after an error
            BACKOFF_MAX_SECONDS: Upper bound of the retry delay
            BACKOFF_JITTER: Fractional jitter applied to retry delays
            RESYNC_INTERVAL_SECONDS: Periodic resync interval
            REQUEST_TIMEOUT_SECONDS: Timeout for Kubernetes API requests
            METRICS_PORT: Port for /metrics, /healthz and /readyz
            MAX_WORKERS: Thread pool size for handlers
            LOG_LEVEL: Root log level name
        """
        defaults = cls()
        return cls(
            kubernetes_version=os.getenv("KUBERNETES_VERSION", defaults.kubernetes_version),
            image_repository=os.getenv("IMAGE_REPOSITORY", defaults.image_repository),
            etcd_version=os.getenv("ETCD_VERSION", defaults.etcd_version),
            etcd_image_repository=os.getenv("ETCD_IMAGE_REPOSITORY", defaults.etcd_image_repository),
            pause_image=os.getenv("PAUSE_IMAGE", defaults.pause_image),
            authenticator_image=os.getenv("AUTHENTICATOR_IMAGE", defaults.authenticator_image),
            staging_dir=os.getenv("STAGING_DIR", defaults.staging_dir),
            kubeadm_binary=os.getenv("KUBEADM_BINARY", defaults.kubeadm_binary),
            aws_region=os.getenv("AWS_REGION") or None,
            node_role_name=os.getenv("NODE_ROLE_NAME", defaults.node_role_name),
            requeue_after_seconds=_env_float("REQUEUE_AFTER_SECONDS", defaults.requeue_after_seconds),
            backoff_base_seconds=_env_float("BACKOFF_BASE_SECONDS", defaults.backoff_base_seconds),
            backoff_max_seconds=_env_float("BACKOFF_MAX_SECONDS", defaults.backoff_max_seconds),
            backoff_jitter=_env_float("BACKOFF_JITTER", defaults.backoff_jitter),
            resync_interval_seconds=_env_float("RESYNC_INTERVAL_SECONDS", defaults.resync_interval_seconds),
            request_timeout_seconds=_env_float("REQUEST_TIMEOUT_SECONDS", defaults.request_timeout_seconds),
            metrics_port=_env_int("METRICS_PORT", defaults.metrics_port),
            max_workers=_env_int("MAX_WORKERS", defaults.max_workers),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )

    def kube_image(self, component: str, version: str | None = None) -> str:
        """Image reference for a Kubernetes component (kube-apiserver, kube-proxy, ...)."""
        return f"{self.image_repository}/{component}:{version or self.kubernetes_version}"

    @property
    def etcd_image(self) -> str:
        return f"{self.etcd_image_repository}/etcd:{self.etcd_version}"
