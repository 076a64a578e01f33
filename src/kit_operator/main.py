"""Main entry point for the KIT Operator."""

from __future__ import annotations

import logging
from typing import Any

import kopf
from kubernetes import client
from kubernetes import config as kube_config

from . import health
from . import logging as structured_logging
from .bootstrap.kubeadm import Kubeadm
from .config import OperatorConfig
from .constants import FINALIZER
from .controllers.factory import build_controllers
from .handlers import controlplane, substrate
from .kube.provider import DynamicObjectStore, KubeProvider
from .services.aws import AWSProvider
from .tracing import initialize_tracing
from .utils.backoff import Backoff

logger = logging.getLogger(__name__)


def load_kube_client() -> client.ApiClient:
    """In-cluster configuration first, kubeconfig as a fallback."""
    try:
        kube_config.load_incluster_config()
    except kube_config.ConfigException:
        kube_config.load_kube_config()
    return client.ApiClient()


def install_controllers(config: OperatorConfig) -> None:
    """Build every client and composed controller once and attach them to the handlers."""
    kube = KubeProvider(DynamicObjectStore(load_kube_client(), request_timeout=config.request_timeout_seconds))
    cloud = AWSProvider(region=config.aws_region)
    kubeadm = Kubeadm(config.kubeadm_binary)
    controllers = build_controllers(kube, cloud, kubeadm, config)
    backoff = Backoff(
        base=config.backoff_base_seconds,
        maximum=config.backoff_max_seconds,
        jitter=config.backoff_jitter,
    )
    controlplane._handler.install(controllers.control_plane, backoff)
    substrate._handler.install(controllers.substrate, backoff)


def handlers_installed() -> bool:
    return controlplane._handler.installed and substrate._handler.installed


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    config = OperatorConfig.from_env()

    structured_logging.setup_structured_logging(config.log_level)
    initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()
    settings.persistence.finalizer = FINALIZER

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = config.request_timeout_seconds
    settings.execution.max_workers = config.max_workers
    # Events for one object arriving within the window are handled once
    settings.batching.batch_window = 0.5

    install_controllers(config)
    health.start_health_server(config.metrics_port, handlers_installed)
    logger.info(f"Serving /metrics, /healthz and /readyz on port {config.metrics_port}")
