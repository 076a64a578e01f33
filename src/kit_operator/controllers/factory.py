"""Builds the composed controllers once at startup."""

from __future__ import annotations

from dataclasses import dataclass

from ..bootstrap.kubeadm import Kubeadm
from ..config import OperatorConfig
from ..constants import KIND_CONTROL_PLANE, KIND_SUBSTRATE
from ..kube.provider import KubeProvider
from ..services.base import CloudProvider
from .addons import AddonsController
from .address import AddressController
from .cluster_config import ClusterConfigController
from .composer import Composer
from .etcd import EtcdController
from .guest import GuestClusters
from .master import MasterController
from .network import NetworkController
from .security_group import SecurityGroupController


@dataclass(frozen=True)
class Controllers:
    control_plane: Composer
    substrate: Composer


def control_plane_composer(
    kube: KubeProvider,
    cloud: CloudProvider,
    kubeadm: Kubeadm,
    config: OperatorConfig,
    guest_clusters: GuestClusters | None = None,
) -> Composer:
    guest_clusters = guest_clusters or GuestClusters(kube, request_timeout=config.request_timeout_seconds)
    return Composer(
        KIND_CONTROL_PLANE,
        (
            ("etcd", EtcdController(kube, kubeadm, config)),
            ("master", MasterController(kube, cloud, kubeadm, config)),
            ("addons", AddonsController(kube, guest_clusters, config)),
        ),
        requeue_after=config.requeue_after_seconds,
    )


def substrate_composer(cloud: CloudProvider, kubeadm: Kubeadm, config: OperatorConfig) -> Composer:
    return Composer(
        KIND_SUBSTRATE,
        (
            ("network", NetworkController(cloud)),
            ("securitygroup", SecurityGroupController(cloud)),
            ("address", AddressController(cloud)),
            ("clusterconfig", ClusterConfigController(cloud, kubeadm, config)),
        ),
        requeue_after=config.requeue_after_seconds,
    )


def build_controllers(
    kube: KubeProvider,
    cloud: CloudProvider,
    kubeadm: Kubeadm,
    config: OperatorConfig,
) -> Controllers:
    return Controllers(
        control_plane=control_plane_composer(kube, cloud, kubeadm, config),
        substrate=substrate_composer(cloud, kubeadm, config),
    )
