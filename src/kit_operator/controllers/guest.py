"""Clients for the nested (guest) clusters served by a ControlPlane."""

from __future__ import annotations

import contextlib
from typing import Callable, Iterator

import yaml
from kubernetes import config as kube_config
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from ..apis.v1alpha1 import ControlPlane
from ..errors import NotReadyError
from ..kube.provider import DynamicObjectStore, KubeProvider
from ..utils.secrets import decode_secret_data
from .names import controlplane_pki_secret_name

ADMIN_KUBECONFIG_KEY = "admin.conf"

# Statuses a starting API server or its load balancer answers with
UNAVAILABLE_STATUSES = (502, 503, 504)


@contextlib.contextmanager
def guest_api_available(control_plane: ControlPlane) -> Iterator[None]:
    """Turn an unreachable or starting guest API server into NotReadyError."""
    try:
        yield
    except HTTPError as e:
        raise NotReadyError(f"API server of {control_plane.cluster_name} is not reachable yet: {e}") from e
    except ApiException as e:
        if e.status not in UNAVAILABLE_STATUSES:
            raise
        raise NotReadyError(f"API server of {control_plane.cluster_name} is not serving yet: {e.status} {e.reason}") from e


class GuestClusters:
    """Build a KubeProvider for a guest cluster from its admin kubeconfig.

    A client is built per call so a rotated kubeconfig is always picked up.
    """

    def __init__(
        self,
        kube: KubeProvider,
        request_timeout: float | None = None,
        provider_factory: Callable[[dict], KubeProvider] | None = None,
    ) -> None:
        self.kube = kube
        self.request_timeout = request_timeout
        self.provider_factory = provider_factory or self._provider_from_kubeconfig

    def _provider_from_kubeconfig(self, kubeconfig: dict) -> KubeProvider:
        api_client = kube_config.new_client_from_config_dict(kubeconfig, persist_config=False)
        return KubeProvider(DynamicObjectStore(api_client, request_timeout=self.request_timeout))

    def admin_kubeconfig(self, control_plane: ControlPlane) -> dict:
        secret_name = controlplane_pki_secret_name(control_plane.cluster_name)
        secret = self.kube.get("v1", "Secret", secret_name, control_plane.namespace)
        if secret is None:
            raise NotReadyError(f"admin kubeconfig secret {secret_name} does not exist yet")
        data = decode_secret_data(secret)
        if ADMIN_KUBECONFIG_KEY not in data:
            raise NotReadyError(f"admin kubeconfig missing from secret {secret_name}")
        return yaml.safe_load(data[ADMIN_KUBECONFIG_KEY])

    def for_control_plane(self, control_plane: ControlPlane) -> KubeProvider:
        kubeconfig = self.admin_kubeconfig(control_plane)
        # DynamicClient runs discovery against the guest API server on construction
        with guest_api_available(control_plane):
            return self.provider_factory(kubeconfig)
