"""Deterministic names of the objects that make up a control plane."""

from __future__ import annotations

# Service names must stay below 63 characters to be valid DNS labels, which is
# why cluster names are capped at 50 characters.


def endpoint_service_name(cluster_name: str) -> str:
    return f"{cluster_name}-cp"


def apiserver_port_name(cluster_name: str) -> str:
    return f"{endpoint_service_name(cluster_name)}-port"


def etcd_service_name(cluster_name: str) -> str:
    return f"{cluster_name}-etcd"


def etcd_pki_secret_name(cluster_name: str) -> str:
    return f"{cluster_name}-etcd-pki"


def controlplane_pki_secret_name(cluster_name: str) -> str:
    return f"{cluster_name}-controlplane-pki"


def authenticator_config_name(cluster_name: str) -> str:
    return f"{cluster_name}-auth-config"


def apiserver_name(cluster_name: str) -> str:
    return f"{cluster_name}-apiserver"


def controller_manager_name(cluster_name: str) -> str:
    return f"{cluster_name}-controller-manager"


def scheduler_name(cluster_name: str) -> str:
    return f"{cluster_name}-scheduler"


def kube_proxy_config_name(cluster_name: str) -> str:
    return f"{cluster_name}-kubeproxy-config"
