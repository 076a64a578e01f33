"""Helpers for building Kubernetes object manifests."""

from __future__ import annotations

import copy
from typing import Any, Mapping

from ..apis.v1alpha1 import DesiredState
from ..constants import CONTROLLER_NAME, LABEL_CLUSTER_NAME, LABEL_COMPONENT, LABEL_MANAGED_BY


def with_owner(owner: DesiredState, obj: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of obj owned by exactly one desired-state object."""
    owned = copy.deepcopy(dict(obj))
    metadata = owned.setdefault("metadata", {})
    metadata["ownerReferences"] = [owner.owner_reference()]
    return owned


def labels_for(cluster_name: str, component: str) -> dict[str, str]:
    return {
        LABEL_MANAGED_BY: CONTROLLER_NAME,
        LABEL_CLUSTER_NAME: cluster_name,
        LABEL_COMPONENT: component,
    }


def selector_labels(cluster_name: str, component: str) -> dict[str, str]:
    return {"app": f"{cluster_name}-{component}"}


def metadata(
    name: str,
    namespace: str | None = None,
    labels: Mapping[str, str] | None = None,
    annotations: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    meta: dict[str, Any] = {"name": name}
    if namespace:
        meta["namespace"] = namespace
    if labels:
        meta["labels"] = dict(labels)
    if annotations:
        meta["annotations"] = dict(annotations)
    return meta


def host_path_volume(name: str, path: str, type_: str | None = None) -> dict[str, Any]:
    source: dict[str, Any] = {"path": path}
    if type_:
        source["type"] = type_
    return {"name": name, "hostPath": source}


def secret_volume(
    name: str,
    secret_name: str,
    items: Mapping[str, str] | None = None,
    default_mode: int = 0o400,
) -> dict[str, Any]:
    source: dict[str, Any] = {"secretName": secret_name, "defaultMode": default_mode}
    if items:
        source["items"] = [{"key": key, "path": path} for key, path in items.items()]
    return {"name": name, "secret": source}


def projected_secret_volume(
    name: str,
    sources: Mapping[str, Mapping[str, str]],
    default_mode: int = 0o400,
) -> dict[str, Any]:
    """A volume combining keys of several Secrets under one mount.

    Args:
        name: Volume name
        sources: Secret name to a mapping of data key to relative path
        default_mode: File mode of the projected files
    """
    return {
        "name": name,
        "projected": {
            "defaultMode": default_mode,
            "sources": [
                {"secret": {"name": secret_name, "items": [{"key": k, "path": p} for k, p in items.items()]}}
                for secret_name, items in sources.items()
            ],
        },
    }
