"""Typed views over the kit.sh/v1alpha1 custom resources."""

from __future__ import annotations

import copy
import hashlib
import re
from typing import Any, Mapping

from ..constants import (
    API_GROUP_VERSION,
    COND_READY,
    KIND_CONTROL_PLANE,
    KIND_SUBSTRATE,
)
from ..errors import ValidationError

_DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


class DesiredState:
    """A desired-state object as delivered by the event source.

    Spec and metadata are read-only views of the body. Status is a private
    copy that sub-controllers update in place; the handler writes it back
    through the kopf patch once the pass is over.
    """

    kind = ""

    def __init__(self, body: Mapping[str, Any]) -> None:
        self.body = body
        self.meta: Mapping[str, Any] = body.get("metadata", {}) or {}
        self.spec: Mapping[str, Any] = body.get("spec", {}) or {}
        self.status: dict[str, Any] = copy.deepcopy(dict(body.get("status", {}) or {}))

    @property
    def name(self) -> str:
        return self.meta.get("name", "")

    @property
    def namespace(self) -> str:
        return self.meta.get("namespace", "default")

    @property
    def uid(self) -> str:
        return self.meta.get("uid", "")

    @property
    def generation(self) -> int:
        return self.meta.get("generation", 0)

    @property
    def deletion_timestamp(self) -> str | None:
        return self.meta.get("deletionTimestamp")

    @property
    def conditions(self) -> list[dict[str, Any]]:
        return self.status.setdefault("conditions", [])

    def is_ready(self) -> bool:
        return any(
            cond.get("type") == COND_READY and cond.get("status") == "True"
            for cond in self.status.get("conditions", [])
        )

    @property
    def cluster_name(self) -> str:
        return self.name

    def resource_name(self, *parts: str) -> str:
        """Deterministic name for cloud resources owned by this object.

        Cloud names are global to the account, so the namespace is folded
        in as a short digest. A 50 character name still yields a bucket
        name within the 63 character S3 limit.
        """
        digest = hashlib.sha256(self.namespace.encode("utf-8")).hexdigest()[:8]
        return "-".join(["kit", self.name, digest, *parts]).lower()

    def owner_reference(self) -> dict[str, Any]:
        return {
            "apiVersion": API_GROUP_VERSION,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def validate(self) -> None:
        if not _DNS_LABEL.match(self.name) or len(self.name) > 50:
            raise ValidationError(
                f"{self.kind} name {self.name!r} must be a DNS label of at most 50 characters"
            )


class ControlPlane(DesiredState):
    """A nested control plane hosted on the management cluster."""

    kind = KIND_CONTROL_PLANE

    def kubernetes_version(self, default: str) -> str:
        return self.spec.get("kubernetesVersion") or default

    @property
    def etcd_replicas(self) -> int:
        return _replicas(self.spec.get("etcd", {}), 3, "etcd.replicas")

    @property
    def master_replicas(self) -> int:
        return _replicas(self.spec.get("master", {}), 1, "master.replicas")

    @property
    def endpoint(self) -> str | None:
        return self.status.get("endpoint")

    def validate(self) -> None:
        super().validate()
        _replicas(self.spec.get("etcd", {}), 3, "etcd.replicas")
        _replicas(self.spec.get("master", {}), 1, "master.replicas")


class Substrate(DesiredState):
    """The AWS infrastructure that hosts control plane processes."""

    kind = KIND_SUBSTRATE

    @property
    def vpc_cidr(self) -> str:
        return (self.spec.get("vpc") or {}).get("cidr") or "10.0.0.0/16"

    @property
    def cluster_status(self) -> dict[str, Any]:
        return self.status.setdefault("cluster", {})

    @property
    def address(self) -> str | None:
        return (self.status.get("cluster") or {}).get("address")


def _replicas(section: Mapping[str, Any] | None, default: int, field: str) -> int:
    value = (section or {}).get("replicas", default)
    if not isinstance(value, int) or value < 1:
        raise ValidationError(f"{field} must be a positive integer, got {value!r}")
    return value
