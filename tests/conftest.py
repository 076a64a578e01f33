"""Shared fixtures: an in-memory object store and recording sub-controllers."""

from __future__ import annotations

import copy
import os
from typing import Any, Mapping

import pytest
import yaml
from kubernetes.client.exceptions import ApiException

from kit_operator.config import OperatorConfig
from kit_operator.errors import NotReadyError
from kit_operator.kube.provider import KubeProvider


def _merge(target: dict[str, Any], patch: Mapping[str, Any]) -> None:
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class FakeObjectStore:
    """Dict-backed ObjectStore raising the same ApiExceptions as the API server."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str | None, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.fail_next: dict[str, Exception] = {}

    def _key(self, api_version: str, kind: str, name: str, namespace: str | None) -> tuple:
        return (api_version, kind, namespace, name)

    def _maybe_fail(self, operation: str) -> None:
        error = self.fail_next.pop(operation, None)
        if error is not None:
            raise error

    def get(self, api_version: str, kind: str, name: str, namespace: str | None) -> dict[str, Any]:
        self.calls.append(("get", kind, name))
        self._maybe_fail("get")
        key = self._key(api_version, kind, name, namespace)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(self.objects[key])

    def create(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        meta = obj["metadata"]
        self.calls.append(("create", obj["kind"], meta["name"]))
        self._maybe_fail("create")
        key = self._key(obj["apiVersion"], obj["kind"], meta["name"], meta.get("namespace"))
        if key in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        stored = copy.deepcopy(dict(obj))
        stored["metadata"].setdefault("uid", f"uid-{len(self.objects)}")
        self.objects[key] = stored
        return copy.deepcopy(stored)

    def patch(
        self, api_version: str, kind: str, name: str, namespace: str | None, body: Mapping[str, Any]
    ) -> dict[str, Any]:
        self.calls.append(("patch", kind, name))
        self._maybe_fail("patch")
        key = self._key(api_version, kind, name, namespace)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        _merge(self.objects[key], body)
        return copy.deepcopy(self.objects[key])

    def delete(self, api_version: str, kind: str, name: str, namespace: str | None) -> None:
        self.calls.append(("delete", kind, name))
        self._maybe_fail("delete")
        key = self._key(api_version, kind, name, namespace)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        del self.objects[key]

    def put(self, obj: Mapping[str, Any]) -> None:
        """Seed an object without recording a call."""
        meta = obj["metadata"]
        self.objects[self._key(obj["apiVersion"], obj["kind"], meta["name"], meta.get("namespace"))] = copy.deepcopy(
            dict(obj)
        )

    def find(self, kind: str, name: str) -> dict[str, Any] | None:
        for (_, k, _, n), obj in self.objects.items():
            if k == kind and n == name:
                return obj
        return None

    def writes(self) -> list[tuple[str, str, str]]:
        return [call for call in self.calls if call[0] != "get"]


class RecordingController:
    """Sub-controller appending its name to a shared journal."""

    def __init__(self, name: str, journal: list[str]) -> None:
        self.name = name
        self.journal = journal
        self.reconcile_error: Exception | None = None
        self.finalize_error: Exception | None = None

    def reconcile(self, obj: Any) -> None:
        self.journal.append(f"reconcile:{self.name}")
        if self.reconcile_error is not None:
            raise self.reconcile_error

    def finalize(self, obj: Any) -> None:
        self.journal.append(f"finalize:{self.name}")
        if self.finalize_error is not None:
            raise self.finalize_error


class GatedController(RecordingController):
    """Sub-controller that is not ready until open is set."""

    def __init__(self, name: str, journal: list[str]) -> None:
        super().__init__(name, journal)
        self.open = False

    def reconcile(self, obj: Any) -> None:
        super().reconcile(obj)
        if not self.open:
            raise NotReadyError(f"{self.name} endpoint not assigned")


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def kube(store: FakeObjectStore) -> KubeProvider:
    return KubeProvider(store)


@pytest.fixture
def guest_store() -> FakeObjectStore:
    """Object store of a nested cluster."""
    return FakeObjectStore()


@pytest.fixture
def config(tmp_path) -> OperatorConfig:
    return OperatorConfig(staging_dir=str(tmp_path / "staging"), requeue_after_seconds=5.0)


@pytest.fixture
def journal() -> list[str]:
    return []


@pytest.fixture
def recorder(journal: list[str]):
    """Factory of RecordingController instances sharing one journal."""
    return lambda name: RecordingController(name, journal)


@pytest.fixture
def gated(journal: list[str]):
    """Factory of GatedController instances sharing one journal."""
    return lambda name: GatedController(name, journal)


def control_plane_body(name: str = "demo", namespace: str = "tenants", **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "apiVersion": "kit.sh/v1alpha1",
        "kind": "ControlPlane",
        "metadata": {"name": name, "namespace": namespace, "uid": "cp-uid", "generation": 1},
        "spec": {"etcd": {"replicas": 3}, "master": {"replicas": 1}},
        "status": {},
    }
    body.update(extra)
    return body


def substrate_body(name: str = "sub", namespace: str = "default", **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "apiVersion": "kit.sh/v1alpha1",
        "kind": "Substrate",
        "metadata": {"name": name, "namespace": namespace, "uid": "sub-uid", "generation": 1},
        "spec": {"vpc": {"cidr": "10.1.0.0/16"}},
        "status": {},
    }
    body.update(extra)
    return body


@pytest.fixture
def make_control_plane():
    return control_plane_body


@pytest.fixture
def make_substrate():
    return substrate_body


CERT_FILES = {
    "ca": ["ca.crt", "ca.key"],
    "sa": ["sa.key", "sa.pub"],
    "etcd-ca": ["etcd/ca.crt", "etcd/ca.key"],
    "etcd-server": ["etcd/server.crt", "etcd/server.key"],
    "etcd-peer": ["etcd/peer.crt", "etcd/peer.key"],
    "etcd-healthcheck-client": ["etcd/healthcheck-client.crt", "etcd/healthcheck-client.key"],
    "front-proxy-ca": ["front-proxy-ca.crt", "front-proxy-ca.key"],
}


class FakeKubeadm:
    """Writes placeholder certificates and kubeconfigs where kubeadm would."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    @staticmethod
    def _cluster_configuration(config_file: str) -> dict[str, Any]:
        with open(config_file, encoding="utf-8") as f:
            documents = list(yaml.safe_load_all(f))
        return next(doc for doc in documents if doc["kind"] == "ClusterConfiguration")

    @staticmethod
    def _write(path: str, content: str) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)

    def certificates(self, config_file: str, phases=("all",)) -> None:
        phases = tuple(phases)
        self.calls.append(("certs", phases))
        certs_dir = self._cluster_configuration(config_file)["certificatesDir"]
        if phases == ("all",):
            phases = tuple(CERT_FILES) + ("apiserver", "apiserver-kubelet-client", "apiserver-etcd-client")
        for phase in phases:
            for name in CERT_FILES.get(phase, [f"{phase}.crt", f"{phase}.key"]):
                self._write(os.path.join(certs_dir, name), f"-----BEGIN CERTIFICATE-----\n{name}\n-----END CERTIFICATE-----\n")

    def kubeconfigs(self, config_file: str, kubeconfig_dir: str, names=()) -> None:
        names = tuple(names)
        self.calls.append(("kubeconfigs", names))
        endpoint = self._cluster_configuration(config_file)["controlPlaneEndpoint"]
        for name in names:
            kubeconfig = {
                "apiVersion": "v1",
                "kind": "Config",
                "clusters": [{"name": "kubernetes", "cluster": {"server": f"https://{endpoint}"}}],
                "users": [{"name": name, "user": {}}],
                "contexts": [{"name": name, "context": {"cluster": "kubernetes", "user": name}}],
                "current-context": name,
            }
            self._write(os.path.join(kubeconfig_dir, f"{name}.conf"), yaml.safe_dump(kubeconfig))


class FakeCloud:
    """In-memory CloudProvider recording every call."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.uploads: dict[str, list[str]] = {}

    def account_id(self) -> str:
        return "123456789012"

    def ensure_bucket(self, name: str) -> bool:
        self.calls.append(("ensure_bucket", name))
        return True

    def upload_directory(self, bucket: str, directory: str) -> int:
        self.calls.append(("upload_directory", bucket))
        keys = []
        for root, _, files in os.walk(directory):
            for file_name in files:
                keys.append(os.path.relpath(os.path.join(root, file_name), directory).replace(os.sep, "/"))
        self.uploads[bucket] = sorted(keys)
        return len(keys)

    def delete_bucket(self, name: str) -> bool:
        self.calls.append(("delete_bucket", name))
        return True

    def ensure_vpc(self, name: str, cidr: str, owner: str | None = None) -> str:
        self.calls.append(("ensure_vpc", name, cidr, owner))
        return "vpc-0123"

    def delete_vpc(self, name: str) -> bool:
        self.calls.append(("delete_vpc", name))
        return True

    def ensure_security_group(self, name: str, vpc_id: str, description: str, owner: str | None = None) -> str:
        self.calls.append(("ensure_security_group", name, vpc_id))
        return f"sg-{name}"

    def ensure_ingress(self, group_id: str, port: int, cidr: str = "0.0.0.0/0", protocol: str = "tcp") -> None:
        self.calls.append(("ensure_ingress", group_id, port, cidr))

    def delete_security_group(self, name: str) -> bool:
        self.calls.append(("delete_security_group", name))
        return True

    def ensure_address(self, name: str, owner: str | None = None) -> dict[str, str]:
        self.calls.append(("ensure_address", name))
        return {"allocationId": "eipalloc-0123", "address": "203.0.113.10"}

    def release_address(self, name: str) -> bool:
        self.calls.append(("release_address", name))
        return True


@pytest.fixture
def kubeadm() -> FakeKubeadm:
    return FakeKubeadm()


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()
