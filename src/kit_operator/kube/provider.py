"""Idempotent apply primitives over the Kubernetes object store."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Protocol

from kubernetes import dynamic

from .. import metrics
from ..errors import is_already_exists, is_not_found

logger = logging.getLogger(__name__)

MERGE_PATCH = "application/merge-patch+json"


class ObjectStore(Protocol):
    """Narrow view of the declarative object store used by the primitives."""

    def get(self, api_version: str, kind: str, name: str, namespace: str | None) -> dict[str, Any]:
        """Return the live object or raise ApiException(404)."""
        ...

    def create(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        """Create an object or raise ApiException(409) if it exists."""
        ...

    def patch(
        self, api_version: str, kind: str, name: str, namespace: str | None, body: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Apply a JSON merge patch."""
        ...

    def delete(self, api_version: str, kind: str, name: str, namespace: str | None) -> None:
        """Delete an object or raise ApiException(404)."""
        ...


class DynamicObjectStore:
    """ObjectStore backed by the kubernetes DynamicClient."""

    def __init__(self, api_client: Any, request_timeout: float | None = None) -> None:
        self.client = dynamic.DynamicClient(api_client)
        self.request_timeout = request_timeout

    def _resource(self, api_version: str, kind: str) -> Any:
        return self.client.resources.get(api_version=api_version, kind=kind)

    def get(self, api_version: str, kind: str, name: str, namespace: str | None) -> dict[str, Any]:
        return self._resource(api_version, kind).get(
            name=name, namespace=namespace, _request_timeout=self.request_timeout
        ).to_dict()

    def create(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        namespace = obj.get("metadata", {}).get("namespace")
        return self._resource(obj["apiVersion"], obj["kind"]).create(
            body=dict(obj), namespace=namespace, _request_timeout=self.request_timeout
        ).to_dict()

    def patch(
        self, api_version: str, kind: str, name: str, namespace: str | None, body: Mapping[str, Any]
    ) -> dict[str, Any]:
        return self._resource(api_version, kind).patch(
            body=dict(body),
            name=name,
            namespace=namespace,
            content_type=MERGE_PATCH,
            _request_timeout=self.request_timeout,
        ).to_dict()

    def delete(self, api_version: str, kind: str, name: str, namespace: str | None) -> None:
        self._resource(api_version, kind).delete(
            name=name, namespace=namespace, _request_timeout=self.request_timeout
        )


def contains(live: Any, desired: Any) -> bool:
    """Return True if every field set in desired has the same value in live.

    Lists must have the same length and match element by element, so fields
    defaulted by the server inside list items do not count as drift.
    """
    if isinstance(desired, Mapping):
        if not isinstance(live, Mapping):
            return False
        return all(key in live and contains(live[key], value) for key, value in desired.items())
    if isinstance(desired, list):
        if not isinstance(live, list) or len(live) != len(desired):
            return False
        return all(contains(current, value) for current, value in zip(live, desired))
    return live == desired


def merge_patch_for(live: Mapping[str, Any], desired: Mapping[str, Any]) -> dict[str, Any]:
    """Compute a JSON merge patch that moves live towards the fields of desired.

    Fields absent from desired are left alone. Lists are replaced as a whole.
    """
    patch: dict[str, Any] = {}
    for key, value in desired.items():
        current = live.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            nested = merge_patch_for(current, value)
            if nested:
                patch[key] = nested
        elif not contains(current, value):
            patch[key] = value
    return patch


def _identity(obj: Mapping[str, Any]) -> tuple[str, str, str, str | None]:
    meta = obj.get("metadata", {})
    return obj["apiVersion"], obj["kind"], meta["name"], meta.get("namespace")


class KubeProvider:
    """Single-attempt, create-or-adopt operations against an ObjectStore.

    Nothing is cached: every call reads the authoritative store. Errors other
    than the absorbed AlreadyExists/NotFound cases propagate to the caller,
    which retries through the reconcile loop.
    """

    def __init__(self, store: ObjectStore) -> None:
        self.store = store

    @contextmanager
    def _observe(self, operation: str) -> Iterator[None]:
        start_time = time.time()
        try:
            yield
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
        except Exception:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            raise
        finally:
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(
                time.time() - start_time
            )

    def get(
        self, api_version: str, kind: str, name: str, namespace: str | None = None
    ) -> dict[str, Any] | None:
        """Return the live object, or None if it does not exist."""
        try:
            with self._observe("get"):
                return self.store.get(api_version, kind, name, namespace)
        except Exception as e:
            if is_not_found(e):
                return None
            raise

    def exists(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> bool:
        return self.get(api_version, kind, name, namespace) is not None

    def ensure_create(self, desired: Mapping[str, Any]) -> None:
        """Create desired; an existing object with the same name is success."""
        api_version, kind, name, namespace = _identity(desired)
        try:
            with self._observe("create"):
                self.store.create(desired)
            logger.debug(f"Created {kind} {namespace}/{name}")
        except Exception as e:
            if is_already_exists(e):
                logger.debug(f"{kind} {namespace}/{name} already exists")
                return
            raise

    def ensure_patch(self, desired: Mapping[str, Any]) -> dict[str, Any]:
        """Create desired if absent, else merge-patch the live object towards it.

        Returns the live object after the call.
        """
        api_version, kind, name, namespace = _identity(desired)
        live = self.get(api_version, kind, name, namespace)
        if live is None:
            try:
                with self._observe("create"):
                    created = self.store.create(desired)
                logger.debug(f"Created {kind} {namespace}/{name}")
                return created
            except Exception as e:
                if not is_already_exists(e):
                    raise
                # Lost a race with another writer; fall through to patch.
                live = self.store.get(api_version, kind, name, namespace)
        patch = merge_patch_for(live, desired)
        if not patch:
            return live
        with self._observe("patch"):
            patched = self.store.patch(api_version, kind, name, namespace, patch)
        logger.debug(f"Patched {kind} {namespace}/{name}: {sorted(patch)}")
        return patched

    def delete(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> bool:
        """Delete an object. Returns False if it was already gone."""
        try:
            with self._observe("delete"):
                self.store.delete(api_version, kind, name, namespace)
            logger.debug(f"Deleted {kind} {namespace}/{name}")
            return True
        except Exception as e:
            if is_not_found(e):
                return False
            raise
