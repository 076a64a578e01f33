"""Utilities for reading and building Kubernetes secrets."""

from __future__ import annotations

import base64
import os
from typing import Any, Mapping


def encode_secret_data(data: Mapping[str, str | bytes]) -> dict[str, str]:
    """Base64 encode secret values for the data field of a Secret."""
    encoded = {}
    for key, value in data.items():
        raw = value.encode("utf-8") if isinstance(value, str) else value
        encoded[key] = base64.b64encode(raw).decode("utf-8")
    return encoded


def decode_secret_data(secret: Mapping[str, Any]) -> dict[str, str]:
    """Decode the data field of a Secret object (as a dict) into strings.

    Args:
        secret: Secret object as returned by the object store

    Returns:
        Dictionary of decoded secret values
    """
    result = {}
    for key, value in (secret.get("data") or {}).items():
        result[key] = base64.b64decode(value).decode("utf-8")
    return result


def secret_key_for(relative_path: str) -> str:
    """Map a relative file path to a valid Secret data key.

    Secret keys may not contain "/", so "etcd/ca.crt" becomes "etcd-ca.crt".
    """
    return relative_path.replace(os.sep, "-").replace("/", "-")


def read_directory(directory: str) -> dict[str, str]:
    """Read every file below directory into a dict keyed by secret key.

    Args:
        directory: Directory written by a bootstrap artifact generator

    Returns:
        Mapping of secret key to file content
    """
    data = {}
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for file_name in sorted(files):
            path = os.path.join(root, file_name)
            with open(path, encoding="utf-8") as f:
                data[secret_key_for(os.path.relpath(path, directory))] = f.read()
    return data


def secret_manifest(
    name: str,
    namespace: str,
    data: Mapping[str, str | bytes],
    labels: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Build an Opaque Secret manifest with base64 encoded data."""
    meta: dict[str, Any] = {"name": name, "namespace": namespace}
    if labels:
        meta["labels"] = dict(labels)
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": meta,
        "type": "Opaque",
        "data": encode_secret_data(data),
    }
