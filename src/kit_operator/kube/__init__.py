"""Kubernetes object store access."""
