"""Kubernetes operator provisioning nested control planes and their AWS substrate."""

__version__ = "0.1.0"
