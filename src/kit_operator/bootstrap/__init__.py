"""Generators for the files a control plane node boots from."""
