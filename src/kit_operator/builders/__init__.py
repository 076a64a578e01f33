"""Builders for generated configuration."""
