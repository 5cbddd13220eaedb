"""Reconcile a manifest of container images against local and remote registries."""

__version__ = "0.1.0"
