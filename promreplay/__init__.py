"""Capture archive replay for Prometheus remote storage endpoints."""

__version__ = "0.1.0"
