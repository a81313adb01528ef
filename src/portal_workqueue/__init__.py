# src/portal_workqueue/__init__.py

"""Idempotent task queue and approval workflows for a Portal-style wallet client."""

__version__ = "0.1.0"
