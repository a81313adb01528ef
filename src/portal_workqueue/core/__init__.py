# src/portal_workqueue/core/__init__.py
