# src/portal_workqueue/providers/__init__.py
