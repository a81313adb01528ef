# src/portal_workqueue/storage/__init__.py
