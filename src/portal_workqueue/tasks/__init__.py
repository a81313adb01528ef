# src/portal_workqueue/tasks/__init__.py
