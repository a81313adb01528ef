# src/portal_workqueue/cli/__init__.py
