# src/portal_workqueue/connectors/__init__.py
