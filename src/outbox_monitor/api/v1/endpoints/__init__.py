# src/outbox_monitor/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .outbox import router as outbox_router

__all__ = ["outbox_router"]
