# src/outbox_monitor/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import outbox_router

__all__ = ["outbox_router"]
