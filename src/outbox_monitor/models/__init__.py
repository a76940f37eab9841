# src/outbox_monitor/models/__init__.py
"""SQLAlchemy models for the outbox monitor."""

from .outbox import OUTBOX_STATUSES, OutboxItem, OutboxStatus

__all__ = [
    "OUTBOX_STATUSES",
    "OutboxItem",
    "OutboxStatus",
]
