"""Data access layer for the outbox monitor."""

from .outbox_repo import (
    OutboxItemsNotFoundError,
    OutboxRepository,
    OutboxRetryError,
    OutboxStats,
    OutboxStatusConflictError,
)

__all__ = [
    "OutboxItemsNotFoundError",
    "OutboxRepository",
    "OutboxRetryError",
    "OutboxStats",
    "OutboxStatusConflictError",
]
