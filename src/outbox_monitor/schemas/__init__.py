"""Pydantic schemas for the admin API."""

from .outbox import (
    OutboxItemResponse,
    OutboxItemsPage,
    OutboxRetryRequest,
    OutboxRetryResponse,
    OutboxStatsResponse,
)

__all__ = [
    "OutboxItemResponse",
    "OutboxItemsPage",
    "OutboxRetryRequest",
    "OutboxRetryResponse",
    "OutboxStatsResponse",
]
