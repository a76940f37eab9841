# src/outbox_monitor/schemas/outbox.py
"""Outbox-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from outbox_monitor.db.time import ensure_utc

OutboxStatusLiteral = Literal["pending", "sent", "failed"]


class OutboxItemResponse(BaseModel):
    """Schema for an outbox item returned by the admin API."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    to: str = Field(..., validation_alias="to_email")
    subject: str = "No subject"
    status: OutboxStatusLiteral
    created_at: datetime
    updated_at: datetime
    sent_at: datetime | None = None
    error_message: str | None = Field(None, validation_alias="last_error")

    @field_validator("subject", mode="before")
    @classmethod
    def _default_subject(cls, value: object) -> object:
        return value or "No subject"

    @field_validator("created_at", "updated_at", "sent_at")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class OutboxItemsPage(BaseModel):
    """A page of outbox items with the total number of matches."""

    items: list[OutboxItemResponse]
    total: int
    limit: int
    offset: int


class OutboxStatsResponse(BaseModel):
    """Per-status outbox counts."""

    total_pending: int
    total_sent: int
    total_failed: int
    oldest_pending: datetime | None = None


MAX_RETRY_IDS = 100


class OutboxRetryRequest(BaseModel):
    """Schema for moving failed items back to pending."""

    ids: list[int] = Field(
        ...,
        min_length=1,
        max_length=MAX_RETRY_IDS,
        description="Outbox item IDs",
    )


class OutboxRetryResponse(BaseModel):
    """Result of a retry request."""

    ok: bool = True
    requested: int
    retried: int
