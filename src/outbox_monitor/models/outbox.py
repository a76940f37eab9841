"""SQLAlchemy model for queued outbound email messages."""

from datetime import datetime
from enum import Enum

from sqlalchemy import VARCHAR, DateTime, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from outbox_monitor.db.session import Base
from outbox_monitor.db.time import utcnow


class OutboxStatus(str, Enum):
    """Lifecycle states of an outbox item."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


OUTBOX_STATUSES = tuple(status.value for status in OutboxStatus)


class OutboxItem(Base):
    """Outbound message waiting for, or finished with, delivery.

    ``sent_at`` is set only once the item reaches ``sent``; ``last_error`` is
    only meaningful while the item is ``failed``.
    """

    __tablename__ = "email_outbox"
    __table_args__ = (
        Index("ix_email_outbox_status_created_at", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    template: Mapped[str] = mapped_column(Text, nullable=False)
    to_email: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        VARCHAR(20), nullable=False, default=OutboxStatus.PENDING.value
    )  # 'pending', 'sent', 'failed'
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
