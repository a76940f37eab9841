"""Data access helpers for the email outbox."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker

from outbox_monitor.db.time import ensure_utc, utcnow
from outbox_monitor.models.outbox import OutboxItem, OutboxStatus

__all__ = [
    "OutboxItemsNotFoundError",
    "OutboxRepository",
    "OutboxRetryError",
    "OutboxStats",
    "OutboxStatusConflictError",
]


class OutboxRetryError(RuntimeError):
    """Base exception for rejected retry requests.

    Attributes:
        item_ids: The offending item IDs, sorted.
    """

    def __init__(self, message: str, item_ids: Iterable[int]) -> None:
        self.item_ids = sorted(item_ids)
        super().__init__(f"{message}: {', '.join(str(i) for i in self.item_ids)}")


class OutboxItemsNotFoundError(OutboxRetryError):
    """Raised when a retry request names items that do not exist."""


class OutboxStatusConflictError(OutboxRetryError):
    """Raised when a retry request names items that are not failed."""


@dataclass(frozen=True)
class OutboxStats:
    """Point-in-time counts of outbox items per status."""

    total_pending: int
    total_sent: int
    total_failed: int
    oldest_pending: datetime | None


class OutboxRepository:
    """Thin wrapper around database access for outbox items.

    Every method opens its own short-lived session from ``session_factory`` so
    the trend queries can run concurrently on worker threads.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        """Initialize the repository with a SQLAlchemy session factory."""
        self.session_factory = session_factory

    def list_queued_since(self, since: datetime) -> list[datetime]:
        """Return creation times of items created at or after ``since``."""
        stmt = select(OutboxItem.created_at).where(OutboxItem.created_at >= since)
        with self.session_factory() as session:
            return list(session.scalars(stmt))

    def list_sent_since(self, since: datetime) -> list[datetime]:
        """Return delivery times of items sent at or after ``since``."""
        stmt = select(OutboxItem.sent_at).where(
            OutboxItem.status == OutboxStatus.SENT.value,
            OutboxItem.sent_at.is_not(None),
            OutboxItem.sent_at >= since,
        )
        with self.session_factory() as session:
            return [value for value in session.scalars(stmt) if value is not None]

    def list_failed_since(self, since: datetime) -> list[datetime]:
        """Return last-update times of failed items updated at or after ``since``."""
        stmt = select(OutboxItem.updated_at).where(
            OutboxItem.status == OutboxStatus.FAILED.value,
            OutboxItem.updated_at >= since,
        )
        with self.session_factory() as session:
            return list(session.scalars(stmt))

    def list_pending_created(self) -> list[datetime]:
        """Return creation times of pending items, oldest first."""
        stmt = (
            select(OutboxItem.created_at)
            .where(OutboxItem.status == OutboxStatus.PENDING.value)
            .order_by(OutboxItem.created_at.asc())
        )
        with self.session_factory() as session:
            return list(session.scalars(stmt))

    def list_items(
        self,
        *,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[OutboxItem], int]:
        """Return one page of items, newest first, and the total matching count."""
        filters = [OutboxItem.status == status] if status else []
        page_stmt = (
            select(OutboxItem)
            .where(*filters)
            .order_by(OutboxItem.created_at.desc(), OutboxItem.id.desc())
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(OutboxItem).where(*filters)
        with self.session_factory() as session:
            items = list(session.scalars(page_stmt))
            total = session.scalar(count_stmt) or 0
            session.expunge_all()
        return items, int(total)

    def get_stats(self) -> OutboxStats:
        """Return per-status counts and the oldest pending creation time."""
        counts_stmt = select(OutboxItem.status, func.count()).group_by(OutboxItem.status)
        oldest_stmt = select(func.min(OutboxItem.created_at)).where(
            OutboxItem.status == OutboxStatus.PENDING.value
        )
        with self.session_factory() as session:
            counts = {status: int(count) for status, count in session.execute(counts_stmt)}
            oldest = session.scalar(oldest_stmt)

        return OutboxStats(
            total_pending=counts.get(OutboxStatus.PENDING.value, 0),
            total_sent=counts.get(OutboxStatus.SENT.value, 0),
            total_failed=counts.get(OutboxStatus.FAILED.value, 0),
            oldest_pending=ensure_utc(oldest) if oldest is not None else None,
        )

    def retry_failed(self, item_ids: Iterable[int]) -> int:
        """Move failed items back to pending and return how many changed.

        The request is all-or-nothing: nothing is modified unless every ID
        exists and is currently ``failed``.

        Raises:
            OutboxItemsNotFoundError: If any ID does not exist.
            OutboxStatusConflictError: If any item is not in ``failed`` status.
        """
        ids = sorted(set(item_ids))
        if not ids:
            return 0

        with self.session_factory() as session:
            found = dict(
                session.execute(
                    select(OutboxItem.id, OutboxItem.status).where(OutboxItem.id.in_(ids))
                ).tuples()
            )
            missing = set(ids) - set(found)
            if missing:
                raise OutboxItemsNotFoundError("No emails found with IDs", missing)
            not_failed = [
                item_id for item_id, status in found.items()
                if status != OutboxStatus.FAILED.value
            ]
            if not_failed:
                raise OutboxStatusConflictError(
                    "Cannot retry emails that are not in failed status", not_failed
                )

            stmt = (
                update(OutboxItem)
                .where(
                    OutboxItem.id.in_(ids),
                    OutboxItem.status == OutboxStatus.FAILED.value,
                )
                .values(
                    status=OutboxStatus.PENDING.value,
                    last_error=None,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            result = session.execute(stmt)
            session.commit()
        return int(result.rowcount or 0)
