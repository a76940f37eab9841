"""24-hour trend aggregation for the email outbox.

The aggregator reads four independent result sets from the message store
(queued, sent, failed and currently pending items) and folds them into 24
contiguous hourly buckets plus rollup totals.

The four reads are not executed in a single transaction. Items that change
state while the reads are in flight can make ``total_sent + total_failed``
drift slightly from the queued and pending figures of the same report. The
result is an eventually-consistent monitoring view, not an accounting ledger.
"""

from __future__ import annotations

import asyncio
import logging
from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Final, Protocol

from outbox_monitor.db.time import ensure_utc, utcnow

# Configure logger for this module
logger = logging.getLogger(__name__)

WINDOW_LABEL: Final[str] = "24h"
BUCKET_COUNT: Final[int] = 24
BUCKET_WIDTH: Final[timedelta] = timedelta(hours=1)
WINDOW_WIDTH: Final[timedelta] = BUCKET_WIDTH * BUCKET_COUNT


class OutboxStore(Protocol):
    """Read-only queries the aggregator needs from the message store."""

    def list_queued_since(self, since: datetime) -> Sequence[datetime]:
        """Return ``created_at`` of every item created at or after ``since``."""
        ...

    def list_sent_since(self, since: datetime) -> Sequence[datetime]:
        """Return ``sent_at`` of every sent item delivered at or after ``since``."""
        ...

    def list_failed_since(self, since: datetime) -> Sequence[datetime]:
        """Return ``updated_at`` of every failed item updated at or after ``since``."""
        ...

    def list_pending_created(self) -> Sequence[datetime]:
        """Return ``created_at`` of every pending item, oldest first."""
        ...


class TrendsQueryError(RuntimeError):
    """Raised when one of the store reads behind a trends report fails."""

    def __init__(self, query: str, message: str) -> None:
        super().__init__(f"Failed to query {query} emails: {message}")
        self.query = query


@dataclass
class TrendsBucket:
    """Counts for the half-open hour ``[bucket_start, bucket_start + 1h)``."""

    bucket_start: datetime
    queued: int = 0
    sent: int = 0
    failed: int = 0
    pending_snapshot: int | None = None

    @property
    def bucket_end(self) -> datetime:
        return self.bucket_start + BUCKET_WIDTH

    def contains(self, moment: datetime) -> bool:
        return self.bucket_start <= moment < self.bucket_end

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts": self.bucket_start.isoformat(),
            "queued": self.queued,
            "sent": self.sent,
            "failed": self.failed,
            "pending_snapshot": self.pending_snapshot,
        }


@dataclass(frozen=True)
class TrendsSummary:
    """Rollup totals over the whole window."""

    total_queued: int
    total_sent: int
    total_failed: int
    oldest_pending: datetime | None
    current_pending: int
    success_rate_24h: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_queued": self.total_queued,
            "total_sent": self.total_sent,
            "total_failed": self.total_failed,
            "oldest_pending": self.oldest_pending.isoformat() if self.oldest_pending else None,
            "current_pending": self.current_pending,
            "success_rate_24h": self.success_rate_24h,
        }


@dataclass(frozen=True)
class Trends24h:
    """Hourly buckets for the last 24 hours, oldest first, plus a summary."""

    buckets: list[TrendsBucket]
    summary: TrendsSummary
    window: str = field(default=WINDOW_LABEL)

    @property
    def last_bucket(self) -> TrendsBucket | None:
        return self.buckets[-1] if self.buckets else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "window": self.window,
            "buckets": [bucket.to_dict() for bucket in self.buckets],
            "summary": self.summary.to_dict(),
        }


def generate_hourly_buckets(window_start: datetime) -> list[TrendsBucket]:
    """Return 24 empty, contiguous hourly buckets starting at ``window_start``."""
    return [
        TrendsBucket(bucket_start=window_start + BUCKET_WIDTH * index)
        for index in range(BUCKET_COUNT)
    ]


def find_bucket_index(buckets: Sequence[TrendsBucket], moment: datetime) -> int:
    """Return the index of the bucket containing ``moment``, or -1.

    Buckets must be contiguous and sorted ascending.
    """
    if not buckets:
        return -1
    starts = [bucket.bucket_start for bucket in buckets]
    index = bisect_right(starts, moment) - 1
    if index < 0 or not buckets[index].contains(moment):
        return -1
    return index


def success_rate(total_sent: int, total_queued: int) -> float:
    """Return ``sent / max(1, queued)`` bounded to ``[0, 1]``.

    Items queued before the window but sent inside it can push the raw ratio
    above one; the reported rate is capped.
    """
    rate = total_sent / max(1, total_queued)
    return max(0.0, min(1.0, rate))


class TrendsAggregator:
    """Builds a ``Trends24h`` report from an ``OutboxStore``."""

    def __init__(self, store: OutboxStore) -> None:
        self.store = store

    async def execute(self, now: datetime | None = None) -> Trends24h:
        """Query the store and aggregate the last 24 hours into hourly buckets.

        Args:
            now: Reference time for the window end; defaults to the current UTC time.

        Returns:
            A report with exactly 24 buckets spanning ``[now - 24h, now)``.

        Raises:
            TrendsQueryError: If any of the four store reads fails.
        """
        current = ensure_utc(now) if now is not None else utcnow()
        window_start = current - WINDOW_WIDTH

        queued, sent, failed, pending = await asyncio.gather(
            self._run_query("queued", self.store.list_queued_since, window_start),
            self._run_query("sent", self.store.list_sent_since, window_start),
            self._run_query("failed", self.store.list_failed_since, window_start),
            self._run_query("pending", self.store.list_pending_created),
        )

        buckets = generate_hourly_buckets(window_start)
        dropped = self._aggregate_into_buckets(buckets, queued, sent, failed)
        if dropped:
            logger.debug("Dropped %d outbox events outside the trends window", dropped)

        summary = self._calculate_summary(buckets, pending)
        return Trends24h(buckets=buckets, summary=summary)

    async def _run_query(self, name: str, query: Any, *args: Any) -> list[datetime]:
        try:
            rows = await asyncio.to_thread(query, *args)
        except Exception as exc:
            logger.error("Outbox trends query '%s' failed: %s", name, exc)
            raise TrendsQueryError(name, str(exc)) from exc
        return [ensure_utc(value) for value in rows if value is not None]

    @staticmethod
    def _aggregate_into_buckets(
        buckets: list[TrendsBucket],
        queued: Sequence[datetime],
        sent: Sequence[datetime],
        failed: Sequence[datetime],
    ) -> int:
        """Increment bucket counters in place and return how many events were dropped."""
        dropped = 0
        for counter, moments in (("queued", queued), ("sent", sent), ("failed", failed)):
            for moment in moments:
                index = find_bucket_index(buckets, moment)
                if index < 0:
                    dropped += 1
                    continue
                bucket = buckets[index]
                setattr(bucket, counter, getattr(bucket, counter) + 1)
        return dropped

    @staticmethod
    def _calculate_summary(
        buckets: Sequence[TrendsBucket], pending: Sequence[datetime]
    ) -> TrendsSummary:
        total_queued = sum(bucket.queued for bucket in buckets)
        total_sent = sum(bucket.sent for bucket in buckets)
        total_failed = sum(bucket.failed for bucket in buckets)

        return TrendsSummary(
            total_queued=total_queued,
            total_sent=total_sent,
            total_failed=total_failed,
            oldest_pending=pending[0] if pending else None,
            current_pending=len(pending),
            success_rate_24h=success_rate(total_sent, total_queued),
        )
