"""In-memory fixed-window rate limiting.

Each key gets a counter that resets ``window_seconds`` after its first
request. The window is fixed, not sliding: a caller can be admitted up to
``2 * limit`` times in a short span straddling a window boundary.

State lives in process memory only; there is no coordination between
processes or hosts.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Final

from outbox_monitor.core.settings import Settings, settings as default_settings

# Configure logger for this module
logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_INTERVAL_SECONDS: Final[float] = 300.0
SECONDS_PER_MINUTE: Final[int] = 60
SECONDS_PER_DAY: Final[int] = 86_400


@dataclass
class RateLimitEntry:
    """Counter for a single key; owned by ``RateLimiter``."""

    count: int
    reset_time: float


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a ``RateLimiter.check`` call."""

    allowed: bool
    remaining: int
    reset_time: float


@dataclass(frozen=True)
class RateLimitRule:
    """A ``(limit, window)`` pair applied to one rate-limited operation."""

    limit: int
    window_seconds: float


@dataclass(frozen=True)
class RetryRateLimits:
    """Rate limits guarding the outbox retry operation."""

    per_minute: RateLimitRule
    per_day: RateLimitRule


def load_retry_rate_limits(source: Settings | None = None) -> RetryRateLimits:
    """Build the retry-operation rate limits from settings."""
    source = source or default_settings
    return RetryRateLimits(
        per_minute=RateLimitRule(source.outbox_retry_rate_limit_per_min, SECONDS_PER_MINUTE),
        per_day=RateLimitRule(source.outbox_retry_rate_limit_per_day, SECONDS_PER_DAY),
    )


class RateLimiter:
    """Fixed-window request counter keyed by an arbitrary string.

    ``check`` is safe to call from multiple threads. The expiry sweep runs as
    an asyncio task started with ``start`` and cancelled with ``stop``.
    """

    def __init__(
        self,
        cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = Lock()
        self._clock = clock
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._stopping: asyncio.Event | None = None

    def check(self, key: str, limit: int, window_seconds: float) -> RateLimitResult:
        """Count a request for ``key`` and report whether it is admitted.

        Denied requests do not consume budget.
        """
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None or now > entry.reset_time:
                reset_time = now + window_seconds
                self._entries[key] = RateLimitEntry(count=1, reset_time=reset_time)
                return RateLimitResult(allowed=True, remaining=limit - 1, reset_time=reset_time)

            if entry.count >= limit:
                return RateLimitResult(allowed=False, remaining=0, reset_time=entry.reset_time)

            entry.count += 1
            return RateLimitResult(
                allowed=True,
                remaining=limit - entry.count,
                reset_time=entry.reset_time,
            )

    def cleanup(self) -> int:
        """Remove expired entries and return how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now > entry.reset_time]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Rate limiter sweep removed %d expired keys", len(expired))
        return len(expired)

    def get_stats(self) -> dict[str, object]:
        """Return every active key with its count and reset time."""
        with self._lock:
            entries = [
                {"key": key, "count": entry.count, "reset_time": entry.reset_time}
                for key, entry in self._entries.items()
            ]
        return {"total_keys": len(entries), "entries": entries}

    def reset(self) -> None:
        """Forget every key."""
        with self._lock:
            self._entries.clear()

    async def start(self) -> None:
        """Start the periodic expiry sweep."""
        if self._task is None or self._task.done():
            # Events bind to the loop that first waits on them; one per start.
            self._stopping = asyncio.Event()
            self._task = asyncio.create_task(self._run(self._stopping))

    async def stop(self) -> None:
        """Stop the periodic expiry sweep."""
        if self._task is None:
            return

        if self._stopping is not None:
            self._stopping.set()
        await self._task
        self._task = None

    async def destroy(self) -> None:
        """Stop the sweep and drop all entries."""
        await self.stop()
        self.reset()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self, stopping: asyncio.Event) -> None:
        interval = max(0.01, float(self.cleanup_interval_seconds))
        while not stopping.is_set():
            try:
                await asyncio.wait_for(stopping.wait(), timeout=interval)
            except TimeoutError:
                self.cleanup()


def check_rate_limit(
    limiter: RateLimiter,
    key: str,
    rule: RateLimitRule,
    source: Settings | None = None,
) -> RateLimitResult:
    """Check ``rule`` for ``key``, honouring the global bypass switch."""
    source = source or default_settings
    if source.rate_limit_bypass:
        return RateLimitResult(
            allowed=True,
            remaining=rule.limit,
            reset_time=time.time() + rule.window_seconds,
        )

    result = limiter.check(key, rule.limit, rule.window_seconds)
    if not result.allowed:
        logger.info(
            "Rate limit exceeded for %s (limit=%d window=%ss)",
            key,
            rule.limit,
            rule.window_seconds,
        )
    return result
