# src/outbox_monitor/services/__init__.py
"""Business logic services for the outbox monitor."""

from .alerts import Alert, AlertConfig, AlertEvaluator, AlertReason, AlertSeverity
from .rate_limit import RateLimiter, RateLimitResult, RateLimitRule, check_rate_limit
from .trends import OutboxStore, Trends24h, TrendsAggregator, TrendsBucket, TrendsQueryError

__all__ = [
    "Alert",
    "AlertConfig",
    "AlertEvaluator",
    "AlertReason",
    "AlertSeverity",
    "OutboxStore",
    "RateLimitResult",
    "RateLimitRule",
    "RateLimiter",
    "Trends24h",
    "TrendsAggregator",
    "TrendsBucket",
    "TrendsQueryError",
    "check_rate_limit",
]
