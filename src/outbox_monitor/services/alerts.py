"""Alert evaluation for the email outbox.

``AlertEvaluator`` is a pure function of a ``Trends24h`` report and its
thresholds. Thresholds are not validated; callers must supply non-negative
values.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from outbox_monitor.core.settings import Settings, settings as default_settings
from outbox_monitor.db.time import ensure_utc, utcnow
from outbox_monitor.services.trends import Trends24h

# Configure logger for this module
logger = logging.getLogger(__name__)

ESCALATION_FACTOR = 2


class AlertReason(str, Enum):
    """Conditions that make the outbox unhealthy."""

    PENDING_HIGH = "PENDING_HIGH"
    OLDEST_PENDING_AGE = "OLDEST_PENDING_AGE"
    FAILURE_SPIKE = "FAILURE_SPIKE"


class AlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class AlertConfig:
    """Immutable thresholds for outbox alerting."""

    pending_threshold: int = 50
    oldest_pending_max_age_minutes: int = 30
    failure_spike_threshold: int = 10


@dataclass(frozen=True)
class Alert:
    """Verdict produced by ``AlertEvaluator.evaluate``."""

    reasons: tuple[AlertReason, ...] = ()
    details: dict[str, Any] = field(default_factory=dict)
    severity: AlertSeverity = AlertSeverity.WARNING

    @property
    def ok(self) -> bool:
        return not self.reasons

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "reasons": [reason.value for reason in self.reasons],
            "details": dict(self.details),
            "severity": self.severity.value,
        }


def load_alert_config(source: Settings | None = None, **overrides: int) -> AlertConfig:
    """Resolve thresholds: explicit overrides, then settings/environment, then defaults."""
    source = source or default_settings
    values = {
        "pending_threshold": source.outbox_pending_threshold,
        "oldest_pending_max_age_minutes": source.outbox_oldest_pending_max_age_minutes,
        "failure_spike_threshold": source.outbox_failure_spike_threshold,
    }
    unknown = set(overrides) - set(values)
    if unknown:
        raise TypeError(f"Unknown alert threshold(s): {', '.join(sorted(unknown))}")
    values.update({key: value for key, value in overrides.items() if value is not None})
    return AlertConfig(**values)


def age_in_minutes(timestamp: datetime, now: datetime) -> int:
    """Return whole minutes elapsed between ``timestamp`` and ``now``, floored."""
    elapsed = (ensure_utc(now) - ensure_utc(timestamp)).total_seconds()
    return math.floor(elapsed / 60)


class AlertEvaluator:
    """Turns a trends report into warning/critical outbox alerts.

    Rules fire independently; any rule that escalates makes the whole alert
    critical.
    """

    def __init__(self, settings: Settings | None = None, **overrides: int) -> None:
        self._config = load_alert_config(settings, **overrides)

    def evaluate(self, trends: Trends24h, now: datetime | None = None) -> Alert:
        """Evaluate the alert rules against ``trends``.

        Args:
            trends: Report produced by ``TrendsAggregator``.
            now: Reference time for pending age; defaults to the current UTC time.
        """
        config = self._config
        summary = trends.summary
        reasons: list[AlertReason] = []
        details: dict[str, Any] = {}
        critical = False

        pending = summary.current_pending
        if pending > config.pending_threshold:
            reasons.append(AlertReason.PENDING_HIGH)
            details["pending_count"] = pending
            details["pending_threshold"] = config.pending_threshold
            if pending >= config.pending_threshold * ESCALATION_FACTOR:
                critical = True

        if summary.oldest_pending is not None:
            age = age_in_minutes(summary.oldest_pending, now or utcnow())
            max_age = config.oldest_pending_max_age_minutes
            if age > max_age:
                reasons.append(AlertReason.OLDEST_PENDING_AGE)
                details["oldest_pending_age_minutes"] = age
                details["oldest_pending_max_age_minutes"] = max_age
                details["oldest_pending_timestamp"] = summary.oldest_pending.isoformat()
                if age >= max_age * ESCALATION_FACTOR:
                    critical = True

        last_bucket = trends.last_bucket
        last_hour_failures = last_bucket.failed if last_bucket is not None else 0
        if last_hour_failures > config.failure_spike_threshold:
            reasons.append(AlertReason.FAILURE_SPIKE)
            details["last_hour_failures"] = last_hour_failures
            details["failure_spike_threshold"] = config.failure_spike_threshold
            critical = True

        severity = AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING
        alert = Alert(reasons=tuple(reasons), details=details, severity=severity)
        if not alert.ok:
            logger.warning(
                "Outbox alert raised: severity=%s reasons=%s",
                severity.value,
                ",".join(reason.value for reason in reasons),
            )
        return alert

    def get_config(self) -> AlertConfig:
        """Return the thresholds in effect for this evaluator."""
        return AlertConfig(**asdict(self._config))
