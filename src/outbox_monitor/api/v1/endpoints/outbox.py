"""Admin endpoints for inspecting and nudging the email outbox."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Annotated

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse

from outbox_monitor.api.v1.dependencies import (
    AdminDep,
    AlertEvaluatorDep,
    OutboxRepositoryDep,
    RateLimiterDep,
    SettingsDep,
    client_identity,
)
from outbox_monitor.repositories import OutboxItemsNotFoundError, OutboxStatusConflictError
from outbox_monitor.schemas.outbox import (
    OutboxItemResponse,
    OutboxItemsPage,
    OutboxRetryRequest,
    OutboxRetryResponse,
    OutboxStatsResponse,
    OutboxStatusLiteral,
)
from outbox_monitor.services.rate_limit import (
    RateLimitResult,
    RateLimitRule,
    check_rate_limit,
    load_retry_rate_limits,
)
from outbox_monitor.services.trends import TrendsAggregator, TrendsQueryError

# Configure logger for this module
logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

router = APIRouter(
    prefix="/admin/email-outbox",
    tags=["admin", "email-outbox"],
    dependencies=[AdminDep],
)


def _rate_limited_response(rule: RateLimitRule, result: RateLimitResult) -> JSONResponse:
    retry_after = max(0, math.ceil(result.reset_time - time.time()))
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "ok": False,
            "error": "rate_limited",
            "message": "Too many retry requests, please try again later",
            "retry_after_seconds": retry_after,
        },
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(rule.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(int(result.reset_time)),
        },
    )


@router.get("", response_model=OutboxItemsPage)
async def list_outbox_items(
    repository: OutboxRepositoryDep,
    status_filter: Annotated[OutboxStatusLiteral | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> OutboxItemsPage:
    """Return outbox items, newest first, optionally filtered by status."""
    items, total = await asyncio.to_thread(
        repository.list_items, status=status_filter, limit=limit, offset=offset
    )
    return OutboxItemsPage(
        items=[OutboxItemResponse.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stats")
async def get_outbox_stats(repository: OutboxRepositoryDep) -> dict[str, object]:
    """Return current per-status counts."""
    stats = await asyncio.to_thread(repository.get_stats)
    logger.info(
        "Outbox stats requested: pending=%d sent=%d failed=%d",
        stats.total_pending,
        stats.total_sent,
        stats.total_failed,
    )
    payload = OutboxStatsResponse(
        total_pending=stats.total_pending,
        total_sent=stats.total_sent,
        total_failed=stats.total_failed,
        oldest_pending=stats.oldest_pending,
    )
    return {"ok": True, "stats": payload.model_dump(mode="json")}


@router.get("/trends", response_model=None)
async def get_outbox_trends(
    repository: OutboxRepositoryDep,
    evaluator: AlertEvaluatorDep,
) -> dict[str, object] | JSONResponse:
    """Return the 24-hour trends report together with the alert verdict."""
    try:
        trends = await TrendsAggregator(repository).execute()
    except TrendsQueryError as exc:
        logger.error("Failed to get email outbox trends: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "ok": False,
                "error": "internal_server_error",
                "message": "Failed to get email outbox trends",
            },
        )

    alert = evaluator.evaluate(trends)
    return {
        "ok": True,
        "window": trends.window,
        "trends": trends.to_dict(),
        "alert": alert.to_dict(),
    }


@router.post("/retry", response_model=None)
async def retry_failed_items(
    request: Request,
    body: OutboxRetryRequest,
    repository: OutboxRepositoryDep,
    limiter: RateLimiterDep,
    app_settings: SettingsDep,
) -> OutboxRetryResponse | JSONResponse:
    """Move failed items back to pending, subject to per-caller rate limits."""
    identity = client_identity(request)
    limits = load_retry_rate_limits(app_settings)

    for scope, rule in (("minute", limits.per_minute), ("day", limits.per_day)):
        result = check_rate_limit(limiter, f"outbox-retry:{scope}:{identity}", rule, app_settings)
        if not result.allowed:
            return _rate_limited_response(rule, result)

    try:
        retried = await asyncio.to_thread(repository.retry_failed, body.ids)
    except OutboxItemsNotFoundError as exc:
        logger.info("Outbox retry rejected: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"ok": False, "error": "not_found", "message": str(exc)},
        )
    except OutboxStatusConflictError as exc:
        logger.info("Outbox retry rejected: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"ok": False, "error": "invalid_status", "message": str(exc)},
        )

    logger.info("Outbox retry requested for %d items, %d reset to pending", len(body.ids), retried)
    return OutboxRetryResponse(requested=len(body.ids), retried=retried)


@router.get("/rate-limits")
async def get_rate_limit_stats(limiter: RateLimiterDep) -> dict[str, object]:
    """Expose active rate-limit counters for operational visibility."""
    return limiter.get_stats()
