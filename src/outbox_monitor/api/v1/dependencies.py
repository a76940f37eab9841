"""Shared API dependencies for admin access and service wiring."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from outbox_monitor.core.settings import Settings, settings
from outbox_monitor.db.session import get_session_factory
from outbox_monitor.repositories import OutboxRepository
from outbox_monitor.services.alerts import AlertEvaluator
from outbox_monitor.services.rate_limit import RateLimiter

# HTTP Bearer scheme for admin token authentication
bearer_scheme = HTTPBearer(auto_error=False)


def get_settings() -> Settings:
    """Return the active application settings."""
    return settings


SettingsDep = Annotated[Settings, Depends(get_settings)]


def require_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    app_settings: SettingsDep,
) -> None:
    """Reject requests that do not carry the configured admin token.

    Raises:
        HTTPException: 503 if no admin token is configured, 401 if the token
            is missing or wrong.
    """
    expected = app_settings.admin_api_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API is not configured",
        )
    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(), expected.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_outbox_repository() -> OutboxRepository:
    """Return a repository bound to the application session factory."""
    return OutboxRepository(get_session_factory())


def get_alert_evaluator(app_settings: SettingsDep) -> AlertEvaluator:
    """Return an alert evaluator configured from settings."""
    return AlertEvaluator(app_settings)


def get_rate_limiter(request: Request) -> RateLimiter:
    """Return the rate limiter owned by the running application."""
    limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiter is not running",
        )
    return limiter


def client_identity(request: Request) -> str:
    """Return the caller identity used as a rate-limit key."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


AdminDep = Depends(require_admin)
OutboxRepositoryDep = Annotated[OutboxRepository, Depends(get_outbox_repository)]
AlertEvaluatorDep = Annotated[AlertEvaluator, Depends(get_alert_evaluator)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]
