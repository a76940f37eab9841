# src/outbox_monitor/main.py
"""Main entry point for the outbox monitor API."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from outbox_monitor.api.v1 import outbox_router
from outbox_monitor.core.settings import settings
from outbox_monitor.services.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Outbox Monitor API",
    description="Email outbox trends, alerts and admin operations",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(outbox_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    limiter = RateLimiter(cleanup_interval_seconds=settings.rate_limit_cleanup_interval_seconds)
    await limiter.start()
    app.state.rate_limiter = limiter
    logger.info("Rate limiter sweep started (interval=%ss)", limiter.cleanup_interval_seconds)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    limiter: RateLimiter | None = getattr(app.state, "rate_limiter", None)
    if limiter:
        await limiter.destroy()
    app.state.rate_limiter = None


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("outbox_monitor.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
