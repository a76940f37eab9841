# src/outbox_monitor/db/__init__.py
"""Database configuration and utilities."""

from .session import SessionLocal, get_session_factory

__all__ = ["SessionLocal", "get_session_factory"]
