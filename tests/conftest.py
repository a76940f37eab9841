# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from datetime import datetime
from itertools import count
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from outbox_monitor.api.v1.dependencies import get_outbox_repository, get_settings
from outbox_monitor.core.settings import Settings
from outbox_monitor.db.session import Base
from outbox_monitor.db.time import utcnow
from outbox_monitor.main import app as fastapi_app
from outbox_monitor.models import OutboxItem, OutboxStatus
from outbox_monitor.repositories import OutboxRepository

ADMIN_TOKEN = "test-admin-token"

_ITEM_COUNTER = count(1)


@pytest.fixture()
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    # File-backed so that each worker thread gets its own connection.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'outbox.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def repository(session_factory: sessionmaker[Session]) -> OutboxRepository:
    return OutboxRepository(session_factory)


@pytest.fixture()
def make_item(db_session: Session) -> Callable[..., OutboxItem]:
    """Return a factory that persists an outbox item with explicit timestamps."""

    def _make_item(
        status: OutboxStatus = OutboxStatus.PENDING,
        *,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        sent_at: datetime | None = None,
        last_error: str | None = None,
        subject: str | None = "Welcome",
    ) -> OutboxItem:
        created = created_at or utcnow()
        if status is OutboxStatus.SENT and sent_at is None:
            sent_at = created
        if status is OutboxStatus.FAILED and last_error is None:
            last_error = "SMTP 550 mailbox unavailable"
        number = next(_ITEM_COUNTER)
        item = OutboxItem(
            template="welcome",
            to_email=f"user{number}@example.com",
            subject=subject,
            status=status.value,
            created_at=created,
            updated_at=updated_at or sent_at or created,
            sent_at=sent_at,
            last_error=last_error,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make_item


@pytest.fixture()
def test_settings() -> Settings:
    """Provide settings with an admin token and default thresholds."""
    return Settings(ADMIN_API_TOKEN=ADMIN_TOKEN, RATE_LIMIT_BYPASS=False)


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture()
def app(repository: OutboxRepository, test_settings: Settings) -> Iterator[FastAPI]:
    overrides: dict[Callable[..., object], Callable[[], object]] = {
        get_outbox_repository: lambda: repository,
        get_settings: lambda: test_settings,
    }
    for dependency, override in overrides.items():
        fastapi_app.dependency_overrides[dependency] = override
    try:
        yield fastapi_app
    finally:
        for dependency in overrides:
            fastapi_app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
