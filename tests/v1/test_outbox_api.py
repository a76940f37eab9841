"""Tests for the email outbox admin endpoints."""

from collections.abc import Callable
from datetime import timedelta

from fastapi import FastAPI, status
from fastapi.testclient import TestClient

from outbox_monitor.api.v1.dependencies import get_outbox_repository
from outbox_monitor.core.settings import Settings
from outbox_monitor.db.time import utcnow
from outbox_monitor.models import OutboxItem, OutboxStatus
from outbox_monitor.repositories import OutboxRepository
from outbox_monitor.schemas.outbox import MAX_RETRY_IDS

BASE_URL = "/api/v1/admin/email-outbox"


class BrokenRepository(OutboxRepository):
    def list_failed_since(self, since):  # type: ignore[no-untyped-def]
        raise RuntimeError("database is locked")


def test_requires_admin_token(client: TestClient) -> None:
    r = client.get(f"{BASE_URL}/stats")
    assert r.status_code == status.HTTP_401_UNAUTHORIZED

    r = client.get(f"{BASE_URL}/stats", headers={"Authorization": "Bearer nope"})
    assert r.status_code == status.HTTP_401_UNAUTHORIZED


def test_admin_api_disabled_without_token(
    client: TestClient, test_settings: Settings, admin_headers: dict[str, str]
) -> None:
    test_settings.admin_api_token = None

    r = client.get(f"{BASE_URL}/stats", headers=admin_headers)
    assert r.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


def test_list_items_filters_and_paginates(
    client: TestClient,
    admin_headers: dict[str, str],
    make_item: Callable[..., OutboxItem],
) -> None:
    now = utcnow()
    for minutes in (10, 20, 30):
        make_item(OutboxStatus.PENDING, created_at=now - timedelta(minutes=minutes))
    failed = make_item(OutboxStatus.FAILED, created_at=now - timedelta(minutes=5), subject=None)

    r = client.get(BASE_URL, params={"status": "pending", "limit": 2}, headers=admin_headers)
    assert r.status_code == status.HTTP_200_OK
    page = r.json()
    assert page["total"] == 3
    assert len(page["items"]) == 2
    assert all(item["status"] == "pending" for item in page["items"])
    assert page["items"][0]["created_at"] > page["items"][1]["created_at"]

    r = client.get(BASE_URL, params={"status": "failed"}, headers=admin_headers)
    item = r.json()["items"][0]
    assert item["id"] == failed.id
    assert item["to"] == failed.to_email
    assert item["subject"] == "No subject"
    assert item["error_message"] == "SMTP 550 mailbox unavailable"


def test_list_items_rejects_unknown_status(
    client: TestClient, admin_headers: dict[str, str]
) -> None:
    r = client.get(BASE_URL, params={"status": "bounced"}, headers=admin_headers)
    assert r.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_stats(
    client: TestClient,
    admin_headers: dict[str, str],
    make_item: Callable[..., OutboxItem],
) -> None:
    now = utcnow()
    make_item(OutboxStatus.PENDING, created_at=now - timedelta(minutes=40))
    make_item(OutboxStatus.PENDING, created_at=now - timedelta(minutes=4))
    make_item(OutboxStatus.SENT)
    make_item(OutboxStatus.FAILED)

    r = client.get(f"{BASE_URL}/stats", headers=admin_headers)
    assert r.status_code == status.HTTP_200_OK
    body = r.json()
    assert body["ok"] is True
    assert body["stats"]["total_pending"] == 2
    assert body["stats"]["total_sent"] == 1
    assert body["stats"]["total_failed"] == 1
    assert body["stats"]["oldest_pending"] is not None


def test_trends_with_alert(
    client: TestClient,
    admin_headers: dict[str, str],
    test_settings: Settings,
    make_item: Callable[..., OutboxItem],
) -> None:
    test_settings.outbox_pending_threshold = 1
    now = utcnow()
    make_item(OutboxStatus.PENDING, created_at=now - timedelta(minutes=3))
    make_item(OutboxStatus.PENDING, created_at=now - timedelta(minutes=2))
    make_item(OutboxStatus.SENT, created_at=now - timedelta(hours=1))

    r = client.get(f"{BASE_URL}/trends", headers=admin_headers)
    assert r.status_code == status.HTTP_200_OK
    body = r.json()
    assert body["ok"] is True
    assert body["window"] == "24h"
    assert len(body["trends"]["buckets"]) == 24
    assert body["trends"]["summary"]["current_pending"] == 2
    assert body["trends"]["summary"]["total_queued"] == 3
    assert body["alert"]["ok"] is False
    assert body["alert"]["reasons"] == ["PENDING_HIGH"]
    assert body["alert"]["severity"] == "critical"


def test_trends_store_failure_returns_500(
    app: FastAPI,
    client: TestClient,
    admin_headers: dict[str, str],
    repository: OutboxRepository,
) -> None:
    broken = BrokenRepository(repository.session_factory)
    app.dependency_overrides[get_outbox_repository] = lambda: broken

    r = client.get(f"{BASE_URL}/trends", headers=admin_headers)
    assert r.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert r.json() == {
        "ok": False,
        "error": "internal_server_error",
        "message": "Failed to get email outbox trends",
    }


def test_retry_moves_failed_items_to_pending(
    client: TestClient,
    admin_headers: dict[str, str],
    make_item: Callable[..., OutboxItem],
    repository: OutboxRepository,
) -> None:
    first = make_item(OutboxStatus.FAILED)
    second = make_item(OutboxStatus.FAILED)
    make_item(OutboxStatus.SENT)

    r = client.post(
        f"{BASE_URL}/retry",
        json={"ids": [first.id, second.id]},
        headers=admin_headers,
    )
    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"ok": True, "requested": 2, "retried": 2}

    stats = repository.get_stats()
    assert stats.total_pending == 2
    assert stats.total_failed == 0
    assert stats.total_sent == 1


def test_retry_rejects_items_not_in_failed_status(
    client: TestClient,
    admin_headers: dict[str, str],
    make_item: Callable[..., OutboxItem],
    repository: OutboxRepository,
) -> None:
    failed = make_item(OutboxStatus.FAILED)
    sent = make_item(OutboxStatus.SENT)

    r = client.post(
        f"{BASE_URL}/retry",
        json={"ids": [failed.id, sent.id]},
        headers=admin_headers,
    )
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    body = r.json()
    assert body["ok"] is False
    assert body["error"] == "invalid_status"
    assert str(sent.id) in body["message"]

    # Nothing moves when any item is rejected.
    stats = repository.get_stats()
    assert stats.total_failed == 1
    assert stats.total_sent == 1
    assert stats.total_pending == 0


def test_retry_unknown_ids_returns_404(
    client: TestClient,
    admin_headers: dict[str, str],
    make_item: Callable[..., OutboxItem],
    repository: OutboxRepository,
) -> None:
    failed = make_item(OutboxStatus.FAILED)

    r = client.post(
        f"{BASE_URL}/retry",
        json={"ids": [failed.id, 9999]},
        headers=admin_headers,
    )
    assert r.status_code == status.HTTP_404_NOT_FOUND
    body = r.json()
    assert body["ok"] is False
    assert body["error"] == "not_found"
    assert "9999" in body["message"]
    assert repository.get_stats().total_failed == 1


def test_retry_requires_ids(client: TestClient, admin_headers: dict[str, str]) -> None:
    r = client.post(f"{BASE_URL}/retry", json={"ids": []}, headers=admin_headers)
    assert r.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_retry_caps_batch_size(client: TestClient, admin_headers: dict[str, str]) -> None:
    r = client.post(
        f"{BASE_URL}/retry",
        json={"ids": list(range(1, MAX_RETRY_IDS + 2))},
        headers=admin_headers,
    )
    assert r.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_retry_is_rate_limited_per_client(
    client: TestClient,
    admin_headers: dict[str, str],
    test_settings: Settings,
) -> None:
    # Item 1 does not exist: admitted calls reach the repository and get 404.
    test_settings.outbox_retry_rate_limit_per_min = 2
    headers = {**admin_headers, "X-Forwarded-For": "203.0.113.7"}

    for _ in range(2):
        r = client.post(f"{BASE_URL}/retry", json={"ids": [1]}, headers=headers)
        assert r.status_code == status.HTTP_404_NOT_FOUND

    r = client.post(f"{BASE_URL}/retry", json={"ids": [1]}, headers=headers)
    assert r.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert r.json()["error"] == "rate_limited"
    assert r.headers["X-RateLimit-Limit"] == "2"
    assert r.headers["X-RateLimit-Remaining"] == "0"
    assert int(r.headers["Retry-After"]) <= 60

    other = {**admin_headers, "X-Forwarded-For": "198.51.100.2"}
    r = client.post(f"{BASE_URL}/retry", json={"ids": [1]}, headers=other)
    assert r.status_code == status.HTTP_404_NOT_FOUND

    r = client.get(f"{BASE_URL}/rate-limits", headers=admin_headers)
    keys = {entry["key"] for entry in r.json()["entries"]}
    assert "outbox-retry:minute:203.0.113.7" in keys
    assert "outbox-retry:day:198.51.100.2" in keys


def test_retry_rate_limit_bypass(
    client: TestClient,
    admin_headers: dict[str, str],
    test_settings: Settings,
) -> None:
    test_settings.outbox_retry_rate_limit_per_min = 1
    test_settings.rate_limit_bypass = True

    for _ in range(3):
        r = client.post(f"{BASE_URL}/retry", json={"ids": [1]}, headers=admin_headers)
        assert r.status_code == status.HTTP_404_NOT_FOUND


def test_limiter_lifecycle_follows_app(app: FastAPI) -> None:
    with TestClient(app) as test_client:
        limiter = test_client.app.state.rate_limiter
        assert limiter.running
    assert app.state.rate_limiter is None
    assert not limiter.running


def test_health(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"status": "ok"}
