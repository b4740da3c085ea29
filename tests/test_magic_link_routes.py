"""Integration tests for the magic link endpoints."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from app.adapters.delivery.base import AbstractLinkSender
from app.core.app_factory import create_app
from app.core.config import RateLimitSettings, settings
from app.core.dependencies import (
    get_link_sender,
    get_magic_link_service,
    get_rate_limiter_service,
)
from app.core.errors import LinkDeliveryError
from app.services.magic_link_service import MagicLinkService
from app.services.rate_limiter_service import RateLimiterService, build_rate_limit_configs

DAY_MS = 24 * 60 * 60 * 1000


def _client(limiter: RateLimiterService, magic_links: MagicLinkService) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_rate_limiter_service] = lambda: limiter
    app.dependency_overrides[get_magic_link_service] = lambda: magic_links
    return TestClient(app)


@pytest.fixture
def magic_links(store, clock) -> MagicLinkService:
    return MagicLinkService(
        store, ttl_ms=DAY_MS, link_base_url="https://chat.example.com", clock=clock
    )


@pytest.fixture
def limiter(store, clock) -> RateLimiterService:
    # generous IP limit so the per-email limit is the one under test
    cfg = RateLimitSettings(magic_link_ip_max_attempts=100)
    return RateLimiterService.from_configs(store, build_rate_limit_configs(cfg), clock=clock)


@pytest.fixture
def client(limiter, magic_links) -> TestClient:
    return _client(limiter, magic_links)


@pytest.fixture
def expose_links(monkeypatch):
    monkeypatch.setattr(settings.magic_link, "expose_links", True)


def _token_from(link: str) -> str:
    return parse_qs(urlparse(link).query)["token"][0]


class TestRequestMagicLink:
    def test_issues_without_exposing_link(self, client: TestClient) -> None:
        resp = client.post("/v1/magic-links", json={"session_id": "s1", "email": "a@x.com"})

        assert resp.status_code == 201
        assert resp.json() == {
            "status": "magic_link_sent",
            "expires_in_seconds": 86400,
            "magic_link": None,
        }

    def test_exposes_link_when_enabled(self, client: TestClient, expose_links) -> None:
        resp = client.post("/v1/magic-links", json={"session_id": "s1", "email": "a@x.com"})

        link = resp.json()["magic_link"]
        assert link.startswith("https://chat.example.com/chat?token=")
        assert len(_token_from(link)) == 64

    def test_fourth_request_per_email_is_limited(self, client: TestClient) -> None:
        for email in ("a@x.com", "A@X.com", " a@x.COM"):
            resp = client.post("/v1/magic-links", json={"session_id": "s1", "email": email})
            assert resp.status_code == 201

        resp = client.post("/v1/magic-links", json={"session_id": "s1", "email": "a@x.com"})

        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "3600"
        body = resp.json()["error"]
        assert body["code"] == "rate_limit_exceeded"
        assert body["message"] == "Too many requests. Please try again in 60 minutes."
        assert body["details"]["limiter"] == "magic_link"

    def test_per_ip_limit(self, store, clock, magic_links) -> None:
        limiter = RateLimiterService.from_configs(
            store, build_rate_limit_configs(RateLimitSettings()), clock=clock
        )
        client = _client(limiter, magic_links)

        for i in range(3):
            resp = client.post("/v1/magic-links", json={"session_id": "s", "email": f"u{i}@x.com"})
            assert resp.status_code == 201

        resp = client.post("/v1/magic-links", json={"session_id": "s", "email": "u9@x.com"})

        assert resp.status_code == 429
        assert resp.json()["error"]["message"] == (
            "Too many requests from your location. Please try again in 10 minutes."
        )
        # the denied request never reached the per-email limiter
        assert store.get("rate_limits", "u9@x.com") is None

    def test_limiter_store_down_returns_503(self, failing_store, magic_links) -> None:
        limiter = RateLimiterService.from_configs(
            failing_store, build_rate_limit_configs(RateLimitSettings())
        )
        client = _client(limiter, magic_links)

        resp = client.post("/v1/magic-links", json={"session_id": "s1", "email": "a@x.com"})

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "rate_limiter_unavailable"
        assert resp.json()["error"]["message"] == (
            "Rate limiter unavailable - request blocked for security."
        )

    def test_limits_skipped_when_disabled(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "enabled", False)

        for _ in range(5):
            resp = client.post("/v1/magic-links", json={"session_id": "s1", "email": "a@x.com"})
            assert resp.status_code == 201

    @pytest.mark.parametrize(
        "payload",
        [
            {"session_id": "s1", "email": "not-an-email"},
            {"session_id": "", "email": "a@x.com"},
            {"email": "a@x.com"},
        ],
    )
    def test_invalid_body_rejected(self, client: TestClient, payload: dict) -> None:
        resp = client.post("/v1/magic-links", json=payload)

        assert resp.status_code == 422


class TestRedeemMagicLink:
    def _issue(self, client: TestClient) -> str:
        resp = client.post("/v1/magic-links", json={"session_id": "s1", "email": "a@x.com"})
        return _token_from(resp.json()["magic_link"])

    def test_redeem_then_replay(self, client: TestClient, expose_links) -> None:
        token = self._issue(client)

        first = client.post("/v1/magic-links/redeem", json={"token": token})
        second = client.post("/v1/magic-links/redeem", json={"token": token})

        assert first.status_code == 200
        assert first.json() == {"session_id": "s1", "email": "a@x.com"}
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "magic_link_already_used"

    def test_expired(self, client: TestClient, clock, expose_links) -> None:
        token = self._issue(client)
        clock.advance(DAY_MS)

        resp = client.post("/v1/magic-links/redeem", json={"token": token})

        assert resp.status_code == 410
        assert resp.json()["error"]["code"] == "magic_link_expired"

    def test_unknown_token(self, client: TestClient) -> None:
        resp = client.post("/v1/magic-links/redeem", json={"token": "f" * 64})

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "magic_link_not_found"

    def test_store_down_returns_503(self, failing_store, limiter) -> None:
        client = _client(limiter, MagicLinkService(failing_store, ttl_ms=DAY_MS))

        resp = client.post("/v1/magic-links/redeem", json={"token": "f" * 64})

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "store_unavailable"


class RecordingLinkSender(AbstractLinkSender):
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = fail

    def send(self, email: str, link: str) -> None:
        if self.fail:
            raise LinkDeliveryError(code="magic_link_delivery_failed", message="provider down")
        self.sent.append((email, link))


class TestLinkDelivery:
    def _client_with_sender(self, limiter, magic_links, sender) -> TestClient:
        client = _client(limiter, magic_links)
        client.app.dependency_overrides[get_link_sender] = lambda: sender
        return client

    def test_sent_link_redeems_the_session(self, limiter, magic_links) -> None:
        sender = RecordingLinkSender()
        client = self._client_with_sender(limiter, magic_links, sender)

        resp = client.post("/v1/magic-links", json={"session_id": "s1", "email": " A@X.com"})

        assert resp.status_code == 201
        assert resp.json()["magic_link"] is None
        [(email, link)] = sender.sent
        assert email == "a@x.com"
        assert link.startswith("https://chat.example.com/chat?token=")

        redeemed = client.post("/v1/magic-links/redeem", json={"token": _token_from(link)})
        assert redeemed.status_code == 200
        assert redeemed.json() == {"session_id": "s1", "email": "a@x.com"}

    def test_rate_limited_request_sends_nothing(self, limiter, magic_links) -> None:
        sender = RecordingLinkSender()
        client = self._client_with_sender(limiter, magic_links, sender)

        for _ in range(4):
            client.post("/v1/magic-links", json={"session_id": "s1", "email": "a@x.com"})

        assert len(sender.sent) == 3

    def test_delivery_failure_returns_502(self, limiter, magic_links) -> None:
        client = self._client_with_sender(limiter, magic_links, RecordingLinkSender(fail=True))

        resp = client.post("/v1/magic-links", json={"session_id": "s1", "email": "a@x.com"})

        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "magic_link_delivery_failed"
