"""Tests for the FastAPI rate limiting dependencies."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app.core.config import RateLimitSettings, settings
from app.core.dependencies import get_rate_limiter_service
from app.core.errors import RateLimitExceededError, ValidationAppError
from app.core.exception_handlers import setup_exception_handlers
from app.core.rate_limit import client_ip, enforce_chat_rate_limit
from app.services.rate_limiter_service import RateLimiterService, build_rate_limit_configs


@pytest.fixture
def limiter(store, clock) -> RateLimiterService:
    cfg = RateLimitSettings(chat_max_attempts=2)
    return RateLimiterService.from_configs(store, build_rate_limit_configs(cfg), clock=clock)


@pytest.fixture
def chat_client(limiter) -> TestClient:
    app = FastAPI()
    setup_exception_handlers(app)

    @app.post("/chat", dependencies=[Depends(enforce_chat_rate_limit)])
    def chat() -> dict:
        return {"reply": "hello"}

    app.dependency_overrides[get_rate_limiter_service] = lambda: limiter
    return TestClient(app)


class TestChatRateLimit:
    def test_limits_per_session(self, chat_client: TestClient) -> None:
        headers = {"X-Session-ID": "session-1"}

        assert chat_client.post("/chat", headers=headers).status_code == 200
        assert chat_client.post("/chat", headers=headers).status_code == 200

        resp = chat_client.post("/chat", headers=headers)

        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "300"
        assert resp.json()["error"]["message"] == (
            "Too many requests. Please wait 5 minutes before continuing."
        )

        other = chat_client.post("/chat", headers={"X-Session-ID": "session-2"})
        assert other.status_code == 200

    def test_block_expires(self, chat_client: TestClient, clock) -> None:
        headers = {"X-Session-ID": "session-1"}
        for _ in range(3):
            chat_client.post("/chat", headers=headers)

        clock.advance(5 * 60 * 1000)

        assert chat_client.post("/chat", headers=headers).status_code == 200

    def test_missing_session_header(self, chat_client: TestClient) -> None:
        resp = chat_client.post("/chat")

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "session_id_required"

    def test_direct_call_raises(self, limiter: RateLimiterService) -> None:
        enforce_chat_rate_limit(limiter, x_session_id="s")
        enforce_chat_rate_limit(limiter, x_session_id="s")

        with pytest.raises(RateLimitExceededError):
            enforce_chat_rate_limit(limiter, x_session_id="s")

        with pytest.raises(ValidationAppError):
            enforce_chat_rate_limit(limiter, x_session_id=None)

    def test_disabled(self, limiter: RateLimiterService, store, monkeypatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "enabled", False)

        for _ in range(5):
            enforce_chat_rate_limit(limiter, x_session_id="s")

        assert store.get("rate_limits_chat", "s") is None


class TestClientIp:
    def _request(self, host: str | None, forwarded: str | None = None) -> Mock:
        request = Mock()
        request.client = Mock(host=host) if host else None
        request.headers = {"X-Forwarded-For": forwarded} if forwarded else {}
        return request

    def test_uses_socket_peer_by_default(self) -> None:
        request = self._request("10.0.0.5", forwarded="203.0.113.7")

        assert client_ip(request) == "10.0.0.5"

    def test_uses_first_forwarded_hop_when_trusted(self, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "trust_forwarded_for", True)
        request = self._request("10.0.0.5", forwarded="203.0.113.7, 10.0.0.1")

        assert client_ip(request) == "203.0.113.7"

    def test_trusted_without_header_falls_back(self, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "trust_forwarded_for", True)

        assert client_ip(self._request("10.0.0.5")) == "10.0.0.5"

    def test_unknown_client(self) -> None:
        assert client_ip(self._request(None)) == "unknown"
