"""Tests for BaseAPIClient - retries, Retry-After, circuit breaker."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from publication_search.core.async_utils import CircuitBreaker
from publication_search.core.exceptions import NetworkError, SourceUnavailableError
from publication_search.infrastructure.sources.base_client import BaseAPIClient


class DummyClient(BaseAPIClient):
    _service_name = "Dummy"

    @staticmethod
    def _backoff(attempt: int) -> float:
        return 0.0


def make_response(status: int = 200, json_data=None, headers: dict | None = None, text: str = ""):
    response = MagicMock()
    response.status_code = status
    response.headers = headers or {}
    response.json.return_value = json_data
    response.text = text
    response.reason_phrase = "Not Found" if status == 404 else "Error"
    if status >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "error", request=MagicMock(), response=response
        )
    return response


@pytest.fixture
def client():
    c = DummyClient(base_url="https://api.example.org/", min_interval=0)
    c._client = AsyncMock()
    return c


# ============================================================
# Requests
# ============================================================


class TestMakeRequest:
    async def test_success(self, client):
        client._client.get = AsyncMock(return_value=make_response(json_data={"ok": True}))
        assert await client._make_request("/items") == {"ok": True}
        assert client._client.get.call_args.args[0] == "https://api.example.org/items"

    async def test_text_response(self, client):
        client._client.get = AsyncMock(return_value=make_response(text="<feed/>"))
        assert await client._make_request("https://other.org/x", expect_json=False) == "<feed/>"

    async def test_retry_then_success(self, client):
        client._client.get = AsyncMock(
            side_effect=[make_response(503), make_response(json_data={"results": []})]
        )
        assert await client._make_request("/items") == {"results": []}
        assert client._client.get.call_count == 2

    async def test_retries_exhausted(self, client):
        client._client.get = AsyncMock(return_value=make_response(429, headers={"Retry-After": "0"}))

        with pytest.raises(SourceUnavailableError, match="HTTP 429"):
            await client._make_request("/items")

        assert client._client.get.call_count == BaseAPIClient._MAX_RETRIES + 1

    async def test_non_retryable_status(self, client):
        client._client.get = AsyncMock(return_value=make_response(404))

        with pytest.raises(SourceUnavailableError, match="HTTP 404 Not Found"):
            await client._make_request("/missing")

        assert client._client.get.call_count == 1

    async def test_transport_error_retried(self, client):
        client._client.get = AsyncMock(side_effect=httpx.ConnectError("DNS failed", request=MagicMock()))

        with pytest.raises(NetworkError, match="ConnectError"):
            await client._make_request("/items")

        assert client._client.get.call_count == BaseAPIClient._MAX_RETRIES + 1

    async def test_unparseable_body(self, client):
        response = make_response()
        response.json.side_effect = ValueError("Expecting value")
        client._client.get = AsyncMock(return_value=response)

        with pytest.raises(SourceUnavailableError, match="unparseable"):
            await client._make_request("/items")

    async def test_error_carries_source(self, client):
        client._client.get = AsyncMock(return_value=make_response(404))
        with pytest.raises(SourceUnavailableError) as exc_info:
            await client._make_request("/missing")
        assert exc_info.value.source == "Dummy"
        assert exc_info.value.retryable


# ============================================================
# Backoff and breaker
# ============================================================


class TestBackoffAndBreaker:
    def test_retry_after_header(self):
        client = BaseAPIClient()
        assert client._get_retry_after(make_response(429, headers={"Retry-After": "7"}), 0) == 7.0

    def test_retry_after_invalid_falls_back(self):
        client = BaseAPIClient()
        assert client._get_retry_after(make_response(429, headers={"Retry-After": "soon"}), 1) == 4.0

    def test_default_backoff(self):
        assert [BaseAPIClient._backoff(a) for a in range(3)] == [2.0, 4.0, 8.0]

    async def test_open_breaker_skips_request(self):
        client = DummyClient(min_interval=0, circuit_breaker=CircuitBreaker(failure_threshold=1))
        client._client = AsyncMock()
        client._client.get = AsyncMock(return_value=make_response(404))

        with pytest.raises(SourceUnavailableError):
            await client._make_request("https://api.example.org/a")
        with pytest.raises(SourceUnavailableError, match="circuit breaker open"):
            await client._make_request("https://api.example.org/b")

        assert client._client.get.call_count == 1

    async def test_repeated_throttling_opens_breaker(self):
        breaker = CircuitBreaker(failure_threshold=2)
        client = DummyClient(min_interval=0, circuit_breaker=breaker)
        client._client = AsyncMock()
        client._client.get = AsyncMock(return_value=make_response(503))

        with pytest.raises(SourceUnavailableError, match="circuit breaker open"):
            await client._make_request("https://api.example.org/a")

        assert client._client.get.call_count == 2
        assert breaker.state == "open"

    async def test_throttled_then_ok_keeps_breaker_closed(self):
        breaker = CircuitBreaker(failure_threshold=2)
        client = DummyClient(min_interval=0, circuit_breaker=breaker)
        client._client = AsyncMock()
        client._client.get = AsyncMock(side_effect=[make_response(429), make_response(json_data={"ok": True})])

        assert await client._make_request("https://api.example.org/a") == {"ok": True}
        assert breaker.state == "closed"

    async def test_expected_status_short_circuits(self):
        class LenientClient(DummyClient):
            def _handle_expected_status(self, response, url):
                return None if response.status_code == 404 else super()._handle_expected_status(response, url)

        client = LenientClient(min_interval=0)
        client._client = AsyncMock()
        client._client.get = AsyncMock(return_value=make_response(404))

        assert await client._make_request("https://api.example.org/missing") is None

    async def test_context_manager_closes(self):
        async with DummyClient() as client:
            client._client = AsyncMock()
        client._client.aclose.assert_awaited_once()
