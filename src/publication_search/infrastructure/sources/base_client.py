"""
Base API Client - shared HTTP request pattern for the REST-backed sources.

Provides:
- Retry on 429/502/503/504 with Retry-After support
- Exponential backoff on transport errors (timeouts, resets)
- Minimum interval between requests
- Circuit breaker for fault tolerance

When the retry budget is exhausted the client raises
``SourceUnavailableError`` (``NetworkError`` when no response ever arrived);
the adapter template turns that into an empty, failed ``SourceResult``
so one broken source never fails a search.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
from typing_extensions import Self

from publication_search.core.async_utils import CircuitBreaker
from publication_search.core.exceptions import ErrorContext, NetworkError, RateLimitError, SourceUnavailableError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 502, 503, 504})


class _RetryableStatus(Exception):
    """A 429/5xx response, surfaced as an exception for the circuit breaker."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class BaseAPIClient:
    """
    Base class for external HTTP API clients.

    Subclasses set ``_service_name`` and may override:
    - ``_handle_expected_status()``: short-circuit service-specific codes
    - ``_get_retry_after()``: service-specific backoff schedule
    - ``_parse_response()``: custom body extraction

    Example:
        class MyClient(BaseAPIClient):
            _service_name = "MyAPI"

            def __init__(self):
                super().__init__(base_url="https://api.example.com", min_interval=0.1)

            async def get_item(self, item_id: str) -> dict:
                return await self._make_request(f"/items/{item_id}")
    """

    _service_name: str = "API"
    _MAX_RETRIES: int = 3

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        min_interval: float = 0.1,
        headers: dict[str, str] | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API (optional, can pass full URLs)
            timeout: Per-request timeout in seconds
            min_interval: Minimum seconds between requests (rate limiting)
            headers: Default headers for all requests
            circuit_breaker: Optional circuit breaker; a default one is
                             created when omitted (threshold=10, recovery=60s)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._min_interval = min_interval
        self._last_request_time = 0.0
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers=headers or {},
            follow_redirects=True,
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=10, recovery_timeout=60.0)

    async def _rate_limit(self) -> None:
        """Enforce minimum interval between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_interval:
            await asyncio.sleep(self._min_interval - elapsed)
        self._last_request_time = time.time()

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}{url}"

    async def _make_request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        expect_json: bool = True,
    ) -> Any:
        """
        GET ``url`` with retry and circuit-breaker protection.

        Args:
            url: Full URL or path (appended to base_url)
            params: Query string parameters
            headers: Additional headers for this request
            expect_json: Parse the body as JSON when True, else return text

        Returns:
            Parsed JSON, response text, or a value from
            ``_handle_expected_status``

        Raises:
            SourceUnavailableError: retries exhausted, non-retryable HTTP
                error, or circuit breaker open
            NetworkError: transport failures on every attempt
        """
        full_url = self._build_url(url)
        last_error = "no attempt made"
        transport_failed = False

        for attempt in range(self._MAX_RETRIES + 1):
            await self._rate_limit()
            try:
                async with self._circuit_breaker:
                    response = await self._client.get(full_url, params=params, headers=headers or {})

                    expected = self._handle_expected_status(response, full_url)
                    if expected is not _CONTINUE:
                        return expected

                    # Raised inside the breaker so throttling counts as a failure
                    if response.status_code in RETRYABLE_STATUS:
                        raise _RetryableStatus(response)

                    response.raise_for_status()
                    return self._parse_response(response, expect_json)

            except _RetryableStatus as e:
                last_error = f"HTTP {e.response.status_code}"
                transport_failed = False
                if attempt < self._MAX_RETRIES:
                    delay = self._get_retry_after(e.response, attempt)
                    logger.warning(
                        f"{self._service_name}: HTTP {e.response.status_code}, "
                        f"retry {attempt + 1}/{self._MAX_RETRIES} in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                break
            except httpx.HTTPStatusError as e:
                raise SourceUnavailableError(
                    f"HTTP {e.response.status_code} {e.response.reason_phrase}",
                    source=self._service_name,
                ) from e
            except httpx.RequestError as e:
                last_error = f"{type(e).__name__}: {e}"
                transport_failed = True
                if attempt < self._MAX_RETRIES:
                    logger.warning(f"{self._service_name} request error (attempt {attempt + 1}): {e}")
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                break
            except RateLimitError as e:
                logger.warning(f"{self._service_name}: Circuit breaker open, skipping request")
                raise SourceUnavailableError("circuit breaker open", source=self._service_name) from e
            except ValueError as e:
                raise SourceUnavailableError(f"unparseable response: {e}", source=self._service_name) from e

        logger.warning(f"{self._service_name}: giving up after {self._MAX_RETRIES + 1} attempts ({last_error})")
        if transport_failed:
            raise NetworkError(
                f"{self._service_name}: {last_error}",
                context=ErrorContext(source=self._service_name, suggestion="Check connectivity to the upstream API"),
            )
        raise SourceUnavailableError(f"retries exhausted ({last_error})", source=self._service_name)

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """
        Handle expected non-200 status codes that shouldn't trigger retry.

        Return a value to short-circuit, or the sentinel ``_CONTINUE`` to
        continue normal processing. Default: no special handling.
        """
        return _CONTINUE

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        """Parse response body. Override for custom extraction logic."""
        if expect_json:
            return response.json()
        return response.text

    @staticmethod
    def _backoff(attempt: int) -> float:
        return float(2 ** (attempt + 1))

    def _get_retry_after(self, response: httpx.Response, attempt: int) -> float:
        """Retry-After header when present, else exponential backoff."""
        try:
            return float(response.headers.get("Retry-After", self._backoff(attempt)))
        except (ValueError, TypeError):
            return self._backoff(attempt)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


# Sentinel object to indicate "continue normal processing" from _handle_expected_status
_CONTINUE = object()
