"""Base API client with circuit breaker and retry logic.

This module provides:
- CircuitState enum for circuit breaker states
- CircuitBreaker dataclass tracking consecutive upstream failures
- BaseAPIClient class for making resilient HTTP requests
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
import structlog

from trendscope.core.exceptions import CircuitBreakerOpenError, ExternalServiceError

log = structlog.get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation, requests allowed
    OPEN = "open"  # Circuit tripped, requests blocked
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitBreaker:
    """Circuit breaker for protecting against cascading failures.

    Opens after ``failure_threshold`` consecutive failures. Once
    ``cooldown_seconds`` have passed a single trial request is let through
    (half-open); its outcome closes or reopens the circuit.

    Attributes:
        service: Service name used in log events.
        failure_threshold: Consecutive failures before opening circuit.
        cooldown_seconds: Seconds to wait before the half-open trial request.
    """

    service: str = "upstream"
    failure_threshold: int = 5
    cooldown_seconds: int = 30
    failure_count: int = field(default=0, init=False)
    opened_at: float | None = field(default=None, init=False)
    state: CircuitState = field(default=CircuitState.CLOSED, init=False)

    def record_success(self) -> None:
        """Close the circuit and reset the failure count."""
        if self.state != CircuitState.CLOSED:
            log.info("circuit_breaker_closed", service=self.service)
        self.failure_count = 0
        self.opened_at = None
        self.state = CircuitState.CLOSED

    def record_failure(self) -> None:
        """Count a failure, opening the circuit when the threshold is hit."""
        self.failure_count += 1

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN
            self.opened_at = time.monotonic()
            log.warning(
                "circuit_breaker_opened",
                service=self.service,
                failure_count=self.failure_count,
                threshold=self.failure_threshold,
            )
            return

        log.debug(
            "circuit_breaker_failure",
            service=self.service,
            failure_count=self.failure_count,
            threshold=self.failure_threshold,
        )

    def seconds_until_trial(self) -> float:
        """Seconds remaining before the half-open trial request is allowed."""
        if self.state != CircuitState.OPEN or self.opened_at is None:
            return 0.0
        remaining = self.cooldown_seconds - (time.monotonic() - self.opened_at)
        return max(0.0, remaining)

    def can_execute(self) -> bool:
        """Check if a request can be executed.

        An open circuit whose cooldown has elapsed moves to HALF_OPEN.
        """
        if self.state != CircuitState.OPEN:
            return True

        if self.seconds_until_trial() > 0:
            return False

        self.state = CircuitState.HALF_OPEN
        log.info("circuit_breaker_half_open", service=self.service)
        return True

    def raise_if_open(self) -> None:
        """Raise CircuitBreakerOpenError if requests are currently blocked."""
        if not self.can_execute():
            raise CircuitBreakerOpenError(
                f"{self.service}: circuit breaker is open, next trial in "
                f"{self.seconds_until_trial():.1f} seconds"
            )


class BaseAPIClient:
    """Base API client with retry and circuit breaker support.

    Provides resilient HTTP requests with:
    - Lazy httpx client initialization (created on first request)
    - Retry with exponential backoff on 429, 5xx and connection errors
    - Circuit breaker protection
    - Explicit resource cleanup via ``close()``

    Cancellation (``asyncio.CancelledError``) is never retried or counted as
    a failure: it propagates straight to the caller.

    Example:
        client = BaseAPIClient(
            base_url="https://api.example.com",
            service="example",
        )
        response = await client.get("/endpoint")
        await client.close()
    """

    def __init__(
        self,
        base_url: str,
        service: str = "upstream",
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        max_retries: int = 3,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_cooldown: int = 30,
    ) -> None:
        """Initialize BaseAPIClient.

        Args:
            base_url: Base URL for all requests.
            service: Service name used in errors and log events.
            timeout: Request timeout in seconds (default: 30).
            headers: Default headers for all requests.
            max_retries: Attempts per request (default: 3).
            circuit_breaker_threshold: Failures before circuit opens (default: 5).
            circuit_breaker_cooldown: Seconds before half-open (default: 30).
        """
        self.base_url = base_url
        self.service = service
        self.timeout = timeout
        self.headers = headers or {}
        self.max_retries = max_retries
        self._client: httpx.AsyncClient | None = None
        self._circuit_breaker = CircuitBreaker(
            service=service,
            failure_threshold=circuit_breaker_threshold,
            cooldown_seconds=circuit_breaker_cooldown,
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Circuit breaker guarding this client."""
        return self._circuit_breaker

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
            )
            log.debug("httpx_client_created", service=self.service, base_url=self.base_url)
        return self._client

    async def close(self) -> None:
        """Close the httpx client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.debug("httpx_client_closed", service=self.service)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Make an HTTP request with retry and circuit breaker.

        Args:
            method: HTTP method.
            path: Request path (appended to base_url).
            **kwargs: Additional arguments passed to httpx.

        Returns:
            httpx.Response on success.

        Raises:
            CircuitBreakerOpenError: If circuit breaker is open.
            ExternalServiceError: On a 4xx response or once retries are exhausted.
        """
        self._circuit_breaker.raise_if_open()

        client = self._get_client()
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                self._circuit_breaker.record_success()
                return response

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code

                # 4xx errors (except 429) - caller error, no retry
                if 400 <= status_code < 500 and status_code != 429:
                    log.warning(
                        "request_client_error",
                        service=self.service,
                        method=method,
                        path=path,
                        status_code=status_code,
                    )
                    raise ExternalServiceError(
                        service=self.service,
                        message=str(e),
                        status_code=status_code,
                    ) from e

                self._circuit_breaker.record_failure()
                last_error = e
                log.warning(
                    "request_server_error",
                    service=self.service,
                    path=path,
                    status_code=status_code,
                    attempt=attempt,
                )

            except httpx.RequestError as e:
                self._circuit_breaker.record_failure()
                last_error = e
                log.warning(
                    "request_connection_error",
                    service=self.service,
                    path=path,
                    error=str(e),
                    attempt=attempt,
                )

            if attempt < self.max_retries:
                backoff = min(2 ** (attempt - 1), 4)
                log.debug("request_retry_backoff", service=self.service, seconds=backoff)
                await asyncio.sleep(backoff)

        log.error(
            "request_max_retries_exceeded",
            service=self.service,
            method=method,
            path=path,
            max_retries=self.max_retries,
        )
        raise ExternalServiceError(
            service=self.service,
            message=f"Max retries ({self.max_retries}) exceeded: {last_error}",
        )

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Make a GET request."""
        return await self._request("GET", path, **kwargs)
