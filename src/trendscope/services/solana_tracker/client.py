"""Solana Tracker data API client for the trending feed.

API Documentation: https://docs.solanatracker.io
Authentication: ``x-api-key`` header.
"""

from typing import Any

import structlog

from trendscope.config.settings import Settings
from trendscope.constants.feed import API_KEY_HEADER, TRENDING_PATH_TEMPLATE
from trendscope.core.exceptions import ExternalServiceError
from trendscope.models.feed import Timeframe
from trendscope.services.base import BaseAPIClient

log = structlog.get_logger(__name__)


class SolanaTrackerClient(BaseAPIClient):
    """Solana Tracker client for trending token lists.

    Inherits from BaseAPIClient to provide retry logic and circuit breaker
    protection. Records are returned raw; validation belongs to the feed
    normalizer.

    Example:
        client = SolanaTrackerClient.from_settings(get_settings())
        try:
            records = await client.fetch_trending(Timeframe.H1)
        finally:
            await client.close()
    """

    SERVICE_NAME = "solana_tracker"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 15.0,
        max_retries: int = 3,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_cooldown: int = 30,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers[API_KEY_HEADER] = api_key

        super().__init__(
            base_url=base_url,
            service=self.SERVICE_NAME,
            timeout=timeout,
            headers=headers,
            max_retries=max_retries,
            circuit_breaker_threshold=circuit_breaker_threshold,
            circuit_breaker_cooldown=circuit_breaker_cooldown,
        )
        log.info("solana_tracker_client_initialized", base_url=base_url)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SolanaTrackerClient":
        """Build a client from application settings."""
        return cls(
            base_url=settings.solana_tracker_base_url,
            api_key=settings.solana_tracker_api_key.get_secret_value(),
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            circuit_breaker_threshold=settings.circuit_breaker_threshold,
            circuit_breaker_cooldown=settings.circuit_breaker_cooldown,
        )

    async def fetch_trending(self, timeframe: Timeframe) -> list[dict[str, Any]]:
        """Fetch the trending token list for one window.

        Args:
            timeframe: Trending window.

        Returns:
            Raw upstream records in upstream order.

        Raises:
            ExternalServiceError: If the request fails after retries or the
                payload is not a list.
            CircuitBreakerOpenError: If the circuit breaker is open.
        """
        window = Timeframe(timeframe).value
        log.debug("fetching_trending_tokens", timeframe=window)

        response = await self.get(TRENDING_PATH_TEMPLATE.format(timeframe=window))
        try:
            data = response.json()
        except ValueError as e:
            raise ExternalServiceError(
                service=self.SERVICE_NAME,
                message=f"Invalid JSON in trending response: {e}",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, list):
            log.warning("trending_unexpected_format", data_type=type(data).__name__)
            raise ExternalServiceError(
                service=self.SERVICE_NAME,
                message=f"Expected a list of tokens, got {type(data).__name__}",
                status_code=response.status_code,
            )

        log.info("trending_tokens_fetched", timeframe=window, count=len(data))
        return data
