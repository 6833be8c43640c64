"""TrendScope exception hierarchy.

This module defines the base exception class and specialized exceptions
for transport failures and trending feed coordination.
"""


class TrendScopeError(Exception):
    """Base exception for all TrendScope errors.

    All custom exceptions in TrendScope should inherit from this class
    to enable consistent error handling and logging.
    """

    pass


class ConfigurationError(TrendScopeError):
    """Raised when configuration is invalid or missing.

    Example:
        raise ConfigurationError("Missing required env var: SOLANA_TRACKER_API_KEY")
    """

    pass


class ExternalServiceError(TrendScopeError):
    """Raised when an external service call fails.

    Use this for API errors from Solana Tracker, Anthropic, etc.

    Attributes:
        service: Name of the external service that failed.
        status_code: HTTP status code if available, None otherwise.

    Example:
        raise ExternalServiceError(service="solana_tracker", message="Rate limited", status_code=429)
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class CircuitBreakerOpenError(TrendScopeError):
    """Raised when circuit breaker is open.

    Use this when an API client's circuit breaker has tripped due to
    consecutive failures and requests are being blocked.
    """

    pass


class FetchCancelledError(TrendScopeError):
    """Raised when a feed request was cancelled or superseded.

    Never surfaced to the user: a newer request owns the feed, so the
    result of this one must simply be discarded.

    Attributes:
        timeframe: Timeframe the cancelled request was issued for.
    """

    def __init__(self, timeframe: str, message: str = "request superseded") -> None:
        self.timeframe = timeframe
        super().__init__(f"{timeframe}: {message}")


class FetchFailedError(TrendScopeError):
    """Raised when a trending feed fetch fails.

    Wraps transport and upstream errors. The controller surfaces it as the
    error state only when no cached entries exist for the timeframe.

    Attributes:
        timeframe: Timeframe the failed request was issued for.
    """

    def __init__(self, timeframe: str, message: str) -> None:
        self.timeframe = timeframe
        super().__init__(f"{timeframe}: {message}")


class FeedStateError(TrendScopeError):
    """Raised when a controller operation is not legal in the current state.

    Example:
        raise FeedStateError("AI ranking requires a ready feed (status=loading)")
    """

    pass
