"""AI ranking of trending tokens via the Anthropic Messages API.

The model is asked to order the displayed tokens from most to least
promising as a numbered list. The reply is turned into the
``symbol -> position`` mapping the feed controller merges.
"""

import json
import re
from collections.abc import Sequence
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from trendscope.config.settings import Settings
from trendscope.constants.feed import (
    AI_RANKING_TIMEOUT_SECONDS,
    ANTHROPIC_MAX_TOKENS,
    ANTHROPIC_VERSION,
    MAX_RETRIES,
    PREFERRED_MARKET_CAP_MAX_USD,
    PREFERRED_MARKET_CAP_MIN_USD,
)
from trendscope.core.exceptions import ConfigurationError, ExternalServiceError
from trendscope.models.feed import TokenEntry

logger = structlog.get_logger(__name__)

_RANKED_LINE = re.compile(r"^\s*\d+\.\s+([^(]+)")

PROMPT_TEMPLATE = """Analyze these tokens and rank them from most to least promising based on their metrics.
Consider price action, market cap, recent performance, humor, and uniqueness.
Format your response as a numbered list where each entry starts with the token name followed by its mint address in parentheses.
Include specific performance metrics and reasoning for each token.
Prefer coins with market caps below {cap_max} or above {cap_min} as this is the range where they could make large % gains if they are high quality.

Example format:
1. Pepe Token (TokenMintAddressHere): two to three sentence analysis here...
2. Doge Token (TokenMintAddressHere): two to three sentence analysis here...

Tokens data: {tokens}"""


def build_ranking_prompt(entries: Sequence[TokenEntry]) -> str:
    """Build the ranking prompt for the given entries."""
    tokens = [
        {
            "name": entry.name,
            "symbol": entry.symbol,
            "mint": entry.mint,
            "price": entry.price,
            "marketCap": entry.market_cap,
            "priceChange": entry.price_change_percent,
        }
        for entry in entries
    ]
    return PROMPT_TEMPLATE.format(
        cap_min=f"{PREFERRED_MARKET_CAP_MIN_USD // 1000}K",
        cap_max=f"{PREFERRED_MARKET_CAP_MAX_USD // 1_000_000}M",
        tokens=json.dumps(tokens),
    )


def parse_ranking_response(text: str, entries: Sequence[TokenEntry]) -> dict[str, int]:
    """Turn a numbered-list reply into a symbol -> position mapping.

    Each ``N. <name or symbol> (...)`` line is matched case-insensitively
    against the entries' names, then symbols. Lines that match no entry are
    skipped. A token mentioned twice keeps its first position; a later
    repeat never overrides it. Positions are consecutive from 1 in reply
    order, with no gaps.

    Args:
        text: Model reply.
        entries: Entries the ranking was requested for.

    Returns:
        Mapping from entry symbol to AI rank.
    """
    by_name = {entry.name.casefold(): entry.symbol for entry in reversed(entries)}
    by_symbol = {entry.symbol.casefold(): entry.symbol for entry in reversed(entries) if entry.symbol}

    ranks: dict[str, int] = {}
    for line in text.splitlines():
        match = _RANKED_LINE.match(line)
        if not match:
            continue

        label = match.group(1).strip().strip("*").strip().casefold()
        symbol = by_name.get(label) or by_symbol.get(label)
        if not symbol or symbol in ranks:
            continue
        ranks[symbol] = len(ranks) + 1

    logger.debug("ai_ranking_parsed", ranked=len(ranks), candidates=len(entries))
    return ranks


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500
    return False


class AiRankingClient:
    """Produces AI rankings for the trending feed."""

    SERVICE_NAME = "anthropic"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        max_tokens: int = ANTHROPIC_MAX_TOKENS,
        timeout: float = AI_RANKING_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize AI ranking client.

        Args:
            api_url: Messages API endpoint.
            api_key: Anthropic API key.
            model: Model identifier.
            max_tokens: Reply token budget.
            timeout: Request timeout in seconds.
        """
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AiRankingClient":
        """Build a client from application settings."""
        return cls(
            api_url=settings.anthropic_api_url,
            api_key=settings.anthropic_api_key.get_secret_value(),
            model=settings.anthropic_model,
            max_tokens=settings.anthropic_max_tokens,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={
                    "Content-Type": "application/json",
                    "x-api-key": self.api_key,
                    "anthropic-version": ANTHROPIC_VERSION,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @retry(
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
    async def _create_message(self, prompt: str) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.post(
            self.api_url,
            json={
                "model": self.model,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
        )
        response.raise_for_status()
        return response.json()

    async def rank_tokens(self, entries: Sequence[TokenEntry]) -> dict[str, int]:
        """Rank entries from most to least promising.

        Args:
            entries: Entries to rank, usually a RankingTicket snapshot.

        Returns:
            Symbol -> 1-based rank for every entry the reply mentions.

        Raises:
            ConfigurationError: If no API key is configured.
            ExternalServiceError: If the API call fails.
        """
        if not self.api_key:
            raise ConfigurationError("Missing required env var: ANTHROPIC_API_KEY")
        if not entries:
            return {}

        try:
            data = await self._create_message(build_ranking_prompt(entries))
        except httpx.HTTPStatusError as e:
            logger.warning("ai_ranking_http_error", status=e.response.status_code)
            raise ExternalServiceError(
                service=self.SERVICE_NAME,
                message="Failed to get AI analysis",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("ai_ranking_request_failed", error=str(e))
            raise ExternalServiceError(
                service=self.SERVICE_NAME,
                message=f"Failed to get AI analysis: {e}",
            ) from e

        if not isinstance(data, dict):
            raise ExternalServiceError(
                service=self.SERVICE_NAME,
                message=f"Unexpected reply format: {type(data).__name__}",
            )

        text = "\n".join(
            block.get("text", "")
            for block in data.get("content", [])
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )
        ranks = parse_ranking_response(text, entries)
        logger.info("ai_ranking_completed", tokens=len(entries), ranked=len(ranks))
        return ranks
