"""Trending feed constants."""

from typing import Final

# Solana Tracker data API
SOLANA_TRACKER_BASE_URL: Final[str] = "https://data.solanatracker.io"
TRENDING_PATH_TEMPLATE: Final[str] = "/tokens/trending/{timeframe}"
API_KEY_HEADER: Final[str] = "x-api-key"

# HTTP client defaults
REQUEST_TIMEOUT_SECONDS: Final[float] = 15.0
MAX_RETRIES: Final[int] = 3

# Anthropic Messages API (AI ranking)
ANTHROPIC_API_URL: Final[str] = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION: Final[str] = "2023-06-01"
ANTHROPIC_MAX_TOKENS: Final[int] = 1024
AI_RANKING_TIMEOUT_SECONDS: Final[float] = 60.0

# Market cap band the ranking prompt steers towards
PREFERRED_MARKET_CAP_MIN_USD: Final[int] = 50_000
PREFERRED_MARKET_CAP_MAX_USD: Final[int] = 25_000_000
