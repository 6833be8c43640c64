"""Pydantic models for Solana Tracker trending responses.

Only the fields the trending feed consumes are modelled; everything else
in the upstream payload is ignored. All fields are optional so that a
partial record parses and is judged by the normalizer instead.
"""

from pydantic import BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TokenInfo(_Lenient):
    """Token identity block.

    Attributes:
        mint: Token mint address.
        name: Token name.
        symbol: Ticker symbol.
        image: Icon URL.
    """

    mint: str | None = None
    name: str | None = None
    symbol: str | None = None
    image: str | None = None


class UsdValue(_Lenient):
    """A ``{"usd": ...}`` wrapper used for prices and market caps."""

    usd: float | None = None


class PoolInfo(_Lenient):
    """Liquidity pool the price is quoted from.

    Attributes:
        price: Pool price in USD.
        market_cap: Market capitalization in USD.
    """

    price: UsdValue | None = None
    market_cap: UsdValue | None = Field(default=None, alias="marketCap")


class PriceEvent(_Lenient):
    """Price movement over one window."""

    price_change_percentage: float | None = Field(default=None, alias="priceChangePercentage")


class TrendingTokenRecord(_Lenient):
    """One row of ``GET /tokens/trending/{timeframe}``.

    Attributes:
        token: Token identity.
        pools: Pools trading the token; the first one is authoritative.
        events: Price change keyed by window (``"5m"``, ``"1h"`` ...).
    """

    token: TokenInfo | None = None
    pools: list[PoolInfo] = Field(default_factory=list)
    events: dict[str, PriceEvent | None] = Field(default_factory=dict)

    @property
    def primary_pool(self) -> PoolInfo | None:
        """First pool, used for price and market cap."""
        return self.pools[0] if self.pools else None
