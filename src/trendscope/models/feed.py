"""Trending feed domain models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Timeframe(str, Enum):
    """Trending window supported by the upstream feed."""

    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H6 = "6h"
    H12 = "12h"
    H24 = "24h"

    @property
    def label(self) -> str:
        """Button label shown in the dashboard (e.g. ``5M``)."""
        return self.value.upper()


class SortKey(str, Enum):
    """Columns the trending table can be ordered by."""

    RANK = "rank"
    NAME = "name"
    PRICE = "price"
    MARKET_CAP = "market_cap"
    PRICE_CHANGE_PERCENT = "price_change_percent"
    AI_RANK = "ai_rank"


class SortDirection(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class RankDirection(str, Enum):
    """Whether an AI ranking lists the most or least promising tokens first."""

    BEST = "best"
    WORST = "worst"


class FeedStatus(str, Enum):
    """Lifecycle status of the trending feed."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class TokenEntry(BaseModel):
    """Canonical trending token row.

    Immutable for a fetch cycle. ``rank`` is the upstream positional rank
    assigned at normalization and is never touched by sorting.

    Attributes:
        mint: Token mint address (unique within a normalized set).
        name: Token name.
        symbol: Ticker symbol, the key AI rankings are merged on.
        image_url: Token icon URL, if any.
        price: Price in USD.
        market_cap: Market capitalization in USD.
        price_change_percent: Signed price change over the timeframe.
        rank: 1-based position in the upstream order.
        ai_rank: 1-based AI ranking position, None until merged.
    """

    model_config = ConfigDict(frozen=True)

    mint: str
    name: str
    symbol: str = ""
    image_url: str | None = None
    price: float = 0.0
    market_cap: float = 0.0
    price_change_percent: float = 0.0
    rank: int = Field(..., ge=1)
    ai_rank: int | None = Field(default=None, ge=1)

    @field_validator("price", "market_cap")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        """Reject negative USD amounts. NaN passes and sorts as 0."""
        if v < 0:
            raise ValueError("must be greater than or equal to 0")
        return v


class SortSpec(BaseModel):
    """Display ordering of the trending table."""

    model_config = ConfigDict(frozen=True)

    key: SortKey = SortKey.RANK
    direction: SortDirection = SortDirection.ASC

    def toggled(self, key: SortKey) -> "SortSpec":
        """Return the ordering produced by clicking the ``key`` column header.

        Clicking the active column flips its direction; any other column
        starts ascending.
        """
        if key == self.key and self.direction == SortDirection.ASC:
            return SortSpec(key=key, direction=SortDirection.DESC)
        return SortSpec(key=key, direction=SortDirection.ASC)


class RankingTicket(BaseModel):
    """Snapshot an AI ranking is computed against.

    The ranking may only be merged back while the controller still shows
    the same timeframe selection (``epoch``).
    """

    model_config = ConfigDict(frozen=True)

    timeframe: Timeframe
    epoch: int
    entries: tuple[TokenEntry, ...] = ()


class FeedState(BaseModel):
    """Read-only view of the feed handed to the UI layer."""

    model_config = ConfigDict(frozen=True)

    status: FeedStatus = FeedStatus.IDLE
    timeframe: Timeframe | None = None
    entries: tuple[TokenEntry, ...] = ()
    sort: SortSpec = SortSpec()
    error: str | None = None
    notice: str | None = None
    is_stale: bool = False
    ai_direction: RankDirection | None = None

    @property
    def is_loading(self) -> bool:
        """True while a fetch for the active timeframe is outstanding."""
        return self.status == FeedStatus.LOADING
