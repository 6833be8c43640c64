"""Projection of raw trending records into TokenEntry rows.

Ingestion is tolerant: a malformed or partial upstream record is dropped
and logged, never raised. Kept records are deduplicated by mint (earliest
wins) and ranked by arrival order after filtering.
"""

import math
from collections.abc import Iterable
from typing import Any

import structlog
from pydantic import ValidationError

from trendscope.models.feed import Timeframe, TokenEntry
from trendscope.services.solana_tracker.models import TrendingTokenRecord

log = structlog.get_logger(__name__)


def _finite_or_zero(value: float | None) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return float(value)


def normalize_record(raw: Any, timeframe: Timeframe, rank: int) -> TokenEntry | None:
    """Validate one raw record and project it to a TokenEntry.

    A record is valid when it carries a non-empty mint, a non-empty name
    and a finite, non-negative USD price on its first pool. Missing market
    cap or price change default to 0.

    Args:
        raw: Upstream record (normally a dict).
        timeframe: Window whose price change is read from ``events``.
        rank: Positional rank to assign.

    Returns:
        TokenEntry, or None when the record is rejected.
    """
    try:
        record = TrendingTokenRecord.model_validate(raw)
    except ValidationError as e:
        log.debug("token_record_dropped", reason="schema", errors=e.error_count())
        return None

    token = record.token
    if token is None or not (token.mint or "").strip() or not (token.name or "").strip():
        log.debug("token_record_dropped", reason="missing_identity")
        return None

    pool = record.primary_pool
    price = pool.price.usd if pool and pool.price else None
    if price is None or not math.isfinite(price) or price < 0:
        log.debug("token_record_dropped", reason="invalid_price", mint=token.mint)
        return None

    market_cap = pool.market_cap.usd if pool.market_cap else None
    event = record.events.get(Timeframe(timeframe).value)
    change = event.price_change_percentage if event else None

    return TokenEntry(
        mint=token.mint,
        name=token.name,
        symbol=token.symbol or "",
        image_url=token.image or None,
        price=float(price),
        market_cap=max(_finite_or_zero(market_cap), 0.0),
        price_change_percent=_finite_or_zero(change),
        rank=rank,
    )


def normalize_records(raw_records: Iterable[Any], timeframe: Timeframe) -> list[TokenEntry]:
    """Normalize a trending payload into a ranked, mint-unique entry list.

    Args:
        raw_records: Upstream records in arrival order.
        timeframe: Window the payload was fetched for.

    Returns:
        Entries ranked ``1..n`` in arrival order after filtering and
        deduplication.
    """
    entries: list[TokenEntry] = []
    seen: set[str] = set()
    total = 0
    duplicates = 0

    for raw in raw_records:
        total += 1
        entry = normalize_record(raw, timeframe, rank=len(entries) + 1)
        if entry is None:
            continue
        if entry.mint in seen:
            duplicates += 1
            continue
        seen.add(entry.mint)
        entries.append(entry)

    log.debug(
        "trending_records_normalized",
        timeframe=Timeframe(timeframe).value,
        total=total,
        kept=len(entries),
        duplicates=duplicates,
        dropped=total - len(entries) - duplicates,
    )
    return entries
