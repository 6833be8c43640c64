"""Display ordering of trending entries.

All orderings are stable. Missing or NaN numeric values count as 0. Under
``ai_rank`` entries without an AI rank always go last, whatever the
direction, in their pre-sort order.
"""

import math
from collections.abc import Callable, Iterable
from typing import Any

from trendscope.models.feed import SortDirection, SortKey, SortSpec, TokenEntry

_NUMERIC_FIELDS: dict[SortKey, str] = {
    SortKey.RANK: "rank",
    SortKey.PRICE: "price",
    SortKey.MARKET_CAP: "market_cap",
    SortKey.PRICE_CHANGE_PERCENT: "price_change_percent",
}


def _numeric(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(number) else number


def sort_key(key: SortKey) -> Callable[[TokenEntry], Any]:
    """Key function for ``sorted`` for one column."""
    key = SortKey(key)
    if key == SortKey.NAME:
        return lambda entry: entry.name.casefold()
    if key == SortKey.AI_RANK:
        return lambda entry: entry.ai_rank
    field = _NUMERIC_FIELDS[key]
    return lambda entry: _numeric(getattr(entry, field))


def sort_entries(entries: Iterable[TokenEntry], spec: SortSpec | None = None) -> list[TokenEntry]:
    """Return entries in display order for ``spec``.

    Args:
        entries: Entries in their current order.
        spec: Column and direction; defaults to upstream rank ascending.

    Returns:
        New sorted list. Entry fields, including ``rank``, are untouched.
    """
    spec = spec or SortSpec()
    reverse = spec.direction == SortDirection.DESC

    if spec.key == SortKey.AI_RANK:
        ranked: list[TokenEntry] = []
        unranked: list[TokenEntry] = []
        for entry in entries:
            (unranked if entry.ai_rank is None else ranked).append(entry)
        return sorted(ranked, key=sort_key(SortKey.AI_RANK), reverse=reverse) + unranked

    return sorted(entries, key=sort_key(spec.key), reverse=reverse)
