"""Merge of an externally computed AI ranking into trending entries."""

from collections.abc import Iterable, Mapping

import structlog

from trendscope.models.feed import TokenEntry

log = structlog.get_logger(__name__)


def _valid_ranks(ranks: Mapping[str, int]) -> dict[str, int]:
    valid: dict[str, int] = {}
    for symbol, rank in ranks.items():
        if isinstance(rank, bool) or not isinstance(rank, int) or rank < 1:
            log.warning("ai_rank_ignored", symbol=symbol, rank=rank)
            continue
        valid[symbol] = rank
    return valid


def merge_ai_ranks(entries: Iterable[TokenEntry], ranks: Mapping[str, int]) -> list[TokenEntry]:
    """Set ``ai_rank`` on each entry from a symbol -> rank mapping.

    Lookup is by exact, case-sensitive symbol. Entries whose symbol is not
    in the mapping end up with no ``ai_rank``. The input entries are never
    modified; changed rows are copies. Applying the same mapping twice
    gives the same result.

    Args:
        entries: Current entries for one timeframe.
        ranks: AI ranking, symbol to 1-based position.

    Returns:
        New entry list in the input order.
    """
    valid = _valid_ranks(ranks)
    merged: list[TokenEntry] = []

    for entry in entries:
        ai_rank = valid.get(entry.symbol)
        if entry.ai_rank == ai_rank:
            merged.append(entry)
        else:
            merged.append(entry.model_copy(update={"ai_rank": ai_rank}))

    return merged
