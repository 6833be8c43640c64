"""Per-timeframe cache of normalized trending entries."""

from collections.abc import Iterable

import structlog

from trendscope.models.feed import Timeframe, TokenEntry

logger = structlog.get_logger(__name__)


class TimeframeCache:
    """Session-lifetime map from timeframe to its last good entry list.

    Lists are stored as tuples and replaced wholesale, so a reader always
    sees a complete old or new list. All access happens on the event loop
    thread without awaiting, which makes ``get``/``put`` atomic without a
    lock. Entries are never evicted: there is at most one per timeframe.
    """

    def __init__(self) -> None:
        self._entries: dict[Timeframe, tuple[TokenEntry, ...]] = {}
        self._hits = 0
        self._misses = 0

    def get(self, timeframe: Timeframe) -> tuple[TokenEntry, ...] | None:
        """Return the stored entries for a timeframe.

        Args:
            timeframe: Trending window.

        Returns:
            The last stored entries, or None if never fetched.
        """
        entries = self._entries.get(Timeframe(timeframe))
        if entries is None:
            self._misses += 1
        else:
            self._hits += 1
        return entries

    def put(self, timeframe: Timeframe, entries: Iterable[TokenEntry]) -> None:
        """Replace the stored entries for a timeframe.

        Args:
            timeframe: Trending window.
            entries: Complete new entry list.
        """
        snapshot = tuple(entries)
        self._entries[Timeframe(timeframe)] = snapshot
        logger.debug("timeframe_cache_put", timeframe=Timeframe(timeframe).value, size=len(snapshot))

    def __contains__(self, timeframe: object) -> bool:
        return timeframe in self._entries

    def timeframes(self) -> list[Timeframe]:
        """Timeframes with stored entries, in insertion order."""
        return list(self._entries)

    def clear(self) -> None:
        """Drop every stored list and reset statistics."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def get_stats(self) -> dict:
        """Get cache statistics.

        Returns:
            dict with cache stats
        """
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0.0

        return {
            "size": len(self._entries),
            "timeframes": [tf.value for tf in self._entries],
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(hit_rate, 4),
        }
