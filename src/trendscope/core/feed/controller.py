"""Trending feed controller.

Orchestrates fetching, caching, AI rank merging and ordering of the
trending token table, and exposes the result as immutable FeedState
snapshots for any UI layer to render.

State machine:
    idle -> loading (timeframe selected, fetch outstanding)
    loading -> ready (fetch succeeded, or failed with cached data to show)
    loading -> error (fetch failed and nothing is cached)
    any -> loading (another timeframe selected)

The controller keeps only the active timeframe and sort spec. Entry data
lives in the TimeframeCache. Everything runs on one event loop; the only
suspension point is the fetch itself, and each continuation checks it is
still current before touching shared state.
"""

from collections.abc import Awaitable, Callable, Mapping, Sequence

import structlog

from trendscope.core.exceptions import (
    FeedStateError,
    FetchCancelledError,
    FetchFailedError,
)
from trendscope.core.feed.cache import TimeframeCache
from trendscope.core.feed.coordinator import FeedRequest, FetchTrendingFeed, RequestCoordinator
from trendscope.core.feed.merger import merge_ai_ranks
from trendscope.core.feed.normalizer import normalize_records
from trendscope.core.feed.sorter import sort_entries
from trendscope.models.feed import (
    FeedState,
    FeedStatus,
    RankDirection,
    RankingTicket,
    SortDirection,
    SortKey,
    SortSpec,
    Timeframe,
    TokenEntry,
)

log = structlog.get_logger(__name__)

ComputeAiRanking = Callable[[Sequence[TokenEntry]], Awaitable[Mapping[str, int]]]
StateListener = Callable[[FeedState], None]
TokenSelectedCallback = Callable[[TokenEntry], None]

FETCH_FAILED_MESSAGE = "Failed to fetch trending tokens"


class FeedController:
    """Long-lived controller behind the trending tokens table.

    Example:
        controller = FeedController(client.fetch_trending)
        controller.subscribe(render)
        await controller.select_timeframe(Timeframe.H1)
        controller.toggle_sort(SortKey.PRICE)
    """

    def __init__(
        self,
        fetch_feed: FetchTrendingFeed,
        *,
        cache: TimeframeCache | None = None,
        sort: SortSpec | None = None,
        on_token_selected: TokenSelectedCallback | None = None,
    ) -> None:
        """Initialize controller.

        Args:
            fetch_feed: Cancellable fetch of raw trending records.
            cache: Entry cache (a fresh one per controller by default).
            sort: Initial display ordering.
            on_token_selected: Called with the entry picked for detail view.
        """
        self._cache = cache if cache is not None else TimeframeCache()
        self._coordinator = RequestCoordinator(fetch_feed)
        self._on_token_selected = on_token_selected
        self._listeners: list[StateListener] = []

        self._timeframe: Timeframe | None = None
        self._sort = sort or SortSpec()
        self._status = FeedStatus.IDLE
        self._error: str | None = None
        self._notice: str | None = None
        self._is_stale = False
        self._ai_direction: RankDirection | None = None

        # Bumped whenever a different timeframe is selected
        self._epoch = 0
        # Generation of the last request whose outcome was applied
        self._settled_generation = 0

    # ------------------------------------------------------------------
    # State exposure
    # ------------------------------------------------------------------

    @property
    def cache(self) -> TimeframeCache:
        return self._cache

    @property
    def timeframe(self) -> Timeframe | None:
        return self._timeframe

    @property
    def status(self) -> FeedStatus:
        return self._status

    @property
    def sort(self) -> SortSpec:
        return self._sort

    @property
    def state(self) -> FeedState:
        return self.get_state()

    def get_state(self) -> FeedState:
        """Build a snapshot of the current view, entries in display order."""
        entries: Sequence[TokenEntry] = ()
        if self._timeframe is not None:
            entries = self._cache.get(self._timeframe) or ()

        return FeedState(
            status=self._status,
            timeframe=self._timeframe,
            entries=tuple(sort_entries(entries, self._sort)),
            sort=self._sort,
            error=self._error,
            notice=self._notice,
            is_stale=self._is_stale,
            ai_direction=self._ai_direction,
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with every new state.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        state = self.get_state()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                log.warning("feed_listener_failed", listener=repr(listener), error=str(e))

    # ------------------------------------------------------------------
    # Timeframe selection
    # ------------------------------------------------------------------

    async def select_timeframe(self, timeframe: Timeframe) -> FeedState:
        """Show ``timeframe`` and (re)fetch its trending list.

        Cached entries are shown immediately while the fetch revalidates
        them. A call superseded by a later selection returns quietly
        without touching state.

        Args:
            timeframe: Window to display.

        Returns:
            State once this call's fetch settled (or was superseded).
        """
        timeframe = Timeframe(timeframe)
        if timeframe != self._timeframe:
            self._epoch += 1
            self._ai_direction = None
        self._timeframe = timeframe

        cached = self._cache.get(timeframe)
        self._status = FeedStatus.LOADING
        self._error = None
        self._notice = None
        self._is_stale = cached is not None

        request = self._coordinator.request(timeframe)
        log.info(
            "feed_timeframe_selected",
            timeframe=timeframe.value,
            cached=cached is not None,
            generation=request.generation,
        )
        self._notify()

        return await self._settle(request)

    async def refresh(self) -> FeedState:
        """Revalidate the active timeframe.

        Raises:
            FeedStateError: If no timeframe has been selected yet.
        """
        if self._timeframe is None:
            raise FeedStateError("No timeframe selected")
        return await self.select_timeframe(self._timeframe)

    async def _settle(self, request: FeedRequest) -> FeedState:
        try:
            records = await self._coordinator.wait(request)
        except FetchCancelledError:
            log.debug(
                "feed_result_discarded",
                timeframe=request.timeframe.value,
                generation=request.generation,
            )
            return self.get_state()
        except FetchFailedError as e:
            if request.generation > self._settled_generation:
                self._settled_generation = request.generation
                self._apply_failure(request, e)
            return self.get_state()

        # Attached waiters share one request; apply its outcome once
        if request.generation > self._settled_generation:
            self._settled_generation = request.generation
            self._apply_success(request, records)
        return self.get_state()

    def _apply_success(self, request: FeedRequest, records: list) -> None:
        entries = normalize_records(records, request.timeframe)
        self._cache.put(request.timeframe, entries)

        self._status = FeedStatus.READY
        self._error = None
        self._notice = None
        self._is_stale = False

        log.info(
            "feed_ready",
            timeframe=request.timeframe.value,
            generation=request.generation,
            received=len(records),
            entries=len(entries),
        )
        self._notify()

    def _apply_failure(self, request: FeedRequest, error: FetchFailedError) -> None:
        if self._cache.get(request.timeframe) is None:
            self._status = FeedStatus.ERROR
            self._error = FETCH_FAILED_MESSAGE
            self._notice = None
            self._is_stale = False
            log.error("feed_fetch_failed", timeframe=request.timeframe.value, error=str(error))
        else:
            self._status = FeedStatus.READY
            self._error = None
            self._notice = (
                f"Could not refresh {request.timeframe.label} trending tokens, showing cached data"
            )
            self._is_stale = True
            log.warning(
                "feed_revalidation_failed",
                timeframe=request.timeframe.value,
                error=str(error),
            )
        self._notify()

    # ------------------------------------------------------------------
    # AI ranking
    # ------------------------------------------------------------------

    def ranking_ticket(self) -> RankingTicket:
        """Snapshot the displayed entries for an AI ranking request.

        Raises:
            FeedStateError: If the feed is not ready.
        """
        if self._status != FeedStatus.READY or self._timeframe is None:
            raise FeedStateError(f"AI ranking requires a ready feed (status={self._status.value})")

        return RankingTicket(
            timeframe=self._timeframe,
            epoch=self._epoch,
            entries=self.get_state().entries,
        )

    def apply_ai_ranking(
        self,
        ranks: Mapping[str, int],
        ticket: RankingTicket | None = None,
        direction: RankDirection | None = None,
    ) -> bool:
        """Merge an AI ranking into the active timeframe's entries.

        Only legal while ready. With a ticket, the merge is also skipped
        when another timeframe has been selected since the ticket was
        issued. Skips are logged, never raised.

        Args:
            ranks: Symbol to 1-based AI rank.
            ticket: Ticket the ranking was computed against.
            direction: If given, switch the sort to ``ai_rank`` (ascending
                for BEST, descending for WORST).

        Returns:
            True if merged, False if skipped.
        """
        if ticket is not None and (
            ticket.timeframe != self._timeframe or ticket.epoch != self._epoch
        ):
            log.info(
                "ai_ranking_merge_skipped",
                reason="timeframe_changed",
                requested_for=ticket.timeframe.value,
                active=self._timeframe.value if self._timeframe else None,
            )
            return False

        if self._status != FeedStatus.READY or self._timeframe is None:
            log.info("ai_ranking_merge_skipped", reason="not_ready", status=self._status.value)
            return False

        entries = self._cache.get(self._timeframe) or ()
        merged = merge_ai_ranks(entries, ranks)
        self._cache.put(self._timeframe, merged)

        if direction is not None:
            direction = RankDirection(direction)
            self._ai_direction = direction
            self._sort = SortSpec(
                key=SortKey.AI_RANK,
                direction=SortDirection.ASC if direction == RankDirection.BEST else SortDirection.DESC,
            )

        log.info(
            "ai_ranking_applied",
            timeframe=self._timeframe.value,
            ranked=sum(1 for entry in merged if entry.ai_rank is not None),
            total=len(merged),
        )
        self._notify()
        return True

    async def run_ai_ranking(
        self,
        compute: ComputeAiRanking,
        direction: RankDirection | None = None,
    ) -> bool:
        """Request an AI ranking for the displayed entries and merge it.

        Args:
            compute: External ranking producer.
            direction: Passed to ``apply_ai_ranking``.

        Returns:
            True if the ranking was merged.

        Raises:
            FeedStateError: If the feed is not ready when called.
        """
        ticket = self.ranking_ticket()
        log.info("ai_ranking_requested", timeframe=ticket.timeframe.value, tokens=len(ticket.entries))
        ranks = await compute(ticket.entries)
        return self.apply_ai_ranking(ranks, ticket=ticket, direction=direction)

    # ------------------------------------------------------------------
    # Sorting and selection
    # ------------------------------------------------------------------

    def set_sort(self, spec: SortSpec) -> FeedState:
        """Change the display ordering. No I/O."""
        self._sort = spec
        log.debug("feed_sort_changed", key=spec.key.value, direction=spec.direction.value)
        self._notify()
        return self.get_state()

    def toggle_sort(self, key: SortKey) -> FeedState:
        """Sort by ``key``, flipping direction if it is already active."""
        return self.set_sort(self._sort.toggled(SortKey(key)))

    def select_token(self, mint: str) -> TokenEntry | None:
        """Pick a row for the detail view and fire ``on_token_selected``."""
        if self._timeframe is None:
            return None

        entry = next(
            (e for e in self._cache.get(self._timeframe) or () if e.mint == mint),
            None,
        )
        if entry is None:
            log.debug("token_selection_missing", mint=mint)
            return None

        log.info("token_selected", mint=mint, symbol=entry.symbol)
        if self._on_token_selected is not None:
            self._on_token_selected(entry)
        return entry

    def close(self) -> None:
        """Cancel any outstanding fetch and drop listeners."""
        self._coordinator.cancel()
        self._listeners.clear()
        log.debug("feed_controller_closed")
