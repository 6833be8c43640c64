"""Unit tests for the trending feed controller."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.factories.token import trending_record
from tests.support.feed import settle
from trendscope.core.exceptions import FeedStateError
from trendscope.core.feed.controller import FETCH_FAILED_MESSAGE, FeedController
from trendscope.models.feed import (
    FeedStatus,
    RankDirection,
    SortDirection,
    SortKey,
    SortSpec,
    Timeframe,
)

XY_RECORDS = [
    trending_record(mint="MintX", name="Ex", symbol="X", price=2.0),
    trending_record(mint="MintY", name="Why", symbol="Y", price=1.0),
]


async def load(controller, feed, timeframe, records, call_index):
    """Select a timeframe and resolve its fetch."""
    task = asyncio.create_task(controller.select_timeframe(timeframe))
    await settle()
    feed.resolve(call_index, records)
    return await task


class TestInitialState:
    """Tests for the idle controller."""

    def test_starts_idle(self, controlled_feed):
        """A new controller has no timeframe and no entries."""
        state = FeedController(controlled_feed).get_state()

        assert state.status == FeedStatus.IDLE
        assert state.timeframe is None
        assert state.entries == ()
        assert state.sort == SortSpec()

    def test_initial_sort_is_configurable(self, controlled_feed):
        """The constructor sort spec is exposed in state."""
        order = SortSpec(key=SortKey.PRICE, direction=SortDirection.DESC)

        assert FeedController(controlled_feed, sort=order).state.sort == order


class TestSelectTimeframe:
    """Tests for timeframe selection and caching."""

    @pytest.mark.asyncio
    async def test_loading_then_ready(self, controlled_feed):
        """Without cache the state is loading, then ready with entries."""
        controller = FeedController(controlled_feed)

        task = asyncio.create_task(controller.select_timeframe(Timeframe.M5))
        await settle()

        loading = controller.get_state()
        assert loading.status == FeedStatus.LOADING
        assert loading.is_loading
        assert loading.entries == ()
        assert loading.is_stale is False

        controlled_feed.resolve(0, XY_RECORDS)
        ready = await task

        assert ready.status == FeedStatus.READY
        assert ready.timeframe == Timeframe.M5
        assert [e.symbol for e in ready.entries] == ["X", "Y"]
        assert [e.rank for e in ready.entries] == [1, 2]
        assert controller.cache.get(Timeframe.M5) == ready.entries

    @pytest.mark.asyncio
    async def test_cached_timeframe_served_while_revalidating(self, controlled_feed):
        """Cached entries show immediately; fresh data replaces them."""
        controller = FeedController(controlled_feed)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)
        await load(controller, controlled_feed, Timeframe.H1, [trending_record(mint="H")], 1)

        task = asyncio.create_task(controller.select_timeframe(Timeframe.M5))
        await settle()

        revalidating = controller.get_state()
        assert revalidating.status == FeedStatus.LOADING
        assert revalidating.is_stale is True
        assert [e.symbol for e in revalidating.entries] == ["X", "Y"]

        controlled_feed.resolve(2, [trending_record(mint="MintZ", symbol="Z")])
        fresh = await task

        assert fresh.status == FeedStatus.READY
        assert fresh.is_stale is False
        assert [e.symbol for e in fresh.entries] == ["Z"]

    @pytest.mark.asyncio
    async def test_only_last_selection_is_written(self, controlled_feed):
        """Rapid switching: superseded results never reach cache or state."""
        controller = FeedController(controlled_feed)

        tasks = []
        for timeframe in (Timeframe.M5, Timeframe.H1, Timeframe.M15):
            tasks.append(asyncio.create_task(controller.select_timeframe(timeframe)))
            await settle()

        # Resolve newest first, then the stale ones
        controlled_feed.resolve(2, [trending_record(mint="Last")])
        controlled_feed.resolve(1, [trending_record(mint="Stale1h")])
        controlled_feed.resolve(0, [trending_record(mint="Stale5m")])
        states = await asyncio.gather(*tasks)

        assert controlled_feed.cancelled == [Timeframe.M5, Timeframe.H1]
        assert controller.cache.timeframes() == [Timeframe.M15]
        final = controller.get_state()
        assert final.timeframe == Timeframe.M15
        assert [e.mint for e in final.entries] == ["Last"]
        assert states[-1].status == FeedStatus.READY

    @pytest.mark.asyncio
    async def test_same_timeframe_attaches_to_pending_fetch(self, controlled_feed):
        """Selecting the loading timeframe again does not fetch twice."""
        controller = FeedController(controlled_feed)
        listener = MagicMock()
        controller.subscribe(listener)

        first = asyncio.create_task(controller.select_timeframe(Timeframe.M5))
        second = asyncio.create_task(controller.select_timeframe(Timeframe.M5))
        await settle()
        controlled_feed.resolve(0, XY_RECORDS)
        results = await asyncio.gather(first, second)

        assert controlled_feed.calls == [Timeframe.M5]
        assert all(state.status == FeedStatus.READY for state in results)
        ready_events = [
            c.args[0] for c in listener.call_args_list if c.args[0].status == FeedStatus.READY
        ]
        assert len(ready_events) == 1

    @pytest.mark.asyncio
    async def test_failure_without_cache_is_error(self, controlled_feed):
        """A failed first load ends in the error state."""
        controller = FeedController(controlled_feed)

        task = asyncio.create_task(controller.select_timeframe(Timeframe.H6))
        await settle()
        controlled_feed.fail(0, RuntimeError("503"))
        state = await task

        assert state.status == FeedStatus.ERROR
        assert state.error == FETCH_FAILED_MESSAGE
        assert state.entries == ()
        assert Timeframe.H6 not in controller.cache

    @pytest.mark.asyncio
    async def test_failure_with_cache_keeps_stale_entries(self, controlled_feed):
        """A failed revalidation keeps cached rows and adds a notice."""
        controller = FeedController(controlled_feed)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)

        task = asyncio.create_task(controller.refresh())
        await settle()
        controlled_feed.fail(1, RuntimeError("timeout"))
        state = await task

        assert state.status == FeedStatus.READY
        assert state.error is None
        assert state.is_stale is True
        assert "5M" in state.notice
        assert [e.symbol for e in state.entries] == ["X", "Y"]

    @pytest.mark.asyncio
    async def test_cancelled_selection_does_not_flip_to_error(self, controlled_feed):
        """A superseded request leaves the newer request's state alone."""
        controller = FeedController(controlled_feed)

        first = asyncio.create_task(controller.select_timeframe(Timeframe.M5))
        await settle()
        second = asyncio.create_task(controller.select_timeframe(Timeframe.H1))
        await settle()

        discarded = await first
        assert discarded.status == FeedStatus.LOADING
        assert discarded.timeframe == Timeframe.H1
        assert discarded.error is None

        controlled_feed.resolve(1, XY_RECORDS)
        assert (await second).status == FeedStatus.READY

    @pytest.mark.asyncio
    async def test_refresh_requires_timeframe(self, controlled_feed):
        """refresh() before any selection is an error."""
        with pytest.raises(FeedStateError):
            await FeedController(controlled_feed).refresh()

    @pytest.mark.asyncio
    async def test_accepts_plain_window_string(self):
        """select_timeframe takes the raw window value too."""
        fetch = AsyncMock(return_value=XY_RECORDS)
        controller = FeedController(fetch)

        state = await controller.select_timeframe("1h")

        fetch.assert_awaited_once_with(Timeframe.H1)
        assert state.timeframe == Timeframe.H1


class TestAiRanking:
    """Tests for merging AI rankings."""

    @pytest.mark.asyncio
    async def test_apply_when_ready(self, controlled_feed):
        """A ranking merges into the active timeframe's cached entries."""
        controller = FeedController(controlled_feed)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)

        assert controller.apply_ai_ranking({"Y": 1}) is True

        cached = {e.symbol: e.ai_rank for e in controller.cache.get(Timeframe.M5)}
        assert cached == {"X": None, "Y": 1}
        assert controller.get_state().status == FeedStatus.READY

    @pytest.mark.asyncio
    async def test_direction_switches_sort(self, controlled_feed):
        """BEST sorts by AI rank ascending, WORST descending."""
        controller = FeedController(controlled_feed)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)

        controller.apply_ai_ranking({"X": 2, "Y": 1}, direction=RankDirection.BEST)
        best = controller.get_state()
        assert best.sort == SortSpec(key=SortKey.AI_RANK, direction=SortDirection.ASC)
        assert best.ai_direction == RankDirection.BEST
        assert [e.symbol for e in best.entries] == ["Y", "X"]

        controller.apply_ai_ranking({"X": 2, "Y": 1}, direction=RankDirection.WORST)
        worst = controller.get_state()
        assert worst.sort.direction == SortDirection.DESC
        assert [e.symbol for e in worst.entries] == ["X", "Y"]

    def test_skipped_when_idle(self, controlled_feed):
        """Applying before any data is loaded is a logged no-op."""
        controller = FeedController(controlled_feed)

        assert controller.apply_ai_ranking({"X": 1}) is False

    @pytest.mark.asyncio
    async def test_ranking_for_previous_timeframe_is_skipped(self, controlled_feed):
        """A 5m ranking arriving after switching to 1h is never merged."""
        controller = FeedController(controlled_feed)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)
        ticket = controller.ranking_ticket()

        switch = asyncio.create_task(controller.select_timeframe(Timeframe.H1))
        await settle()

        assert controller.apply_ai_ranking({"X": 1}, ticket=ticket) is False

        controlled_feed.resolve(1, XY_RECORDS)
        state = await switch

        assert state.timeframe == Timeframe.H1
        assert all(e.ai_rank is None for e in state.entries)
        assert all(e.ai_rank is None for e in controller.cache.get(Timeframe.M5))

    @pytest.mark.asyncio
    async def test_ticket_invalid_after_switching_back(self, controlled_feed):
        """Leaving and returning to a timeframe still invalidates a ticket."""
        controller = FeedController(controlled_feed)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)
        ticket = controller.ranking_ticket()
        await load(controller, controlled_feed, Timeframe.H1, XY_RECORDS, 1)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 2)

        assert controller.apply_ai_ranking({"X": 1}, ticket=ticket) is False

    @pytest.mark.asyncio
    async def test_ranking_ticket_requires_ready(self, controlled_feed):
        """No ticket can be issued while loading."""
        controller = FeedController(controlled_feed)
        task = asyncio.create_task(controller.select_timeframe(Timeframe.M5))
        await settle()

        with pytest.raises(FeedStateError):
            controller.ranking_ticket()

        controlled_feed.resolve(0, XY_RECORDS)
        await task
        ticket = controller.ranking_ticket()
        assert ticket.timeframe == Timeframe.M5
        assert [e.symbol for e in ticket.entries] == ["X", "Y"]

    @pytest.mark.asyncio
    async def test_run_ai_ranking(self, controlled_feed):
        """run_ai_ranking sends the displayed entries and merges the reply."""
        controller = FeedController(controlled_feed)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)
        compute = AsyncMock(return_value={"X": 1, "Y": 2})

        merged = await controller.run_ai_ranking(compute, direction=RankDirection.BEST)

        assert merged is True
        sent = compute.await_args.args[0]
        assert [e.symbol for e in sent] == ["X", "Y"]
        assert [e.ai_rank for e in controller.get_state().entries] == [1, 2]

    @pytest.mark.asyncio
    async def test_run_ai_ranking_outlived_by_switch(self, controlled_feed):
        """A ranking that resolves after a timeframe switch is dropped."""
        controller = FeedController(controlled_feed)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)
        release = asyncio.Event()

        async def slow_ranking(entries):
            await release.wait()
            return {"X": 1}

        ranking = asyncio.create_task(controller.run_ai_ranking(slow_ranking))
        await settle()
        switch = asyncio.create_task(controller.select_timeframe(Timeframe.H1))
        await settle()
        release.set()

        assert await ranking is False
        controlled_feed.resolve(1, XY_RECORDS)
        state = await switch
        assert all(e.ai_rank is None for e in state.entries)

    @pytest.mark.asyncio
    async def test_revalidation_replaces_merged_ranks(self, controlled_feed):
        """A fresh fetch overwrites the cache wholesale, AI ranks included."""
        controller = FeedController(controlled_feed)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)
        controller.apply_ai_ranking({"X": 1})

        task = asyncio.create_task(controller.refresh())
        await settle()
        controlled_feed.resolve(1, XY_RECORDS)
        state = await task

        assert all(e.ai_rank is None for e in state.entries)


class TestSortingAndSelection:
    """Tests for sort changes, token selection and listeners."""

    @pytest.mark.asyncio
    async def test_set_sort_reorders_without_io(self, controlled_feed):
        """Sorting never fetches and never touches cached data."""
        controller = FeedController(controlled_feed)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)
        cached_before = controller.cache.get(Timeframe.M5)

        state = controller.set_sort(SortSpec(key=SortKey.PRICE, direction=SortDirection.ASC))

        assert [e.symbol for e in state.entries] == ["Y", "X"]
        assert controller.cache.get(Timeframe.M5) == cached_before
        assert len(controlled_feed.calls) == 1

    def test_set_sort_while_idle(self, controlled_feed):
        """Sort can change before any data is loaded."""
        controller = FeedController(controlled_feed)

        state = controller.set_sort(SortSpec(key=SortKey.NAME))

        assert state.sort.key == SortKey.NAME
        assert state.status == FeedStatus.IDLE

    def test_toggle_sort(self, controlled_feed):
        """Clicking a column twice flips direction; a new column starts ascending."""
        controller = FeedController(controlled_feed)

        assert controller.toggle_sort(SortKey.PRICE).sort == SortSpec(
            key=SortKey.PRICE, direction=SortDirection.ASC
        )
        assert controller.toggle_sort(SortKey.PRICE).sort.direction == SortDirection.DESC
        assert controller.toggle_sort(SortKey.PRICE).sort.direction == SortDirection.ASC
        assert controller.toggle_sort("name").sort == SortSpec(key=SortKey.NAME)

    @pytest.mark.asyncio
    async def test_select_token_fires_callback(self, controlled_feed):
        """Choosing a row hands its entry to the detail view callback."""
        on_selected = MagicMock()
        controller = FeedController(controlled_feed, on_token_selected=on_selected)
        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)

        entry = controller.select_token("MintY")

        assert entry.symbol == "Y"
        on_selected.assert_called_once_with(entry)
        assert controller.select_token("Unknown") is None
        on_selected.assert_called_once()

    @pytest.mark.asyncio
    async def test_listeners_receive_transitions(self, controlled_feed):
        """Subscribers see loading then ready; unsubscribe stops updates."""
        controller = FeedController(controlled_feed)
        seen = []
        unsubscribe = controller.subscribe(lambda state: seen.append(state.status))

        await load(controller, controlled_feed, Timeframe.M5, XY_RECORDS, 0)
        assert seen == [FeedStatus.LOADING, FeedStatus.READY]

        unsubscribe()
        controller.toggle_sort(SortKey.NAME)
        assert seen == [FeedStatus.LOADING, FeedStatus.READY]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_others(self, controlled_feed):
        """One raising subscriber does not stop notification of the rest."""
        controller = FeedController(controlled_feed)
        controller.subscribe(MagicMock(side_effect=RuntimeError("render failed")))
        good = MagicMock()
        controller.subscribe(good)

        controller.toggle_sort(SortKey.PRICE)

        good.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_cancels_pending_fetch(self, controlled_feed):
        """close() cancels the outstanding fetch without raising."""
        controller = FeedController(controlled_feed)
        task = asyncio.create_task(controller.select_timeframe(Timeframe.M5))
        await settle()

        controller.close()
        state = await task

        assert controlled_feed.cancelled == [Timeframe.M5]
        assert state.status == FeedStatus.LOADING
        assert Timeframe.M5 not in controller.cache
