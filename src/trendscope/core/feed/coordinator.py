"""Single-flight coordination of trending feed requests.

At most one fetch is outstanding per feed. Switching timeframe cancels the
outstanding fetch; asking again for the timeframe already in flight
attaches to the existing fetch instead of issuing a second call.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from trendscope.core.exceptions import FetchCancelledError, FetchFailedError
from trendscope.models.feed import Timeframe

log = structlog.get_logger(__name__)

RawRecords = list[dict[str, Any]]
FetchTrendingFeed = Callable[[Timeframe], Awaitable[RawRecords]]


@dataclass(eq=False)
class FeedRequest:
    """One issued fetch.

    Attributes:
        timeframe: Window being fetched.
        generation: Monotonic request number; later requests win.
        task: Task running the fetch.
    """

    timeframe: Timeframe
    generation: int
    task: "asyncio.Task[RawRecords]"

    @property
    def done(self) -> bool:
        """True once the fetch finished, failed or was cancelled."""
        return self.task.done()


class RequestCoordinator:
    """Owns the outstanding trending fetch.

    Every continuation must call ``wait`` (or ``is_current``) on resumption:
    a request that has been cancelled or superseded resolves to
    FetchCancelledError, so its result can never reach the cache.

    Example:
        coordinator = RequestCoordinator(client.fetch_trending)
        request = coordinator.request(Timeframe.H1)
        try:
            records = await coordinator.wait(request)
        except FetchCancelledError:
            return
    """

    def __init__(self, fetch: FetchTrendingFeed) -> None:
        """Initialize coordinator.

        Args:
            fetch: Cancellable fetch primitive returning raw records.
        """
        self._fetch = fetch
        self._current: FeedRequest | None = None
        self._generation = 0

    @property
    def current(self) -> FeedRequest | None:
        """Most recently issued request, finished or not."""
        return self._current

    @property
    def pending(self) -> bool:
        """True while a fetch is outstanding."""
        return self._current is not None and not self._current.done

    def request(self, timeframe: Timeframe) -> FeedRequest:
        """Issue a fetch for ``timeframe``.

        An outstanding fetch for another timeframe is cancelled first. An
        outstanding fetch for the same timeframe is returned as is.

        Args:
            timeframe: Window to fetch.

        Returns:
            The request now owning the feed.
        """
        timeframe = Timeframe(timeframe)
        current = self._current

        if current is not None and not current.done:
            if current.timeframe == timeframe:
                log.debug(
                    "feed_request_attached",
                    timeframe=timeframe.value,
                    generation=current.generation,
                )
                return current
            self._cancel(current, reason="timeframe_changed")

        self._generation += 1
        task = asyncio.create_task(
            self._run(timeframe),
            name=f"trending-feed-{timeframe.value}-{self._generation}",
        )
        task.add_done_callback(self._on_task_done)
        request = FeedRequest(timeframe=timeframe, generation=self._generation, task=task)
        self._current = request

        log.debug("feed_request_started", timeframe=timeframe.value, generation=request.generation)
        return request

    def is_current(self, request: FeedRequest) -> bool:
        """Whether ``request`` still owns the feed."""
        return request is self._current

    async def wait(self, request: FeedRequest) -> RawRecords:
        """Wait for a request and return its raw records.

        The fetch itself is shielded: cancelling one waiter does not cancel
        a fetch other waiters are attached to.

        Raises:
            FetchCancelledError: The request was cancelled or superseded.
            FetchFailedError: The fetch failed while still current.
        """
        try:
            records = await asyncio.shield(request.task)
        except asyncio.CancelledError:
            if request.task.cancelled():
                raise FetchCancelledError(request.timeframe.value) from None
            raise
        except FetchCancelledError:
            raise
        except Exception as e:
            if not self.is_current(request):
                raise FetchCancelledError(request.timeframe.value) from e
            raise FetchFailedError(request.timeframe.value, str(e)) from e

        if not self.is_current(request):
            raise FetchCancelledError(request.timeframe.value)
        return records

    def cancel(self) -> None:
        """Cancel the outstanding fetch, if any, and release ownership."""
        if self._current is not None and not self._current.done:
            self._cancel(self._current, reason="cancelled")
        self._current = None

    async def _run(self, timeframe: Timeframe) -> RawRecords:
        return await self._fetch(timeframe)

    def _cancel(self, request: FeedRequest, reason: str) -> None:
        request.task.cancel()
        log.info(
            "feed_request_cancelled",
            timeframe=request.timeframe.value,
            generation=request.generation,
            reason=reason,
        )

    @staticmethod
    def _on_task_done(task: "asyncio.Task[RawRecords]") -> None:
        # Retrieve the exception so abandoned fetches do not warn at GC
        if not task.cancelled() and task.exception() is not None:
            log.debug("feed_task_failed", task=task.get_name(), error=str(task.exception()))
