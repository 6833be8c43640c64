"""Dashboard session wiring.

One FeedSession is built per dashboard session and closed when the
session ends. It owns the HTTP clients and the FeedController; nothing
is shared between sessions. FeedSessionRegistry maps browser sessions
to their FeedSession.
"""

from collections.abc import Callable
from types import TracebackType

import structlog

from trendscope.config.settings import Settings, get_settings
from trendscope.core.feed.controller import FeedController, TokenSelectedCallback
from trendscope.models.feed import FeedState, RankDirection, SortSpec
from trendscope.services.ai.ranking import AiRankingClient
from trendscope.services.solana_tracker.client import SolanaTrackerClient

log = structlog.get_logger(__name__)


class FeedSession:
    """Trending feed for one dashboard session.

    Usage:
        async with create_feed_session() as session:
            await session.start()
            state = session.controller.get_state()
    """

    def __init__(
        self,
        settings: Settings,
        feed_client: SolanaTrackerClient,
        ranking_client: AiRankingClient,
        on_token_selected: TokenSelectedCallback | None = None,
    ) -> None:
        self.settings = settings
        self.feed_client = feed_client
        self.ranking_client = ranking_client
        self.controller = FeedController(
            feed_client.fetch_trending,
            sort=SortSpec(
                key=settings.default_sort_key,
                direction=settings.default_sort_direction,
            ),
            on_token_selected=on_token_selected,
        )

    async def start(self) -> FeedState:
        """Load the default timeframe."""
        log.info("feed_session_started", timeframe=self.settings.default_timeframe.value)
        return await self.controller.select_timeframe(self.settings.default_timeframe)

    async def rank(self, direction: RankDirection = RankDirection.BEST) -> bool:
        """Run an AI ranking over the displayed tokens and merge it."""
        return await self.controller.run_ai_ranking(
            self.ranking_client.rank_tokens,
            direction=direction,
        )

    async def close(self) -> None:
        """Cancel outstanding work and release HTTP resources."""
        self.controller.close()
        await self.feed_client.close()
        await self.ranking_client.close()
        log.info("feed_session_closed")

    async def __aenter__(self) -> "FeedSession":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def create_feed_session(
    settings: Settings | None = None,
    on_token_selected: TokenSelectedCallback | None = None,
) -> FeedSession:
    """Build a FeedSession from settings (environment by default)."""
    settings = settings or get_settings()
    return FeedSession(
        settings=settings,
        feed_client=SolanaTrackerClient.from_settings(settings),
        ranking_client=AiRankingClient.from_settings(settings),
        on_token_selected=on_token_selected,
    )


FeedSessionFactory = Callable[[Settings], FeedSession]


class FeedSessionRegistry:
    """Per-client FeedSessions for a multi-user dashboard.

    Each browser session gets its own FeedSession (controller, cache and
    HTTP clients), created on first use and closed when the client leaves.

    Example:
        registry = FeedSessionRegistry(get_settings())
        session = registry.get(request.session_hash)
        ...
        await registry.release(request.session_hash)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        factory: FeedSessionFactory | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._factory = factory or create_feed_session
        self._sessions: dict[str, FeedSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> FeedSession:
        """Return the session for ``session_id``, creating it on first use."""
        session = self._sessions.get(session_id)
        if session is None:
            session = self._factory(self.settings)
            self._sessions[session_id] = session
            log.info("feed_session_created", session_id=session_id, active=len(self._sessions))
        return session

    async def release(self, session_id: str) -> None:
        """Close and forget the session for ``session_id``, if any."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        await session.close()
        log.info("feed_session_released", session_id=session_id, active=len(self._sessions))

    async def close_all(self) -> None:
        """Close every open session."""
        while self._sessions:
            session_id, session = self._sessions.popitem()
            try:
                await session.close()
            except Exception as e:
                log.warning("feed_session_close_failed", session_id=session_id, error=str(e))
