"""AI ranking producer."""

from trendscope.services.ai.ranking import (
    AiRankingClient,
    build_ranking_prompt,
    parse_ranking_response,
)

__all__ = ["AiRankingClient", "build_ranking_prompt", "parse_ranking_response"]
