"""Trending feed: normalization, caching, request coordination and ordering."""

from trendscope.core.feed.cache import TimeframeCache
from trendscope.core.feed.controller import FeedController
from trendscope.core.feed.coordinator import FeedRequest, RequestCoordinator
from trendscope.core.feed.merger import merge_ai_ranks
from trendscope.core.feed.normalizer import normalize_record, normalize_records
from trendscope.core.feed.sorter import sort_entries

__all__ = [
    "FeedController",
    "FeedRequest",
    "RequestCoordinator",
    "TimeframeCache",
    "merge_ai_ranks",
    "normalize_record",
    "normalize_records",
    "sort_entries",
]
