"""Solana Tracker data API integration."""

from trendscope.services.solana_tracker.client import SolanaTrackerClient
from trendscope.services.solana_tracker.models import TrendingTokenRecord

__all__ = ["SolanaTrackerClient", "TrendingTokenRecord"]
