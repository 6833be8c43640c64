"""Configuration module for TrendScope.

Usage:
    from trendscope.config import get_settings

    settings = get_settings()  # Cached singleton
    print(settings.default_timeframe)
"""

from trendscope.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
