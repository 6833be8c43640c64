"""TrendScope - trending token feed for the token explorer dashboard."""

__version__ = "1.0.0"
