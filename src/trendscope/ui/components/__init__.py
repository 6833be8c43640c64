"""UI component modules."""

from trendscope.ui.components.trending import (
    ai_rank_tier,
    create_trending_panel,
    format_percentage,
    format_price,
    format_status,
    format_trending_rows,
)

__all__ = [
    "ai_rank_tier",
    "create_trending_panel",
    "format_percentage",
    "format_price",
    "format_status",
    "format_trending_rows",
]
