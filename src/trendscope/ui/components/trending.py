"""Trending tokens table component.

Formats FeedState snapshots for display and wires the Gradio controls
(timeframe buttons, sort column, AI scan) to each client's FeedController.
"""

import math
import re

import gradio as gr
import pandas as pd
import structlog

from trendscope.config.settings import Settings
from trendscope.core.exceptions import FeedStateError, TrendScopeError
from trendscope.models.feed import (
    FeedState,
    FeedStatus,
    RankDirection,
    SortDirection,
    SortKey,
    SortSpec,
    Timeframe,
)
from trendscope.session import FeedSessionRegistry

log = structlog.get_logger(__name__)

SORT_LABELS: dict[SortKey, str] = {
    SortKey.RANK: "#",
    SortKey.NAME: "Token",
    SortKey.PRICE: "Price",
    SortKey.MARKET_CAP: "Market Cap",
    SortKey.PRICE_CHANGE_PERCENT: "Change",
    SortKey.AI_RANK: "AI Rank",
}

_LEADING_ZEROS = re.compile(r"^0\.0+")

TIER_MARKERS: dict[str, str] = {"green": "🟢", "yellow": "🟡", "red": "🔴"}


def format_price(value: float | None) -> str:
    """Format a USD price or market cap for display.

    Large values are abbreviated (``$1.23M``); very small prices show the
    count of zeros after the decimal point (``$0.0(6)..1235``).
    """
    if not value or math.isnan(value):
        return "$0.00"

    if value >= 1e9:
        return f"${value / 1e9:.2f}B"
    if value >= 1e6:
        return f"${value / 1e6:.2f}M"
    if value >= 1e3:
        return f"${value / 1e3:.2f}K"

    if value < 0.00001:
        match = _LEADING_ZEROS.match(f"{value:.20f}")
        if match:
            zeros = len(match.group(0)) - 2
            digits = f"{value:.{zeros + 4}f}"[-4:]
            return f"$0.0({zeros})..{digits}"

    if value < 1:
        # Four significant digits, always fixed-point
        decimals = 3 - math.floor(math.log10(abs(value)))
        return f"${value:.{decimals}f}"
    return f"${value:.2f}"


def format_percentage(value: float | None) -> str:
    """Format a signed percentage change (``+1.23%``)."""
    if not value or math.isnan(value):
        return "0.00%"
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.2f}%"


def ai_rank_tier(rank: int | None, total: int, direction: RankDirection | None) -> str | None:
    """Colour for an AI rank: thirds of the table, inverted for WORST scans."""
    if rank is None or total <= 0:
        return None

    if rank <= total / 3:
        tier = "green"
    elif rank <= 2 * total / 3:
        tier = "yellow"
    else:
        tier = "red"

    if direction == RankDirection.WORST and tier != "yellow":
        return "red" if tier == "green" else "green"
    return tier


def _format_ai_rank(rank: int | None, total: int, direction: RankDirection | None) -> str:
    if rank is None:
        return "-"
    tier = ai_rank_tier(rank, total, direction)
    return f"{TIER_MARKERS[tier]} {rank}" if tier else str(rank)


def format_trending_rows(state: FeedState) -> pd.DataFrame:
    """Build the trending table for a state, rows in display order."""
    change_label = f"{state.timeframe.label} Change" if state.timeframe else "Change"
    total = len(state.entries)
    rows = [
        {
            "#": entry.rank,
            "Token": entry.name,
            "Symbol": entry.symbol,
            "Price": format_price(entry.price),
            "Market Cap": format_price(entry.market_cap),
            change_label: format_percentage(entry.price_change_percent),
            "AI Rank": _format_ai_rank(entry.ai_rank, total, state.ai_direction),
            "Mint": entry.mint,
        }
        for entry in state.entries
    ]
    columns = ["#", "Token", "Symbol", "Price", "Market Cap", change_label, "AI Rank", "Mint"]
    return pd.DataFrame(rows, columns=columns)


def format_status(state: FeedState) -> str:
    """Status line shown above the table."""
    if state.status == FeedStatus.IDLE:
        return "Select a timeframe to load trending tokens."
    if state.status == FeedStatus.ERROR:
        return f"**Error:** {state.error}"

    arrow = "↑" if state.sort.direction == SortDirection.ASC else "↓"
    parts = [
        f"**Trending Tokens ({len(state.entries)})**",
        f"sorted by {SORT_LABELS[state.sort.key]} {arrow}",
    ]
    if state.is_loading:
        parts.append("_refreshing…_")
    if state.notice:
        parts.append(f"⚠️ {state.notice}")
    return " · ".join(parts)


def _render(state: FeedState) -> tuple[str, pd.DataFrame]:
    return format_status(state), format_trending_rows(state)


def initial_state(settings: Settings) -> FeedState:
    """State shown before a client's session has loaded."""
    return FeedState(
        sort=SortSpec(key=settings.default_sort_key, direction=settings.default_sort_direction)
    )


def create_trending_panel(registry: FeedSessionRegistry) -> tuple[gr.Markdown, gr.Dataframe]:
    """Create the trending tokens panel.

    Every handler resolves the caller's own FeedSession from the registry
    by Gradio session hash, so browser tabs never share a controller.

    Returns:
        Tuple of (status markdown, table) so the page can load them.
    """
    settings = registry.settings
    placeholder = initial_state(settings)

    with gr.Column():
        with gr.Row():
            timeframe = gr.Radio(
                choices=[(tf.label, tf.value) for tf in Timeframe],
                value=settings.default_timeframe.value,
                label="Timeframe",
            )
            sort_key = gr.Dropdown(
                choices=[(label, key.value) for key, label in SORT_LABELS.items()],
                value=settings.default_sort_key.value,
                label="Sort by (select again to flip)",
            )
            scan_best = gr.Button("AI Scan: Best", variant="primary")
            scan_worst = gr.Button("AI Scan: Worst")
        status = gr.Markdown(format_status(placeholder))
        table = gr.Dataframe(
            value=format_trending_rows(placeholder),
            interactive=False,
            wrap=True,
        )
        detail = gr.JSON(label="Selected token")

    async def on_timeframe(value: str, request: gr.Request) -> tuple[str, pd.DataFrame]:
        controller = registry.get(request.session_hash).controller
        return _render(await controller.select_timeframe(Timeframe(value)))

    def on_sort(value: str, request: gr.Request) -> tuple[str, pd.DataFrame]:
        controller = registry.get(request.session_hash).controller
        return _render(controller.toggle_sort(SortKey(value)))

    async def on_scan(direction: RankDirection, session_id: str) -> tuple[str, pd.DataFrame]:
        session = registry.get(session_id)
        try:
            await session.rank(direction)
        except FeedStateError:
            gr.Warning("Wait for the trending list to load before scanning.")
        except TrendScopeError as e:
            log.warning("ai_scan_failed", session_id=session_id, error=str(e))
            gr.Warning("Failed to get AI analysis of tokens")
        return _render(session.controller.get_state())

    async def on_scan_best(request: gr.Request) -> tuple[str, pd.DataFrame]:
        return await on_scan(RankDirection.BEST, request.session_hash)

    async def on_scan_worst(request: gr.Request) -> tuple[str, pd.DataFrame]:
        return await on_scan(RankDirection.WORST, request.session_hash)

    def on_select(evt: gr.SelectData, request: gr.Request) -> dict | None:
        controller = registry.get(request.session_hash).controller
        entries = controller.get_state().entries
        row = evt.index[0] if isinstance(evt.index, (list, tuple)) else evt.index
        if not isinstance(row, int) or not 0 <= row < len(entries):
            return None
        entry = controller.select_token(entries[row].mint)
        return entry.model_dump() if entry else None

    timeframe.change(on_timeframe, inputs=[timeframe], outputs=[status, table])
    sort_key.input(on_sort, inputs=[sort_key], outputs=[status, table])
    scan_best.click(on_scan_best, outputs=[status, table])
    scan_worst.click(on_scan_worst, outputs=[status, table])
    table.select(on_select, outputs=[detail])

    return status, table
