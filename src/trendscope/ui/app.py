"""Main Gradio dashboard application."""

import gradio as gr
import structlog

from trendscope.session import FeedSessionRegistry
from trendscope.ui.components.trending import (
    create_trending_panel,
    format_status,
    format_trending_rows,
)

log = structlog.get_logger(__name__)


def create_dashboard(registry: FeedSessionRegistry) -> gr.Blocks:
    """Create the TrendScope dashboard.

    Each browser session gets its own FeedSession from ``registry``. It is
    loaded with the default timeframe on page load and closed on unload.

    Returns:
        Gradio Blocks application.
    """
    settings = registry.settings

    with gr.Blocks(title=settings.app_name) as app:
        gr.Markdown(f"# {settings.app_name}")
        status, table = create_trending_panel(registry)

        async def on_load(request: gr.Request):
            state = await registry.get(request.session_hash).start()
            return format_status(state), format_trending_rows(state)

        async def on_unload(request: gr.Request) -> None:
            await registry.release(request.session_hash)

        app.load(on_load, outputs=[status, table])
        app.unload(on_unload)

    log.info("dashboard_created", default_timeframe=settings.default_timeframe.value)
    return app
