"""TrendScope - Main application entry point."""

import asyncio

import structlog

from trendscope.config import get_settings
from trendscope.config.logging import configure_logging
from trendscope.session import FeedSessionRegistry
from trendscope.ui.app import create_dashboard

log = structlog.get_logger()


def main() -> None:
    """Run the dashboard until interrupted."""
    settings = get_settings()
    configure_logging(settings)

    registry = FeedSessionRegistry(settings)
    app = create_dashboard(registry)

    log.info("trendscope_starting", host=settings.host, port=settings.port)
    try:
        app.launch(server_name=settings.host, server_port=settings.port)
    finally:
        asyncio.run(registry.close_all())
        log.info("trendscope_stopped")


if __name__ == "__main__":
    main()
