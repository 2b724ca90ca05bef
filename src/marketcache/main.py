"""Main entry point for the marketcache admin server."""

import logging

import uvicorn

from marketcache.api.app import create_app
from marketcache.config import Settings, get_settings
from marketcache.context import create_context

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once from the settings log level."""
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )


def serve(settings: Settings | None = None) -> None:
    """Build the runtime context and serve the admin API."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = create_app(create_context(settings))
    logger.info(f"Serving admin API on http://{settings.api_host}:{settings.api_port}")
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    serve()
