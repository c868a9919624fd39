"""
GatherDB Server - Main entry point.

This module starts the GatherDB server:
- Loads configuration from the environment
- Configures logging
- Builds the FastAPI app and serves it with uvicorn

Usage:
    python -m gatherdb_server.main
    gatherdb-server

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Configuration errors stop the process before anything is bound
    - Seed data is loaded before the first request is accepted
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import create_app
from .config import LogFormat, Settings, load_settings

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    """Configure logging based on configuration.

    Args:
        settings: Server configuration
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == LogFormat.JSON:
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("strawberry.execution").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings)
    settings.log_config()

    app = create_app(settings)

    logger.info(f"GatherDB listening on http://{settings.host}:{settings.port}{settings.graphql_path}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
