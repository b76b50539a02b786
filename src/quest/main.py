"""
Quest entry point.

This file handles startup concerns (arg-parsing, logging) and launches the appropriate interface
(API server, or the API plus an interactive CLI).
"""

import argparse
import logging
import sys

from quest.api.app import run_api
from quest.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Per-request transport logs are too chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Quest application.

    Sets up the command-line interface, initializes logging, and starts the API, optionally
    alongside an interactive CLI talking to it.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the Quest tool-calling agent")
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="Launch the REST API, or the API plus an interactive CLI (default: api)",
    )
    parser.add_argument(
        "--channel",
        choices=["gemini", "openai", "anthropic"],
        type=str.lower,
        default=settings.CHANNEL,
        help="Model backend (default from env: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    # Override settings with command-line arguments
    settings.LOG_LEVEL = args.log_level
    settings.CHANNEL = args.channel

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting Quest [%s mode, %s channel]", args.mode, settings.CHANNEL)
    logger.debug("Settings: %s", settings.model_dump(exclude={"GEMINI_API_KEY", "OPENAI_API_KEY",
                                                               "ANTHROPIC_API_KEY", "MCP_API_KEY"}))

    if args.mode == "api":
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    # Lazy import to avoid threading when only serving
    import threading  # pylint: disable=import-outside-toplevel

    from quest.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    # Start API server in a separate thread
    api_thread = threading.Thread(
        target=run_api,
        kwargs={
            "host": "127.0.0.1",
            "port": settings.API_PORT,
            "reload": False,  # Reload doesn't work well with threading
            "log_level": "warning",
        },
        daemon=True,
    )
    api_thread.start()

    # Run CLI in main thread
    run_cli()


if __name__ == "__main__":
    main()
