"""
Switchboard entry point.

This file handles startup concerns (arg-parsing, logging) and launches the interactive chat shell.
"""

import argparse
import logging
import sys

from switchboard.client.cli import run_cli
from switchboard.config import settings
from switchboard.models.converter import (
    CHAT_COMPLETIONS,
    RESPONSES,
)

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
    # Keep HTTP client chatter out of the shell
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Switchboard shell.

    Parses the command line, initializes logging and starts a streamed chat with the default
    agent.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Chat with a Switchboard agent")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument(
        "--model",
        default=settings.DEFAULT_MODEL,
        help="Model name (default from env: %(default)s)",
    )
    parser.add_argument(
        "--api",
        choices=[RESPONSES, CHAT_COMPLETIONS],
        type=str.lower,
        default=settings.OPENAI_API,
        help="Wire dialect used to talk to the model (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    # Override settings with command-line arguments
    settings.LOG_LEVEL = args.log_level
    settings.OPENAI_API = args.api

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting Switchboard shell [%s dialect, model %s]", args.api, args.model)
    logger.debug("Settings: %s", settings.model_dump(exclude={"OPENAI_API_KEY"}))

    run_cli(model=args.model, dialect=args.api)


if __name__ == "__main__":
    main()
