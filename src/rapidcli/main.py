"""
RapidCLI entry point.

This file handles startup concerns (arg-parsing, env setup, logging) and launches the appropriate
interface (interactive CLI or REST API).
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from rapidcli.api.app import run_api
from rapidcli.config import Settings
from rapidcli.core.context import build_context

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
    # Reduce httpx log level to WARNING so streamed requests don't flood the console
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the RapidCLI application.

    This function sets up the command-line interface, initializes logging, wires the services and
    starts the application in either CLI or API mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    settings = Settings()

    parser = argparse.ArgumentParser(description="Run the RapidCLI agent")
    parser.add_argument(
        "--mode",
        choices=["cli", "api"],
        type=str.lower,
        default="cli",
        help="Launch the interactive CLI or the REST API (default: cli)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument(
        "--workspace",
        default=None,
        help="Directory the agent's file tools are confined to (default: current directory)",
    )
    parser.add_argument(
        "--tools",
        default=None,
        help="Path of the tool registry file (default: %s)" % settings.TOOLS_REGISTRY_PATH,
    )
    args = parser.parse_args(argv)

    # Command-line arguments override environment settings
    settings.LOG_LEVEL = args.log_level
    if args.workspace:
        settings.AGENT_WORKING_DIRECTORY = args.workspace
    if args.tools:
        settings.TOOLS_REGISTRY_PATH = args.tools

    _init_logging(settings.LOG_LEVEL)

    # Ensure the data directory exists
    data_dir = Path(settings.DATA_DIR).expanduser()
    data_dir.mkdir(parents=True, exist_ok=True)
    # Ensure the data directory is writable
    if not data_dir.is_dir() or not os.access(data_dir, os.W_OK):
        logger.error("Data directory is not writable: %s", data_dir)
        sys.exit(1)

    logger.info("Starting RapidCLI [%s mode]", args.mode)
    logger.debug(
        "Settings: %s",
        settings.model_dump(exclude={"CHUTES_API_KEY", "OPENAI_API_KEY"}),
    )

    context = build_context(settings)

    if args.mode == "api":
        run_api(context, host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
    else:
        # Lazy import to keep the shell's dependencies out of API mode
        from rapidcli.client.cli import (  # pylint: disable=import-outside-toplevel
            run_cli,
        )

        run_cli(context)


if __name__ == "__main__":
    main()
