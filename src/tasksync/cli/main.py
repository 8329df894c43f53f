# src/tasksync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, resolves the initial identity, then runs
the console shell until /exit, EOF or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown_state, start_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import level_from_name, setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)
    await start_state(state)
    try:
        await run_console_loop(state)
    finally:
        await shutdown_state(state)


def main() -> None:
    settings = get_settings()

    console_level = level_from_name(getattr(settings, "log_level", "INFO"))
    log_file = setup_logging(
        log_dir=getattr(settings, "data_dir", ".local/tasksync"),
        console_level=console_level,
    )
    logger.debug("Logging to %s", log_file)

    logger.info(
        "Starting %s (backend=%s)...",
        getattr(settings, "app_name", "tasksync"),
        getattr(settings, "backend", "memory"),
    )

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")

    logger.info("Bye.")


if __name__ == "__main__":
    main()
