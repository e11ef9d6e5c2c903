# src/groundcontrol/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the asyncio loop thread that
hosts background task drivers, then runs the console REPL in the main thread.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..connectors.loop_runner import start_loop_in_background
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_S = 10.0


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    runner = start_loop_in_background()

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    try:
        if settings.console_enabled:
            # The REPL handles Ctrl+C itself.
            signal.signal(signal.SIGINT, signal.default_int_handler)
            run_console_loop(state, runner)
        else:
            logger.info("Console disabled. Nothing to drive tasks; press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        try:
            runner.run(state.manager.shutdown(), timeout=SHUTDOWN_TIMEOUT_S)
        except Exception:
            logger.exception("Background manager shutdown failed.")
        runner.stop()
        runner.join(timeout=SHUTDOWN_TIMEOUT_S)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
