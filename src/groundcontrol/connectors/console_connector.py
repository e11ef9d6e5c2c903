# src/groundcontrol/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from .loop_runner import LoopRunner

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT_S = 120.0


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def run_console_loop(state: AppState, runner: LoopRunner) -> None:
    """
    Blocking REPL. Commands run as coroutines on the runner's loop, so background
    task drivers keep polling between prompts.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands, /bg <agent> <prompt> to launch a task, /exit to quit.\n")

    while True:
        try:
            user_input = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Only slash commands are supported here. Use /help.")
            continue

        try:
            reply = runner.run(command_registry.handle(state, user_input, emit=_print_ts), timeout=COMMAND_TIMEOUT_S)
        except TimeoutError:
            logger.warning("Command timed out: %s", user_input)
            reply = f"Command timed out after {COMMAND_TIMEOUT_S:.0f}s."
        except Exception as e:
            logger.exception("Command handler crashed.")
            reply = f"Error: {e}" if str(e) else "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
