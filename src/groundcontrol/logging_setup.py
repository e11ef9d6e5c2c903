# src/groundcontrol/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

LOG_FILE_NAME = "groundcontrol.log"

# HTTP/SDK libraries behind the openai transport; DEBUG from them is request tracing.
HTTP_LOGGERS = ("openai", "httpx", "httpcore")

_LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _is_under(name: str, prefixes: Iterable[str]) -> bool:
    return any(name == p or name.startswith(p + ".") for p in prefixes)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter for the REPL, where log lines interleave with command replies.

    - groundcontrol.*: everything the handler level lets through, except the
      transport package (per-completion chatter), which needs WARNING+
    - HTTP/SDK loggers (openai, httpx, httpcore): WARNING+, so retries and
      timeouts stay visible
    - captured Python warnings and any other third-party logger: ERROR+
    """

    def __init__(self, http_loggers: Iterable[str] = HTTP_LOGGERS) -> None:
        super().__init__()
        self._http_loggers = tuple(http_loggers)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if _is_under(name, ("groundcontrol",)):
            if _is_under(name, ("groundcontrol.transport",)):
                return record.levelno >= logging.WARNING
            return True

        if _is_under(name, self._http_loggers):
            return record.levelno >= logging.WARNING

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/groundcontrol",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    http_loggers: Iterable[str] = HTTP_LOGGERS,
) -> Path:
    """
    Install a filtered stderr handler and a full file handler on the root logger.

    Replaces handlers left by an earlier call. The HTTP/SDK loggers are capped at
    WARNING so request tracing stays out of the file log as well.
    Returns the log file path.
    """
    http_loggers = tuple(http_loggers)
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    console.addFilter(_ConsoleNoiseFilter(http_loggers))
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    for name in http_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    return log_file
