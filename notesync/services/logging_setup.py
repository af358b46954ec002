import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "[%(asctime)s] [%(name)s] %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def _handlers(log_path: str, console_level: int) -> tuple[logging.Handler, logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT, LOG_DATEFMT)

    to_file = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
    to_file.setLevel(logging.DEBUG)
    to_file.name = "notesync_file"

    to_console = logging.StreamHandler()
    to_console.setLevel(console_level)
    to_console.name = "notesync_stream"

    for handler in (to_file, to_console):
        handler.setFormatter(formatter)
    return to_file, to_console


def _install(logger: logging.Logger, level: int, *handlers: logging.Handler) -> None:
    logger.setLevel(level)
    logger.handlers = list(handlers)
    logger.propagate = False


def configure_logging(logs_dir: Optional[str] = None, console_level: Optional[str] = None) -> str:
    """Send the ``notesync`` logger tree to a rotating file and stderr.

    The console level defaults to INFO and can be raised or lowered with
    ``NOTESYNC_LOG_LEVEL``; the file always records DEBUG.
    """
    logs_dir = logs_dir or os.path.join(os.getcwd(), "logs")
    os.makedirs(logs_dir, exist_ok=True)
    level_name = (console_level or os.environ.get("NOTESYNC_LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    log_path = os.path.join(logs_dir, f"client_{stamp}.log")
    to_file, to_console = _handlers(log_path, level)

    sync_logger = logging.getLogger("notesync")
    _install(sync_logger, logging.DEBUG, to_file, to_console)
    # httpx logs every request at INFO; keep it in the file only.
    _install(logging.getLogger("httpx"), logging.INFO, to_file)

    sync_logger.info("Logging initialized: %s (console %s)", log_path, logging.getLevelName(level))
    return log_path
