"""Logging setup for the fdwctl command line.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here, once, by the CLI.

Usage:
    from fdwctl.log import setup_logging

    setup_logging("debug", "json")
"""

import json
import logging
from datetime import datetime, timezone

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "fdwctl"

LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

FORMATS = ("text", "json")


# ============================================================================
# JSON formatter
# ============================================================================


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


def setup_logging(level: str = "info", fmt: str = "text") -> logging.Logger:
    """Configure the ``fdwctl`` logger.

    Calling it again replaces the handler installed by the previous call.

    Args:
        level: One of ``trace``, ``debug``, ``info``, ``warn``, ``error``
            (``trace`` is an alias of ``debug``).
        fmt: ``text`` (rich, to stderr) or ``json``.

    Returns:
        The configured ``fdwctl`` logger.

    Raises:
        ValueError: If ``level`` or ``fmt`` is unknown.
    """
    try:
        log_level = LEVELS[level.lower()]
    except KeyError:
        raise ValueError(
            f"unknown log level {level!r}; expected one of {', '.join(LEVELS)}"
        ) from None
    if fmt not in FORMATS:
        raise ValueError(f"unknown log format {fmt!r}; expected one of {', '.join(FORMATS)}")

    if fmt == "json":
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=log_level <= logging.DEBUG,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(log_level)
    return logger
