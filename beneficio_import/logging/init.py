from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Labeled stdout logging for the importer.

Output lines look like ``INFO file=a.xlsx rows=10`` or ``SUMMARY files=2/2 ...``.
SUMMARY is an extra level (25) sitting between INFO and WARNING so it survives
a WARNING-only filter but is not reported as a problem.

Package modules log through ``logging.getLogger(__name__)``; their records
reach the ``beneficio_import`` logger by propagation and pick up the label
there. Nothing is sent to the root logger.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "LabeledFormatter",
    "SUMMARY_LEVEL",
    "get_logger",
    "log_summary",
    "reset_logging",
    "set_debug",
    "setup_logging",
]

APP_LOGGER_NAME = "beneficio_import"
SUMMARY_LEVEL = 25

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}

_configured: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``<label> <message>``; unknown levels fall back to their level name."""

    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{label} {message}"


def _stdout_handler(stream: TextIO | None) -> logging.Handler:
    # sys.stdout は呼び出し時に解決 (pytest の capsys 差し替えに追従)
    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(LabeledFormatter())
    handler.setLevel(logging.INFO)
    return handler


def setup_logging(stream: TextIO | None = None) -> logging.Logger:
    """Install the labeled handler on the application logger once and return it.

    Later calls return the same logger untouched; use reset_logging() to
    reconfigure (e.g. with another ``stream``).
    """
    global _configured
    if _configured is not None:
        return _configured

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    app = logging.getLogger(APP_LOGGER_NAME)
    for old in list(app.handlers):
        app.removeHandler(old)
    app.addHandler(_stdout_handler(stream))
    app.setLevel(logging.INFO)
    app.propagate = False

    _configured = app
    return app


def get_logger() -> logging.Logger:
    return _configured if _configured is not None else setup_logging()


def set_debug(logger: logging.Logger) -> None:
    """--debug: let DEBUG records through the logger and every handler."""
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        handler.setLevel(logging.DEBUG)


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured logger so the next setup_logging() starts over (tests)."""
    global _configured
    if _configured is not None:
        _configured.setLevel(logging.NOTSET)
    _configured = None
