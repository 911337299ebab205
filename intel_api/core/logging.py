"""Structured logging configuration for the Intelligence Platform API."""

import logging
import sys
from typing import Any

# Attributes every LogRecord carries; anything else arrived through ``extra=``
_RECORD_ATTRS = set(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "extra_data",
}


class StructuredFormatter(logging.Formatter):
    """key=value line formatter.

    Fields passed as ``extra={"org_id": ..., "dashboard_id": ...}`` are
    appended after the message, followed by anything logged through
    :func:`log_with_context`.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                log_data[key] = value

        if isinstance(getattr(record, "extra_data", None), dict):
            log_data.update(record.extra_data)

        line = " ".join(f"{k}={v}" for k, v in log_data.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger writing structured lines to stdout, DEBUG when APP_ENV=dev
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False

        try:
            from intel_api.core.config import get_settings

            dev = get_settings().APP_ENV == "dev"
        except Exception:
            # Settings may be incomplete (e.g. missing Supabase credentials)
            dev = False
        logger.setLevel(logging.DEBUG if dev else logging.INFO)

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log with request-scoped context fields (request_id, method, path, ...).

    Fields go under ``extra_data`` so names that clash with LogRecord
    attributes are safe to pass.
    """
    logger.log(level, msg, extra={"extra_data": kwargs})
