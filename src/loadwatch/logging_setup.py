"""Console and rotating-file logging for the ``loadwatch`` logger tree."""

from __future__ import annotations

import contextlib
import json
import logging
from logging.handlers import RotatingFileHandler

ROOT_LOGGER = "loadwatch"

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUP_COUNT = 5

# Optional ``extra=`` keys that poller/dispatcher records may carry.
CONTEXT_FIELDS = ("action_id", "action_type", "cycle", "status")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with context fields passed via ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": self.formatTime(record, DEFAULT_LOG_DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value if isinstance(value, (int, float, bool)) else str(value)
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)
        return json.dumps(entry, ensure_ascii=False)


def _reset_handlers(target: logging.Logger) -> None:
    for handler in list(target.handlers):
        with contextlib.suppress(Exception):
            handler.close()
        target.removeHandler(handler)


def configure_logging(
    use_json: bool = False,
    log_file: str | None = None,
    *,
    level: str | int = "INFO",
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
    console: bool = True,
) -> logging.Logger:
    """Attach console and optional rotating-file handlers to the package logger.

    Safe to call repeatedly: previous handlers are closed first. Returns the
    configured ``loadwatch`` logger.
    """

    package_logger = logging.getLogger(ROOT_LOGGER)
    _reset_handlers(package_logger)
    package_logger.setLevel(level.upper() if isinstance(level, str) else level)
    package_logger.propagate = False

    formatter: logging.Formatter = (
        JsonFormatter() if use_json else logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_LOG_DATEFMT)
    )
    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        handlers.append(
            RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
    return package_logger


__all__ = ["JsonFormatter", "configure_logging", "DEFAULT_LOG_FORMAT", "ROOT_LOGGER"]
