"""
Structured logging utilities for the rental activity report.

Every module logs through `get_logger(__name__)` and passes context with
`extra=`. Both formatters below put that context into the output: the console
one as trailing key=value pairs, the JSON one as top-level keys.

Usage:
    from rental_report.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_logs=False)
    log = get_logger(__name__)
    log.info("Summary recomputed", extra={"summary_rows": 100})
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Optional

# Attributes every LogRecord has; anything else came in through `extra=`.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and key != "extra"
    }
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        fields.update(nested)
    return fields


def _json_formatter(record: logging.LogRecord) -> str:
    payload: Dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    payload.update(_extra_fields(record))
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


class ConsoleFormatter(logging.Formatter):
    """Human formatter that appends `extra=` context as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        line = super().format(record)
        fields = _extra_fields(record)
        if fields:
            line += " | " + " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
        return line


CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Driver loggers are chatty at DEBUG (every pool checkout); keep them quieter
# than the report's own loggers.
LIBRARY_LEVELS = {"psycopg": "WARNING", "psycopg.pool": "WARNING"}


def logging_config(level: str = "INFO", json_logs: bool = False) -> Dict[str, Any]:
    """Build the dictConfig mapping used by `configure_logging`."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"()": ConsoleFormatter, "fmt": CONSOLE_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_logs else "console",
                "level": level,
                "stream": "ext://sys.stderr",
            }
        },
        "loggers": {name: {"level": lib_level} for name, lib_level in LIBRARY_LEVELS.items()},
        "root": {"handlers": ["stderr"], "level": level},
    }


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Install the report's logging setup on the root logger.

    The CLI calls this once per command, with LOG_LEVEL and LOG_JSON from the
    settings. Calling it again replaces the previous handler.
    """
    logging.config.dictConfig(logging_config(level, json_logs))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "logging_config", "ConsoleFormatter", "JsonFormatter"]
