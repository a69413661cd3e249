"""
Logging setup shared by the template, the transaction context and the CLI.

Library modules only call `get_logger(__name__)`; an application (or the CLI)
calls `configure_logging` once. Statement failures are logged with `sql` and
`mode` attached via `extra=`, which the JSON formatter lifts into top-level
keys so a log pipeline can filter on them.

    configure_logging(level="DEBUG", json_logs=True)
    get_logger("sqltemplate.core.executor").error("statement failed", extra={"sql": sql})
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra"}


def _json_formatter(record: logging.LogRecord) -> str:
    """Serialize a record: level, logger, message, then any `extra=` keys."""
    payload: Dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    for key, value in vars(record).items():
        if key not in _RESERVED_ATTRS:
            payload[key] = value
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    if hasattr(record, "extra") and isinstance(record.extra, dict):
        payload.update(record.extra)
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


_FORMATTERS: Dict[str, Dict[str, Any]] = {
    "console": {
        "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        "datefmt": "%Y-%m-%d %H:%M:%S",
    },
    "json": {"()": JsonFormatter},
}


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    force: bool = True,
) -> None:
    """
    Install a single root handler (console or JSON).

    Parameters
    ----------
    level : str
        Root and handler level name, normally `Settings.log_level`.
    json_logs : bool
        Use `JsonFormatter` instead of the pipe-separated console format.
    force : bool
        Replace handlers already on the root logger. With False, an application
        that configured logging itself keeps its setup.
    """
    if not force and logging.getLogger().handlers:
        return

    handler = {
        "class": "logging.StreamHandler",
        "formatter": "json" if json_logs else "console",
        "level": level,
    }
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {name: dict(spec) for name, spec in _FORMATTERS.items()},
            "handlers": {"default": handler},
            # Library loggers inherit the root level unless configured otherwise.
            "loggers": {"sqltemplate": {"level": "NOTSET", "propagate": True}},
            "root": {"handlers": ["default"], "level": level},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Module logger; the root logger when `name` is None."""
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter"]
