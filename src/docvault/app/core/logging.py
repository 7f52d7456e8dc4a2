from __future__ import annotations

import json
import logging
import os
from logging.config import dictConfig
from traceback import format_exception

from .env import pick

# Structured context callers may attach with ``extra={...}``.
CONTEXT_FIELDS = ("user_id", "document_id", "storage_path", "event", "route")


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter for prod and CI logs."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, object] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "pid": record.process,
            "message": record.getMessage(),
        }

        context = {k: getattr(record, k) for k in CONTEXT_FIELDS if getattr(record, k, None) is not None}
        if context:
            payload["context"] = context

        if record.exc_info:
            exc_type, exc, _ = record.exc_info
            stack = "".join(format_exception(*record.exc_info))
            max_stack = int(os.getenv("LOG_STACK_LIMIT", "4000"))
            err_obj: dict[str, object] = {}
            if exc_type:
                err_obj["type"] = exc_type.__name__
            if exc:
                err_obj["message"] = str(exc)
            err_obj["stack"] = stack[:max_stack] + ("...(truncated)" if len(stack) > max_stack else "")
            payload["error"] = err_obj

        return json.dumps(payload, ensure_ascii=False, default=str)


def _read_level(level: str | None) -> str:
    explicit = level or os.getenv("LOG_LEVEL")
    if explicit:
        return explicit.upper()
    return pick(prod="INFO", nonprod="DEBUG")


def _read_format(fmt: str | None) -> str:
    chosen = fmt or os.getenv("LOG_FORMAT")
    if chosen:
        return chosen.lower()
    return pick(prod="json", nonprod="plain")


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    level = _read_level(level)
    formatter_name = "json" if _read_format(fmt) == "json" else "plain"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {
                    "format": "%(asctime)s %(levelname)-5s [pid:%(process)d] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
                "json": {
                    "()": JsonFormatter,
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
            },
            "handlers": {
                "stream": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": formatter_name,
                    "stream": "ext://sys.stderr",
                }
            },
            "root": {
                "level": level,
                "handlers": ["stream"],
            },
            # SQL echo and driver chatter stay at WARNING unless asked for.
            "loggers": {
                "sqlalchemy.engine": {"level": "WARNING", "handlers": [], "propagate": True},
                "aiosqlite": {"level": "WARNING", "handlers": [], "propagate": True},
                "asyncio": {"level": "WARNING", "handlers": [], "propagate": True},
            },
        }
    )
