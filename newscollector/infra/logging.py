"""Logging setup for the collector.

Configured through :func:`logging.config.dictConfig`:

- one logger per component, named ``newscollector.<program>.<task>``
- a stderr handler with either a text pattern or one JSON object per line
- a ``TRACE`` level below DEBUG for per-request chatter
- a context (``source=cnn`` ...) carried in a :mod:`contextvars` variable, so
  each asyncio task running a scraper tags its own lines

Environment variables:
- ``NC_LOG_LEVEL``: TRACE, DEBUG, INFO, WARN, ERROR, FATAL (default: INFO)
- ``NC_LOG_JSON``: 1 to switch the handler to JSON lines (default: 0)
"""

from __future__ import annotations

import contextvars
import json
import logging
import logging.config
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional

TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")

_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL", "TRACE": "TRACE"}

_CONTEXT: contextvars.ContextVar[Mapping[str, Any]] = contextvars.ContextVar(
    "newscollector_log_context", default={}
)


@contextmanager
def mdc_scope(**values: Any) -> Iterator[None]:
    """Tag every record logged inside the block with ``values``."""
    token = _CONTEXT.set({**_CONTEXT.get(), **values})
    try:
        yield
    finally:
        _CONTEXT.reset(token)


def mdc_get(key: str, default: Any = None) -> Any:
    return _CONTEXT.get().get(key, default)


class MDCFilter(logging.Filter):
    """Copy the current context onto the record (``mdc`` dict and ``mdc_suffix`` text)."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = dict(_CONTEXT.get())
        record.mdc = ctx
        record.mdc_suffix = (" | " + " ".join(f"{k}={v}" for k, v in ctx.items())) if ctx else ""
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        ctx = getattr(record, "mdc", None)
        if ctx:
            entry["mdc"] = ctx
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def level_from_env(name: str = "NC_LOG_LEVEL", default: str = "INFO") -> int:
    raw = (os.getenv(name) or default).strip().upper()
    level = logging.getLevelName(_LEVEL_ALIASES.get(raw, raw))
    return level if isinstance(level, int) else logging.INFO


def build_logging_config() -> Dict[str, Any]:
    level = level_from_env()
    use_json = (os.getenv("NC_LOG_JSON") or "").strip().lower() in ("1", "true", "yes", "on")
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"mdc": {"()": MDCFilter}},
        "formatters": {
            "text": {
                "format": "%(asctime)s %(levelname)-5s %(name)s: %(message)s%(mdc_suffix)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {"()": JSONFormatter},
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "json" if use_json else "text",
                "filters": ["mdc"],
                "stream": "ext://sys.stderr",
            }
        },
        "loggers": {"newscollector": {"level": level}},
        "root": {"level": logging.WARNING, "handlers": ["stderr"]},
    }


_configured = False


def init_logging(force: bool = False) -> None:
    """Apply :func:`build_logging_config` once per process (again with ``force``)."""
    global _configured
    if _configured and not force:
        return
    logging.config.dictConfig(build_logging_config())
    _configured = True


def get_unified_logger(program: str, task_type: str) -> logging.Logger:
    if not _configured and not logging.getLogger().handlers:
        init_logging()
    return logging.getLogger(f"newscollector.{program}.{task_type}")


def _emit(program: str, task_type: str, tag: str, fields: Mapping[str, Any]) -> None:
    get_unified_logger(program, task_type).info(
        "[%s] %s", tag, json.dumps(dict(fields), ensure_ascii=False, default=str)
    )


def log_task_start(program: str, task_type: str, details: Optional[Dict[str, Any]] = None) -> None:
    _emit(program, task_type, "TASK START", details or {})


def log_task_end(
    program: str, task_type: str, success: bool, details: Optional[Dict[str, Any]] = None
) -> None:
    _emit(program, task_type, "TASK END", {"success": success, **(details or {})})


def log_error(program: str, task_type: str, error: BaseException, context: str = "") -> None:
    """Log ``error`` with its traceback, prefixed by ``context`` when given."""
    logger = get_unified_logger(program, task_type)
    msg = f"{context} | {error}" if context else str(error)
    logger.error("%s", msg, exc_info=error)


def log_batch_processing(
    program: str,
    task_type: str,
    operation: str,
    total_items: int,
    success_count: int,
    failure_count: int,
    duration: float,
) -> None:
    _emit(
        program,
        task_type,
        "BATCH",
        {
            "operation": operation,
            "total": total_items,
            "success": success_count,
            "failed": failure_count,
            "duration": duration,
        },
    )


def log_file_operation(
    program: str, task_type: str, operation: str, file_path: str, file_size: int
) -> None:
    fields = {"operation": operation, "path": file_path, "size": file_size}
    _emit(program, task_type, "FILE", fields)


__all__ = [
    "TRACE_LEVEL",
    "MDCFilter",
    "JSONFormatter",
    "mdc_scope",
    "mdc_get",
    "level_from_env",
    "build_logging_config",
    "init_logging",
    "get_unified_logger",
    "log_task_start",
    "log_task_end",
    "log_error",
    "log_batch_processing",
    "log_file_operation",
]
