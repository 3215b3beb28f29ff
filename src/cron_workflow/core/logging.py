"""
Structured logging for cron-workflow.

The engine, the local host and the CLI all log through structlog with
snake_case event names and key/value fields. ``job_name`` and
``instance_id`` are bound through contextvars for the length of one
instance execution, so every event a hook or step emits can be traced
back to the firing that produced it.

Architecture:
    ::

        configure_logging(level, json_format, service, stream)
            │
            ▼
        processor chain
          TimeStamper(iso)                 optional
          merge_contextvars                job_name / instance_id
          add_log_level
          StackInfoRenderer, set_exc_info
          _add_service_metadata            service.name
          ── JSON ──────────────────────── ── console ──
          _ecs_fields                      ConsoleRenderer
          format_exc_info
          JSONRenderer

Examples:
    >>> from cron_workflow.core.logging import configure_logging, get_logger, LogContext
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> with LogContext(job_name="nightly", instance_id="01HX..."):
    ...     get_logger(__name__).info("cron_hook_started", step="run-on-tick")

Tags:
    logging, structlog, observability, cron-workflow
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_service_name = "cron-workflow"

# structlog key -> ECS key, applied to JSON output only
_ECS_KEYS = {
    "timestamp": "@timestamp",
    "level": "log.level",
    "logger_name": "log.logger",
}


def _add_service_metadata(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", _service_name)
    return event_dict


def _ecs_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename structlog's standard keys to their ECS names."""
    for key, ecs_key in _ECS_KEYS.items():
        if key in event_dict:
            event_dict[ecs_key] = event_dict.pop(key)
    return event_dict


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return number


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "cron-workflow",
    add_timestamp: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog for the process.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: True for JSON, False for console, None to pick JSON
            when ``stream`` is not a terminal
        service: Value of the ``service.name`` field
        add_timestamp: Include an ISO timestamp
        stream: Where log lines go (default: stdout)
    """
    global _service_name
    _service_name = service
    stream = stream or sys.stdout
    threshold = _level_number(level)

    if json_format is None:
        json_format = not stream.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors += [_ecs_fields, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
    # third-party libraries logging through stdlib go to the same stream
    logging.basicConfig(format="%(message)s", stream=stream, level=threshold)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``).

    The name is bound lazily as ``logger_name`` (``log.logger`` in JSON);
    print loggers have no name of their own.
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(logger_name=name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind fields for the duration of a ``with`` block.

    Only the keys bound on entry are removed on exit; anything bound by
    the caller before the block is left alone.
    """

    def __init__(self, **fields: Any):
        self.fields = fields

    def __enter__(self) -> LogContext:
        bind_context(**self.fields)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        unbind_context(*self.fields)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
