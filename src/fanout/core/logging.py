"""
Structured logging for fanout.

Every module logs through structlog with dotted event names::

    logger = get_logger(__name__)
    logger.info("fanout.batch.start", items=3, mode="fail_fast")

Pipeline built by :func:`configure_logging`::

    event dict
      │  TimeStamper (ISO, UTC)            optional
      │  merge_contextvars                 batch_id bound by the orchestrator
      │  add_log_level / add_logger_name
      │  service_metadata(service)
      │  ecs_field_names                   JSON only
      ▼
    JSONRenderer | ConsoleRenderer  ──►  stdlib "fanout" logger  ──►  stream (stderr)

``json_format=None`` picks JSON when stderr is not a TTY (CI, containers)
and the colored console renderer otherwise.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

ROOT_LOGGER = "fanout"

# structlog key -> ECS key
_ECS_FIELDS = {
    "timestamp": "@timestamp",
    "level": "log.level",
    "logger": "log.logger",
}

_handler: logging.Handler | None = None


def service_metadata(service: str) -> Processor:
    """Processor stamping ``service.name`` on events that don't carry one."""

    def processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", service)
        return event_dict

    return processor


def ecs_field_names(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key, ecs_key in _ECS_FIELDS.items():
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
    *,
    service: str = "fanout",
    add_timestamp: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog and the stdlib ``fanout`` logger it writes through.

    Safe to call more than once; the previous handler is replaced.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (case-insensitive).
        json_format: True for JSON lines, False for console output,
            None to decide from whether the stream is a TTY.
        service: Value of ``service.name`` on every event.
        add_timestamp: Prepend an ISO-8601 UTC timestamp.
        stream: Where rendered lines go. Defaults to ``sys.stderr``.

    Raises:
        ValueError: If ``level`` is not a logging level name.
    """
    global _handler

    threshold = _level_number(level)
    stream = stream or sys.stderr
    if json_format is None:
        json_format = not stream.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        service_metadata(service),
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if json_format:
        processors += [
            ecs_field_names,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    sink = logging.getLogger(ROOT_LOGGER)
    if _handler is not None:
        sink.removeHandler(_handler)
    _handler = logging.StreamHandler(stream)
    _handler.setFormatter(logging.Formatter("%(message)s"))
    sink.addHandler(_handler)
    sink.setLevel(threshold)
    sink.propagate = False


def get_logger(name: str | None = None) -> Any:
    """Structured logger, normally ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach fields to every event logged from the current task or thread."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind fields for the duration of a ``with`` / ``async with`` block.

    Previous values are restored on exit, so contexts nest::

        with LogContext(batch_id=batch.batch_id):
            logger.info("fanout.batch.start")
    """

    def __init__(self, **fields: Any):
        self._fields = fields
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self._fields)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "ecs_field_names",
    "get_logger",
    "service_metadata",
    "unbind_context",
]
