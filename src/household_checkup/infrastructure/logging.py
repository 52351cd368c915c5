"""Structured logging configuration using structlog.

Events are rendered as JSON (or a console view for local runs) with the
assessment being worked on merged in from context variables. Answer values
and worry-tag text are health data: `drop_health_data` strips them from every
event before rendering, whatever the call site passed.
"""

from __future__ import annotations

import inspect
import logging
import sys
from contextlib import contextmanager
from functools import wraps
from typing import TYPE_CHECKING, Any, Final

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, MutableMapping
    from uuid import UUID

    from household_checkup.config import LoggingSettings

HEALTH_DATA_KEYS: Final[frozenset[str]] = frozenset(
    {"value", "raw_value", "stored_value", "answers", "worry_tags", "tags"}
)

_ASSESSMENT_KEYS: Final[tuple[str, ...]] = ("assessment_id", "assessment_type")


def drop_health_data(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Remove answer values and worry-tag text from an event."""
    del logger, method_name
    for key in HEALTH_DATA_KEYS.intersection(event_dict):
        del event_dict[key]
    return event_dict


def setup_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structured logging for the application.

    Args:
        settings: Logging settings. If None, uses defaults from config.
    """
    if settings is None:
        from household_checkup.config import get_settings  # noqa: PLC0415

        settings = get_settings().logging

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        drop_health_data,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if settings.include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    if settings.include_caller:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )

    if settings.format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.level),
        force=True,
    )

    # asyncio debug output drowns out session events
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (usually __name__).
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def bind_context(**kwargs: str | int | float | bool) -> None:
    """Bind context variables for the current coroutine and tasks it creates."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Unbind context variables."""
    structlog.contextvars.unbind_contextvars(*keys)


@contextmanager
def assessment_context(assessment_id: UUID, assessment_type: str) -> Iterator[None]:
    """Tag every event in the block with the assessment it concerns.

    Answer saves scheduled inside the block copy the context, so their
    events carry the same tags.
    """
    bind_context(assessment_id=str(assessment_id), assessment_type=assessment_type)
    try:
        yield
    finally:
        unbind_context(*_ASSESSMENT_KEYS)


def with_context(
    **context_vars: str | int | float | bool,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator binding fixed context for the duration of a call.

    Used for background jobs, e.g. `@with_context(job="abandon_sweep")`.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                bind_context(**context_vars)
                try:
                    return await func(*args, **kwargs)
                finally:
                    unbind_context(*context_vars)

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            bind_context(**context_vars)
            try:
                return func(*args, **kwargs)
            finally:
                unbind_context(*context_vars)

        return sync_wrapper

    return decorator
