"""Structlog setup for processes that run graph loads.

The loader only emits structlog events; it never configures logging on
import. Applications call ``configure_logging`` once at startup.
"""

import logging
import os
import sys

import structlog

_TRUTHY = ("1", "true", "yes")


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelNamesMapping().get(level.upper())
    if resolved is None:
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def configure_logging(
    level: int | str = logging.NOTSET,
    json_output: bool | None = None,
) -> None:
    """Configure structlog for load events.

    Args:
        level: Minimum level as a stdlib number or name such as "INFO"
        json_output: Force JSON (True) or console (False) rendering. By
            default JSON is used unless stdout is a TTY or FORCE_COLOR is set.

    Raises:
        ValueError: If ``level`` is an unknown level name
    """
    if json_output is None:
        # FORCE_COLOR=1 enables colors even in non-TTY environments (like Docker)
        force_color = os.environ.get("FORCE_COLOR", "").lower() in _TRUTHY
        json_output = not (force_color or sys.stdout.isatty())

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
