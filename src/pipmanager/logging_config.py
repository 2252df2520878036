from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pipmanager.config import LoggingSettings


def _stderr_logger(*args: object) -> structlog.PrintLogger:
    # look sys.stderr up per logger so a swapped stream (tests, daemons) is honoured
    return structlog.PrintLogger(sys.stderr)


def configure_logging(settings: LoggingSettings) -> None:
    """Configure structlog to write to stderr; stdout is reserved for command output."""
    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.level)
        ),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
