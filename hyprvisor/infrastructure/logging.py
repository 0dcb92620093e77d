import logging
import sys
from typing import TextIO

import structlog
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer


def configure_logging(
    log_level: str = "INFO", log_to_console: bool = False, stream: TextIO | None = None
) -> None:
    """Configures structlog for the daemon and the client.

    Logs go to stderr by default; the client writes subscription payloads to stdout.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if not log_to_console:
        shared_processors.append(structlog.processors.format_exc_info)

    renderer = ConsoleRenderer() if log_to_console else JSONRenderer()
    structlog.configure(
        processors=shared_processors + [renderer],  # type: ignore[arg-type]
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=True,
    )
