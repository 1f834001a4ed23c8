"""
Structured logging configuration using structlog.

The API logs to stdout. The CLI logs to stderr so the JSON report it
prints on stdout stays machine-readable.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog

from .config import settings

# SDK loggers that are chatty at INFO (one line per HTTP call)
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "ollama")


def setup_logging(
    log_level: Optional[str] = None,
    log_json: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure structlog for the process.

    Processors: contextvars merge (request_id from the API middleware),
    log level, exception info, ISO timestamp, then JSON or console rendering.

    Args:
        log_level: Override for settings.log_level
        log_json: Override for settings.log_json
        stream: Output stream (default: stdout)
    """
    level = logging.getLevelName((log_level or settings.log_level).upper())
    use_json = settings.log_json if log_json is None else log_json

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.processors.JSONRenderer()
                if use_json
                else structlog.dev.ConsoleRenderer(colors=stream is None and sys.stdout.isatty())
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    # Keep SDK transport chatter out of classification logs unless debugging
    sdk_level = logging.DEBUG if level == logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)

