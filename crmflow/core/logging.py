"""Structured logging shared by the worker, the API and the engine (structlog)."""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from crmflow.core.config import get_settings

# Client libraries that log every reconnect attempt at INFO
_NOISY_LOGGERS = ("aio_pika", "aiormq", "httpx", "httpcore")


def _add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", get_settings().app_name)
    return event_dict


def setup_logging(json_logs: bool | None = None, level: str | None = None) -> None:
    """Configure structlog and route stdlib logging to the same stream.

    Args:
        json_logs: Force JSON (True) or console (False) output. Defaults to
            console output in debug mode and JSON otherwise.
        level: Override the configured log level
    """
    settings = get_settings()
    log_level = getattr(logging, level or settings.log_level)
    if json_logs is None:
        json_logs = not settings.debug

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger tagged with its module name.

    Args:
        name: Module name, emitted as the ``logger`` key
        **initial_values: Context values bound to every entry
    """
    if name:
        initial_values = {"logger": name, **initial_values}
    logger = structlog.get_logger()
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger
