"""
Structured logging configuration using structlog.

Every record carries the service name and version. Records emitted inside
scoring_run_context() additionally carry the scored date, so all events of
one daily run (pillars, actions, alerts, storage writes) can be grouped.
"""

import logging
import sys
from contextlib import contextmanager
from datetime import date
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, Processor

from healthscore import __version__
from healthscore.config import get_settings

SERVICE_NAME = "healthscore"

# Third-party loggers that are noisy at INFO
_QUIET_LOGGERS = ("uvicorn.access", "httpx")


def add_severity(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add severity level for structured logging."""
    event_dict["severity"] = method_name.upper()
    return event_dict


def add_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def configure_logging() -> None:
    """
    Configure structured logging for the application.

    JSON lines unless LOG_FORMAT=console or DEV_MODE is on; colors are
    disabled under TESTING so captured output stays readable.
    """
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if settings.log_format == "json" and not settings.dev_mode:
        renderer: Processor = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=not settings.testing)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_severity,
            add_service,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def scoring_run_context(score_date: date, trigger: str) -> Iterator[None]:
    """
    Bind the scored date and trigger (api, cli, ...) to every log record
    emitted in this block, restoring the previous context on exit.
    """
    with structlog.contextvars.bound_contextvars(
        score_date=score_date.isoformat(), trigger=trigger
    ):
        yield


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
