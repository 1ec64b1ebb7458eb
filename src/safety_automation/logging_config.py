"""Structured logging setup for the safety automation core."""
from __future__ import annotations
import logging
import structlog

from .config import ServiceSettings


def configure_logging(settings: ServiceSettings | None = None) -> None:
    """Configure structlog processors and level filtering."""
    settings = settings or ServiceSettings()
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.get_logger(__name__).info(
        "logging_configured",
        service=settings.service_name,
        environment=settings.environment,
        level=settings.log_level,
    )
