"""structlog setup shared by the API and the arq worker."""

import logging

import structlog

from afterhours.config import Settings

# Chatty at INFO; their warnings still come through.
QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "arq.jobs")


def setup_logging(settings: Settings) -> None:
    """Configure structlog with a JSON or console renderer.

    Service modules log through stdlib ``logging``; they share the root
    level configured here.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
