"""Structured logging setup."""

import logging
import sys

import structlog

from engram.config.settings import Settings, settings as default_settings


def configure_logging(config: Settings | None = None) -> None:
    """Configure structlog on top of the stdlib logging machinery.

    ``log_format`` selects JSON lines (for log shipping) or the coloured
    console renderer. Safe to call more than once.
    """
    config = config or default_settings
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )

    renderer: structlog.types.Processor
    if config.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
