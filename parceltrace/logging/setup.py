"""Structlog configuration for parceltrace."""

import logging
import sys

import structlog

from parceltrace.config import TrackerConfig, LogFormat


def configure_logging(config: TrackerConfig | None = None) -> None:
    """
    Configure structlog processors and output format.

    Log lines go to stderr so CLI output (tables, CSV) on stdout stays clean.

    Args:
        config: TrackerConfig instance, uses defaults if None
    """
    if config is None:
        config = TrackerConfig()

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if config.log_format == LogFormat.JSON:
        processors.extend([
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ])
    else:
        processors.extend([
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Get a structlog logger, optionally tagged with a component name.

    Args:
        name: Component name added as ``logger_name``

    Returns:
        structlog BoundLogger
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger


def bind_tracking_code(code: str) -> None:
    """Attach a tracking code to every log line emitted in this task."""
    structlog.contextvars.bind_contextvars(tracking_code=code)


def unbind_tracking_code() -> None:
    structlog.contextvars.unbind_contextvars("tracking_code")
