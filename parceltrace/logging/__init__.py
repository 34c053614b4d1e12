"""Logging helpers."""

from parceltrace.logging.setup import (
    bind_tracking_code,
    configure_logging,
    get_logger,
    unbind_tracking_code,
)

__all__ = ["configure_logging", "get_logger", "bind_tracking_code", "unbind_tracking_code"]
