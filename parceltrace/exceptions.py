"""Custom exception hierarchy for parceltrace."""


class ParcelTraceError(Exception):
    """Base exception for all parceltrace errors."""


class TrackingNotFoundError(ParcelTraceError):
    """Carrier API answered with an authoritative not-found."""


class UpstreamError(ParcelTraceError):
    """Carrier API failed with anything other than not-found."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NavigationError(ParcelTraceError):
    """Browser navigation failed."""


class NavigationTimeoutError(NavigationError):
    """A browser navigation or wait step ran out of budget."""


class ResourceUnavailableError(ParcelTraceError):
    """The pooled browser could not be started."""


class ExtractionError(ParcelTraceError):
    """Page content could not be interpreted."""


class ConfigError(ParcelTraceError):
    """Invalid configuration."""
