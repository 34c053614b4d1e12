"""Abstract call log interface."""

from abc import ABC, abstractmethod
from datetime import date

from parceltrace.models.calls import ApiCallRecord, ApiKeyType, CallRecord


class CallLogSink(ABC):
    """Abstract base class for call outcome sinks."""

    @abstractmethod
    async def record_call(self, record: CallRecord) -> None:
        """
        Store the outcome of one tracking attempt.

        Args:
            record: CallRecord to store
        """
        ...

    @abstractmethod
    async def record_api_call(self, record: ApiCallRecord) -> None:
        """
        Store one carrier API request and bump the daily counter for its key.

        Args:
            record: ApiCallRecord to store
        """
        ...

    @abstractmethod
    async def api_calls_on(self, day: date) -> dict[ApiKeyType, int]:
        """
        Carrier API call counts per key type for one day.

        Args:
            day: UTC calendar day

        Returns:
            Mapping of key type to count; missing keys mean zero
        """
        ...

    @abstractmethod
    async def recent_calls(self, tracking_code: str, limit: int = 20) -> list[CallRecord]:
        """Most recent call records for a tracking code, newest first."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Cleanup connections and resources."""
        ...

    async def __aenter__(self) -> "CallLogSink":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - cleanup."""
        await self.close()
