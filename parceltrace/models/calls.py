"""Records handed to the call log sink."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, computed_field

from parceltrace.models.tracking import DeliveryStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiKeyType(str, Enum):
    """Which carrier API key served a call."""
    PRIMARY = "primary"
    SECONDARY = "secondary"


class CallRecord(BaseModel):
    """Outcome of one tracking attempt."""

    tracking_code: str
    status: DeliveryStatus
    success: bool
    source: str | None = None
    duration: str | None = None
    duration_days: float | None = None
    processing_time_ms: float = 0.0
    error_message: str | None = None
    recorded_at: datetime = Field(default_factory=_utcnow)


class ApiCallRecord(BaseModel):
    """One request against the structured carrier API."""

    key_type: ApiKeyType
    endpoint: str
    tracking_code: str | None = None
    response_status: int | None = None
    response_time_ms: float | None = None
    success: bool
    error_message: str | None = None
    rate_limited: bool = False
    recorded_at: datetime = Field(default_factory=_utcnow)


class ApiUsageStats(BaseModel):
    """Daily carrier API usage."""

    primary_key_calls: int = 0
    secondary_key_calls: int = 0
    call_limit: int
    current_key: ApiKeyType = ApiKeyType.PRIMARY
    primary_key_available: bool = False
    secondary_key_available: bool = False

    @computed_field
    @property
    def total_calls(self) -> int:
        return self.primary_key_calls + self.secondary_key_calls
