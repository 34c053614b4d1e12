"""Tracking result models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class DeliveryStatus(str, Enum):
    """Canonical delivery state of a parcel."""

    UNKNOWN = "unknown"
    PROCESSING = "processing"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    NOT_FOUND = "not_found"
    ERROR = "error"


class TimelineEvent(BaseModel):
    """One carrier-logged milestone."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    description: str
    location: str | None = None


class TrackingResult(BaseModel):
    """Outcome of tracking a single code. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    tracking_code: str
    delivery_status: DeliveryStatus
    handoff_moment: datetime | None = None
    delivery_moment: datetime | None = None
    last_update_moment: datetime | None = None
    timeline_events: tuple[TimelineEvent, ...] = ()
    status_table: tuple[str, ...] = ()
    duration: str
    duration_days: float | None = None
    processing_time_ms: float = 0.0
    source: str | None = None
    message: str | None = None
    checked_at: datetime

    @property
    def is_active(self) -> bool:
        """Whether the parcel still needs polling."""
        return self.delivery_status != DeliveryStatus.DELIVERED

    @property
    def succeeded(self) -> bool:
        return self.delivery_status != DeliveryStatus.ERROR
