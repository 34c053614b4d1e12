"""Pydantic models for parceltrace."""

from parceltrace.models.tracking import DeliveryStatus, TimelineEvent, TrackingResult
from parceltrace.models.summary import BatchRunSummary
from parceltrace.models.calls import ApiCallRecord, ApiKeyType, ApiUsageStats, CallRecord

__all__ = [
    "DeliveryStatus",
    "TimelineEvent",
    "TrackingResult",
    "BatchRunSummary",
    "CallRecord",
    "ApiCallRecord",
    "ApiKeyType",
    "ApiUsageStats",
]
