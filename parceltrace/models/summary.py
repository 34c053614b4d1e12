"""Batch run summary model."""

from pydantic import BaseModel, ConfigDict

from parceltrace.models.tracking import TrackingResult


class BatchRunSummary(BaseModel):
    """Aggregate outcome of a batch run, ordered by completion."""

    model_config = ConfigDict(frozen=True)

    total: int
    successful: int
    failed: int
    total_time_ms: float
    average_time_ms: float
    results: tuple[TrackingResult, ...] = ()
