"""FastAPI web server for parceltrace."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from parceltrace import BatchOptions, BatchRunner, Tracker, TrackerConfig, __version__
from parceltrace.core.carrier_api import CarrierApiClient
from parceltrace.core.exporter import summary_to_dict, to_dict
from parceltrace.models.calls import ApiUsageStats
from parceltrace.models.tracking import DeliveryStatus


# Request/Response models
class BatchTrackRequest(BaseModel):
    """Request body for batch tracking."""

    codes: list[str] = Field(..., min_length=1, max_length=200)
    batch_size: int | None = Field(
        default=None,
        ge=1,
        le=10,
        description="Codes tracked concurrently per round",
    )
    delay_ms: int | None = Field(
        default=None,
        ge=0,
        le=30000,
        description="Delay between rounds in milliseconds",
    )
    max_retries: int | None = Field(
        default=None,
        ge=1,
        le=5,
        description="Attempts per code while it keeps failing",
    )
    include_results: bool = Field(
        default=True,
        description="Embed every per-code result in the response",
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


class ConfigResponse(BaseModel):
    """Active tracker configuration (secrets omitted)."""

    headless: bool = Field(..., description="Run browser in headless mode.")
    serverless: bool = Field(..., description="Serverless launch profile in use.")
    navigation_timeout_ms: int = Field(..., description="Budget for a page navigation.")
    selector_timeout_ms: int = Field(..., description="Budget for a content selector to appear.")
    fallback_wait_ms: int = Field(..., description="Upper bound on any content wait.")
    api_enabled: bool = Field(..., description="Try the carrier API first.")
    api_configured: bool = Field(..., description="At least one carrier API key is set.")
    api_call_limit: int = Field(..., description="Daily call limit per API key.")
    broad_scrape_enabled: bool = Field(..., description="Try the broad page scrape before the full page.")
    broad_scrape_min_events: int = Field(
        ...,
        description="Broad scrape results are only trusted above this many events.",
    )
    batch_size: int = Field(..., description="Default codes per round.")
    delay_between_batches_ms: int = Field(..., description="Default delay between rounds.")
    max_retries: int = Field(..., description="Default attempts per code.")
    sink_backend: str = Field(
        ...,
        description="Call log backend.",
        json_schema_extra={"enum": ["sqlite", "redis", "none"]},
    )
    log_level: str


def get_tracker(request: Request) -> Tracker:
    tracker = getattr(request.app.state, "tracker", None)
    if tracker is None:
        raise HTTPException(status_code=503, detail="Tracker not started")
    return tracker


@asynccontextmanager
async def lifespan(app: FastAPI):
    """One tracker (and browser pool) shared by every request."""
    tracker = Tracker(TrackerConfig())
    await tracker.__aenter__()
    app.state.tracker = tracker
    try:
        yield
    finally:
        await tracker.__aexit__(None, None, None)
        app.state.tracker = None


app = FastAPI(
    title="parceltrace API",
    description="Parcel delivery tracking API",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.get("/api/track/{code}", tags=["Tracking"])
async def track_one(code: str, tracker: Tracker = Depends(get_tracker)):
    """
    Track a single code.

    A code the carrier does not know yields 404; acquisition failures yield
    502 with the failure message.
    """
    result = await tracker.track(code)

    if result.delivery_status == DeliveryStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"Tracking code {result.tracking_code} not found")
    if result.delivery_status == DeliveryStatus.ERROR:
        raise HTTPException(status_code=502, detail=result.message or "Tracking failed")

    return to_dict(result)


@app.post("/api/track/batch", tags=["Tracking"])
async def track_batch(request: BatchTrackRequest, tracker: Tracker = Depends(get_tracker)):
    """
    Track many codes in concurrent rounds.

    Always answers 200 with the summary; failed codes are counted, not raised.
    """
    runner = BatchRunner(tracker, tracker.config)
    summary = await runner.run(
        request.codes,
        BatchOptions(
            batch_size=request.batch_size,
            delay_between_batches_ms=request.delay_ms,
            max_retries=request.max_retries,
        ),
    )
    return summary_to_dict(summary, include_results=request.include_results)


@app.get("/api/config", response_model=ConfigResponse, tags=["System"])
async def get_config(tracker: Tracker = Depends(get_tracker)):
    """
    Active configuration.

    **Configuration is set via environment variables** with the `PARCELTRACE_` prefix:
    - `PARCELTRACE_HEADLESS=false`
    - `PARCELTRACE_API_KEY=...`
    - `PARCELTRACE_SINK_BACKEND=redis`
    """
    config = tracker.config
    return ConfigResponse(
        headless=config.headless,
        serverless=config.is_serverless,
        navigation_timeout_ms=config.navigation_timeout_ms,
        selector_timeout_ms=config.selector_timeout_ms,
        fallback_wait_ms=config.fallback_wait_ms,
        api_enabled=config.api_enabled,
        api_configured=bool(config.api_key or config.api_key_secondary),
        api_call_limit=config.api_call_limit,
        broad_scrape_enabled=config.broad_scrape_enabled,
        broad_scrape_min_events=config.broad_scrape_min_events,
        batch_size=config.batch_size,
        delay_between_batches_ms=config.delay_between_batches_ms,
        max_retries=config.max_retries,
        sink_backend=config.sink_backend.value,
        log_level=config.log_level,
    )


@app.get("/api/stats", response_model=ApiUsageStats, tags=["System"])
async def get_stats(tracker: Tracker = Depends(get_tracker)):
    """Today's carrier API usage per key."""
    async with CarrierApiClient(tracker.config, tracker.sink) as api:
        return await api.usage()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
