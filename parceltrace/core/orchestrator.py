"""Acquisition orchestrator - tries sources in order and resolves the result."""

import time
from datetime import datetime, timezone

from parceltrace.config import TrackerConfig
from parceltrace.core.carrier_api import CarrierApiClient
from parceltrace.core.pool import BrowserPool
from parceltrace.core.resolver import resolve
from parceltrace.core.sources import (
    AcquisitionSource,
    BroadScrapeSource,
    CarrierApiSource,
    TrackingPageSource,
)
from parceltrace.exceptions import ParcelTraceError, TrackingNotFoundError
from parceltrace.logging import bind_tracking_code, configure_logging, get_logger, unbind_tracking_code
from parceltrace.models.calls import CallRecord
from parceltrace.models.tracking import DeliveryStatus, TrackingResult
from parceltrace.sinks import CallLogSink, create_sink


class Tracker:
    """
    High-level tracking interface.

    Tries the carrier API, then a broad page scrape, then the full tracking
    page, and returns the first result that clears its source's bar. Every
    outcome is handed to the call log sink.

    Example:
        async with Tracker() as tracker:
            result = await tracker.track("3SDFC0681190456")
            print(result.delivery_status, result.duration)
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        pool: BrowserPool | None = None,
        sink: CallLogSink | None = None,
        sources: list[AcquisitionSource] | None = None,
    ):
        """
        Initialize tracker with optional collaborators.

        Anything not passed in is built from config on entry and owned (and
        closed) by the tracker. An owned pool is swept for idleness; callers that
        inject a pool start its sweeper themselves.

        Args:
            config: TrackerConfig instance, uses defaults if None
            pool: Shared browser pool
            sink: Call log sink
            sources: Ordered acquisition sources; the last one is final
        """
        self.config = config or TrackerConfig()
        self.pool = pool
        self.sink = sink
        self.sources = sources
        self._api: CarrierApiClient | None = None
        self._owns_pool = pool is None
        self._owns_sink = sink is None
        self._log = get_logger("tracker")

    async def __aenter__(self) -> "Tracker":
        """Async context manager entry - initialize resources."""
        configure_logging(self.config)

        if self.sink is None:
            self.sink = create_sink(self.config)

        if self.sources is None:
            self.sources = self._default_sources()

        if self.pool is not None and self._owns_pool:
            self.pool.start_sweeper()

        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - cleanup resources."""
        if self._api is not None:
            await self._api.close()
        if self.pool is not None and self._owns_pool:
            await self.pool.close()
        if self.sink is not None and self._owns_sink:
            await self.sink.close()

    def _default_sources(self) -> list[AcquisitionSource]:
        if self.pool is None:
            self.pool = BrowserPool(self.config)

        sources: list[AcquisitionSource] = []
        if self.config.api_enabled and (self.config.api_key or self.config.api_key_secondary):
            self._api = CarrierApiClient(self.config, self.sink)
            sources.append(CarrierApiSource(self._api))
        if self.config.broad_scrape_enabled:
            sources.append(BroadScrapeSource(self.pool, self.config))
        sources.append(TrackingPageSource(self.pool, self.config))
        return sources

    async def track(self, tracking_code: str) -> TrackingResult:
        """
        Determine the current delivery state of one tracking code.

        Never raises for acquisition problems: failures come back as an
        ``error`` result with a message.

        Args:
            tracking_code: Carrier tracking code

        Returns:
            TrackingResult
        """
        if self.sources is None:
            raise RuntimeError("Tracker must be used as an async context manager")

        tracking_code = tracking_code.strip()
        bind_tracking_code(tracking_code)
        start = time.monotonic()
        self._log.info("track_start")

        try:
            result = await self._run_sources(tracking_code, start)
        finally:
            unbind_tracking_code()

        await self._record(result)
        return result

    async def _run_sources(self, tracking_code: str, start: float) -> TrackingResult:
        failures: list[str] = []

        for index, source in enumerate(self.sources):
            is_final = index == len(self.sources) - 1
            try:
                acquisition = await source.acquire(tracking_code)
            except TrackingNotFoundError as e:
                self._log.info("tracking_not_found", source=source.name)
                return self._not_found(tracking_code, source.name, str(e), start)
            except ParcelTraceError as e:
                self._log.warning("source_failed", source=source.name, error=str(e))
                failures.append(f"{source.name}: {e}")
                continue
            except Exception as e:
                self._log.error("source_crashed", source=source.name, error=repr(e))
                failures.append(f"{source.name}: {e!r}")
                continue

            resolution = resolve(acquisition.raw)
            if is_final or source.accepts(acquisition, resolution.status):
                result = TrackingResult(
                    tracking_code=tracking_code,
                    delivery_status=resolution.status,
                    handoff_moment=resolution.handoff_moment,
                    delivery_moment=resolution.delivery_moment,
                    last_update_moment=resolution.last_update_moment,
                    timeline_events=tuple(resolution.timeline),
                    status_table=tuple(resolution.status_table),
                    duration=resolution.duration,
                    duration_days=resolution.duration_days,
                    processing_time_ms=_elapsed_ms(start),
                    source=source.name,
                    message="; ".join(acquisition.raw.parse_errors) or None,
                    checked_at=datetime.now(timezone.utc),
                )
                self._log.info(
                    "track_complete",
                    source=source.name,
                    status=result.delivery_status.value,
                    events=len(result.timeline_events),
                    duration=result.duration,
                    processing_time_ms=round(result.processing_time_ms),
                )
                return result

            self._log.info(
                "source_rejected",
                source=source.name,
                status=resolution.status.value,
                quality=acquisition.quality,
            )

        message = "; ".join(failures) or "No acquisition source produced a result"
        self._log.error("track_failed", error=message)
        return error_result(tracking_code, message, _elapsed_ms(start))

    def _not_found(self, tracking_code: str, source: str, message: str, start: float) -> TrackingResult:
        return TrackingResult(
            tracking_code=tracking_code,
            delivery_status=DeliveryStatus.NOT_FOUND,
            duration="Kan niet bepaald worden",
            processing_time_ms=_elapsed_ms(start),
            source=source,
            message=message,
            checked_at=datetime.now(timezone.utc),
        )

    async def _record(self, result: TrackingResult) -> None:
        if self.sink is None:
            return
        record = CallRecord(
            tracking_code=result.tracking_code,
            status=result.delivery_status,
            success=result.succeeded,
            source=result.source,
            duration=result.duration,
            duration_days=result.duration_days,
            processing_time_ms=result.processing_time_ms,
            error_message=result.message if not result.succeeded else None,
        )
        try:
            await self.sink.record_call(record)
        except Exception as e:
            # The call log must never break tracking
            self._log.error("call_log_failed", tracking_code=result.tracking_code, error=str(e))


def error_result(tracking_code: str, message: str, processing_time_ms: float = 0.0) -> TrackingResult:
    """An ``error`` result carrying a human-readable failure message."""
    return TrackingResult(
        tracking_code=tracking_code,
        delivery_status=DeliveryStatus.ERROR,
        duration="Fout bij ophalen",
        processing_time_ms=processing_time_ms,
        message=message,
        checked_at=datetime.now(timezone.utc),
    )


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000
