"""Batch runner - bounded fan-out rounds with retries and inter-round delay."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

from parceltrace.config import TrackerConfig
from parceltrace.core.orchestrator import error_result
from parceltrace.logging import get_logger
from parceltrace.models.summary import BatchRunSummary
from parceltrace.models.tracking import DeliveryStatus, TrackingResult


class SupportsTrack(Protocol):
    async def track(self, tracking_code: str) -> TrackingResult:
        ...


@dataclass
class BatchOptions:
    """Per-run knobs; None means take the config default."""

    batch_size: int | None = None
    delay_between_batches_ms: int | None = None
    max_retries: int | None = None
    retry_backoff_ms: int | None = None


@dataclass
class _Progress:
    total: int
    successful: int = 0
    failed: int = 0
    results: list[TrackingResult] = field(default_factory=list)

    def add(self, result: TrackingResult) -> None:
        self.results.append(result)
        if result.delivery_status == DeliveryStatus.ERROR:
            self.failed += 1
        else:
            self.successful += 1

    def freeze(self, total_time_ms: float) -> BatchRunSummary:
        return BatchRunSummary(
            total=self.total,
            successful=self.successful,
            failed=self.failed,
            total_time_ms=total_time_ms,
            average_time_ms=round(total_time_ms / self.total) if self.total else 0.0,
            results=tuple(self.results),
        )


class BatchRunner:
    """
    Track many codes in rounds of ``batch_size`` concurrent acquisitions.

    Each code is retried up to ``max_retries`` attempts while it comes back as
    ``error``. Between rounds the runner sleeps ``delay_between_batches_ms`` to
    stay gentle on the carrier. One code failing never stops the batch.

    Example:
        async with Tracker(config) as tracker:
            summary = await BatchRunner(tracker, config).run(codes)
    """

    def __init__(self, tracker: SupportsTrack, config: TrackerConfig | None = None):
        self.tracker = tracker
        self.config = config or TrackerConfig()
        self._log = get_logger("batch")

    def _resolve_options(self, options: BatchOptions | None) -> BatchOptions:
        options = options or BatchOptions()
        return BatchOptions(
            batch_size=max(1, options.batch_size or self.config.batch_size),
            delay_between_batches_ms=(
                options.delay_between_batches_ms
                if options.delay_between_batches_ms is not None
                else self.config.delay_between_batches_ms
            ),
            max_retries=max(1, options.max_retries or self.config.max_retries),
            retry_backoff_ms=(
                options.retry_backoff_ms
                if options.retry_backoff_ms is not None
                else self.config.retry_backoff_ms
            ),
        )

    async def run(
        self,
        codes: list[str],
        options: BatchOptions | None = None,
        on_result: Callable[[TrackingResult], None] | None = None,
    ) -> BatchRunSummary:
        """
        Process every code and summarize.

        Args:
            codes: Tracking codes
            options: Overrides for batch size, delay, retries and backoff
            on_result: Called with each result as it completes

        Returns:
            BatchRunSummary with results in completion order
        """
        opts = self._resolve_options(options)
        progress = _Progress(total=len(codes))
        start = time.monotonic()
        total_rounds = (len(codes) + opts.batch_size - 1) // opts.batch_size

        self._log.info(
            "batch_start",
            total=len(codes),
            batch_size=opts.batch_size,
            delay_ms=opts.delay_between_batches_ms,
            max_retries=opts.max_retries,
        )

        async def process(code: str) -> None:
            result = await self._track_with_retries(code, opts)
            progress.add(result)
            if on_result is not None:
                try:
                    on_result(result)
                except Exception as e:
                    self._log.error("on_result_failed", tracking_code=code, error=repr(e))

        for round_index, offset in enumerate(range(0, len(codes), opts.batch_size), start=1):
            batch = codes[offset:offset + opts.batch_size]
            self._log.info("batch_round", round=round_index, rounds=total_rounds, size=len(batch))

            await asyncio.gather(*(process(code) for code in batch))

            if offset + opts.batch_size < len(codes) and opts.delay_between_batches_ms > 0:
                self._log.debug("batch_delay", delay_ms=opts.delay_between_batches_ms)
                await asyncio.sleep(opts.delay_between_batches_ms / 1000)

        summary = progress.freeze((time.monotonic() - start) * 1000)
        self._log.info(
            "batch_complete",
            total=summary.total,
            successful=summary.successful,
            failed=summary.failed,
            average_time_ms=summary.average_time_ms,
        )
        return summary

    async def _track_with_retries(self, code: str, opts: BatchOptions) -> TrackingResult:
        result: TrackingResult | None = None

        for attempt in range(1, opts.max_retries + 1):
            try:
                result = await self.tracker.track(code)
            except Exception as e:
                self._log.warning("attempt_crashed", tracking_code=code, attempt=attempt, error=repr(e))
                result = error_result(code, f"Attempt {attempt} failed: {e}")

            if result.delivery_status != DeliveryStatus.ERROR:
                self._log.info("code_done", tracking_code=code, status=result.delivery_status.value)
                return result

            if attempt < opts.max_retries:
                await asyncio.sleep(opts.retry_backoff_ms / 1000)

        self._log.warning("code_failed", tracking_code=code, attempts=opts.max_retries)
        return result.model_copy(
            update={"message": f"{result.message or 'Fout'} (na {opts.max_retries} pogingen)"}
        )
