"""Client for the carrier's official shipment tracking API."""

import time
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from parceltrace.config import TrackerConfig
from parceltrace.core.extraction import RawEvent, RawExtraction, classify_location
from parceltrace.core.timestamps import parse_iso_timestamp
from parceltrace.exceptions import ConfigError, TrackingNotFoundError, UpstreamError
from parceltrace.logging import get_logger
from parceltrace.models.calls import ApiCallRecord, ApiKeyType, ApiUsageStats
from parceltrace.sinks.base import CallLogSink

ENDPOINT = "/track/shipments"

# API statusCode -> canonical status label
STATUS_CODES = {
    "delivered": "delivered",
    "transit": "in_transit",
    "pre-transit": "processing",
    "failure": "in_transit",
}

LIMIT_WARNING_MARGIN = 10


@dataclass
class ApiKey:
    """A chosen API key and which slot it came from."""

    value: str
    key_type: ApiKeyType


class CarrierApiClient:
    """
    Thin async wrapper around ``GET /track/shipments``.

    Picks the primary or secondary key based on today's usage in the call log
    and records every request there.

    Example:
        async with CarrierApiClient(config, sink) as api:
            extraction = await api.fetch("3SDFC0681190456")
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        sink: CallLogSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            config: TrackerConfig instance, uses defaults if None
            sink: Call log used for key rotation and request logging
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.config = config or TrackerConfig()
        self.sink = sink
        self._client = httpx.AsyncClient(
            base_url=self.config.api_base_url,
            timeout=self.config.api_timeout_s,
            headers={"Accept": "application/json", "User-Agent": "parceltrace/1.0"},
            transport=transport,
        )
        self._log = get_logger("carrier_api")

    async def __aenter__(self) -> "CarrierApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def configured(self) -> bool:
        return bool(self.config.api_key or self.config.api_key_secondary)

    async def usage(self) -> ApiUsageStats:
        """Today's API usage according to the call log."""
        counts: dict[ApiKeyType, int] = {}
        if self.sink is not None:
            counts = await self.sink.api_calls_on(datetime.now(timezone.utc).date())

        stats = ApiUsageStats(
            primary_key_calls=counts.get(ApiKeyType.PRIMARY, 0),
            secondary_key_calls=counts.get(ApiKeyType.SECONDARY, 0),
            call_limit=self.config.api_call_limit,
            primary_key_available=bool(self.config.api_key),
            secondary_key_available=bool(self.config.api_key_secondary),
        )
        if stats.primary_key_calls >= stats.call_limit and self.config.api_key_secondary:
            stats.current_key = ApiKeyType.SECONDARY
        return stats

    async def select_key(self) -> ApiKey:
        """
        Primary key until its daily limit is reached, then secondary if set.

        Raises:
            ConfigError: If no API key is configured
        """
        if not self.configured:
            raise ConfigError("No carrier API key configured")

        stats = await self.usage()
        if stats.current_key == ApiKeyType.SECONDARY or not self.config.api_key:
            key = ApiKey(self.config.api_key_secondary, ApiKeyType.SECONDARY)
            used = stats.secondary_key_calls
            if self.config.api_key:
                self._log.info(
                    "api_key_switched",
                    primary_calls=stats.primary_key_calls,
                    limit=stats.call_limit,
                )
        else:
            key = ApiKey(self.config.api_key, ApiKeyType.PRIMARY)
            used = stats.primary_key_calls

        if used >= stats.call_limit - LIMIT_WARNING_MARGIN:
            self._log.warning(
                "api_key_near_limit",
                key_type=key.key_type.value,
                calls=used,
                limit=stats.call_limit,
            )
        return key

    async def fetch(self, tracking_code: str) -> RawExtraction:
        """
        Fetch a shipment and adapt it to a RawExtraction.

        Raises:
            TrackingNotFoundError: On HTTP 404
            UpstreamError: On any other failure (network, non-2xx, bad JSON)
        """
        key = await self.select_key()
        start = time.monotonic()
        status_code: int | None = None
        error: str | None = None

        try:
            response = await self._client.get(
                ENDPOINT,
                params={"trackingNumber": tracking_code},
                headers={"DHL-API-Key": key.value},
            )
            status_code = response.status_code

            if status_code == 404:
                error = "Shipment not found"
                raise TrackingNotFoundError(f"{tracking_code} not found at carrier API")
            if status_code >= 400:
                error = f"HTTP {status_code}"
                raise UpstreamError(f"Carrier API returned HTTP {status_code}", status_code)

            try:
                payload = response.json()
            except ValueError as e:
                error = "Invalid JSON"
                raise UpstreamError(f"Carrier API returned invalid JSON: {e}", status_code) from e

        except httpx.HTTPError as e:
            error = str(e) or type(e).__name__
            raise UpstreamError(f"Carrier API request failed: {error}") from e

        finally:
            await self._record(key, tracking_code, status_code, start, error)

        return adapt_shipment_payload(payload)

    async def _record(
        self,
        key: ApiKey,
        tracking_code: str,
        status_code: int | None,
        start: float,
        error: str | None,
    ) -> None:
        elapsed_ms = (time.monotonic() - start) * 1000
        self._log.info(
            "api_call",
            key_type=key.key_type.value,
            status=status_code,
            response_time_ms=round(elapsed_ms, 1),
        )
        if self.sink is None:
            return
        record = ApiCallRecord(
            key_type=key.key_type,
            endpoint=ENDPOINT,
            tracking_code=tracking_code,
            response_status=status_code,
            response_time_ms=elapsed_ms,
            success=error is None,
            error_message=error,
            rate_limited=status_code == 429,
        )
        try:
            await self.sink.record_api_call(record)
        except Exception as e:
            self._log.error("api_call_log_failed", error=str(e))


def _location_text(location: dict | None) -> str | None:
    if not location:
        return None
    address = location.get("address") or {}
    return address.get("addressLocality") or None


def adapt_shipment_payload(payload: dict) -> RawExtraction:
    """
    Convert an API response body into a RawExtraction.

    Only the first shipment is used. Event timestamps are parsed here, so the
    resolver never has to guess their format.
    """
    shipments = payload.get("shipments") or []
    if not shipments:
        return RawExtraction()

    shipment = shipments[0]
    status = shipment.get("status") or {}
    status_code = (status.get("statusCode") or "").lower()
    extraction = RawExtraction(status_text=STATUS_CODES.get(status_code, status.get("description")))

    for event in shipment.get("events") or []:
        raw_timestamp = event.get("timestamp")
        timestamp = parse_iso_timestamp(raw_timestamp)
        if timestamp is None:
            extraction.parse_errors.append(f"Unparseable timestamp: {raw_timestamp!r}")
        description = event.get("description") or event.get("status") or ""
        extraction.timeline.append(RawEvent(
            date=raw_timestamp or "",
            time="",
            description=description,
            location=_location_text(event.get("location")) or classify_location(description),
            timestamp=timestamp,
        ))

    if extraction.status_text is None and extraction.timeline:
        latest_code = (shipment["events"][0].get("statusCode") or "").lower()
        extraction.status_text = STATUS_CODES.get(latest_code)

    extraction.has_valid_data = bool(extraction.timeline) or extraction.status_text is not None
    return extraction
