"""Map raw extraction signals to a canonical status, moments and duration."""

from dataclasses import dataclass
from datetime import datetime, timezone

from parceltrace.core.extraction import RawExtraction
from parceltrace.core.timestamps import parse_timestamp
from parceltrace.logging import get_logger
from parceltrace.models.tracking import DeliveryStatus, TimelineEvent

log = get_logger("resolver")

# Exact canonical labels, as produced by the carrier API adapter
CANONICAL_LABELS = {status.value: status for status in DeliveryStatus}

# Substring matches on localized page text, checked in order
STATUS_KEYWORDS = [
    (("bezorgd", "afgeleverd", "delivered"), DeliveryStatus.DELIVERED),
    (("onderweg", "in transit", "transit"), DeliveryStatus.IN_TRANSIT),
    (("verwerkt", "processed", "in verwerking"), DeliveryStatus.PROCESSING),
]

DELIVERY_KEYWORDS = ("bezorgd", "brievenbus", "afgeleverd", "delivered", "mailbox", "overhandigd")

DAY_MS = 24 * 60 * 60 * 1000
HOUR_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000


@dataclass
class Resolution:
    """Everything the resolver derives from one extraction."""

    status: DeliveryStatus
    timeline: list[TimelineEvent]
    status_table: list[str]
    handoff_moment: datetime | None
    delivery_moment: datetime | None
    last_update_moment: datetime | None
    duration: str
    duration_days: float | None


def match_status_label(text: str | None) -> DeliveryStatus | None:
    """Canonical status for a status label, or None if unrecognized."""
    if not text:
        return None
    lowered = text.strip().lower()
    canonical = CANONICAL_LABELS.get(lowered)
    if canonical in (DeliveryStatus.DELIVERED, DeliveryStatus.IN_TRANSIT, DeliveryStatus.PROCESSING):
        return canonical
    for keywords, status in STATUS_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return status
    return None


def resolve_status(raw: RawExtraction) -> DeliveryStatus:
    """
    Status state machine.

    no valid data -> not_found; recognized label -> that label;
    unrecognized label with timeline -> in_transit; otherwise -> error.
    """
    if not raw.has_valid_data:
        return DeliveryStatus.NOT_FOUND
    matched = match_status_label(raw.status_text)
    if matched is not None:
        return matched
    if raw.timeline:
        return DeliveryStatus.IN_TRANSIT
    return DeliveryStatus.ERROR


def build_timeline(raw: RawExtraction) -> list[TimelineEvent]:
    """Parse raw events into timestamped events, sorted oldest first."""
    events = []
    for item in raw.timeline:
        timestamp = item.timestamp or parse_timestamp(item.when)
        if timestamp is None:
            log.debug("event_timestamp_unparsed", when=item.when, description=item.description)
            continue
        events.append(TimelineEvent(
            timestamp=timestamp,
            description=item.description,
            location=item.location,
        ))
    events.sort(key=lambda e: e.timestamp)
    return events


def is_delivery_event(event: TimelineEvent) -> bool:
    desc = event.description.lower()
    return any(keyword in desc for keyword in DELIVERY_KEYWORDS)


def format_elapsed(elapsed_ms: float) -> tuple[str, float]:
    """
    Human-readable elapsed time plus days rounded to one decimal.

    Examples:
        2.5 days -> "2.5 dagen"
        1 day    -> "1 dag"
        3 hours  -> "3 uur"
        12 min   -> "12 minuten"
    """
    days = round(elapsed_ms / DAY_MS, 1)
    if days >= 1:
        text = "1 dag" if days == 1 else f"{days:g} dagen"
    elif elapsed_ms >= HOUR_MS:
        hours = round(elapsed_ms / HOUR_MS)
        text = "1 uur" if hours == 1 else f"{hours} uur"
    else:
        minutes = round(elapsed_ms / MINUTE_MS)
        text = "< 1 minuut" if minutes <= 1 else f"{minutes} minuten"
    return text, days


def describe_duration(
    status: DeliveryStatus,
    handoff: datetime | None,
    delivery: datetime | None,
    now: datetime | None = None,
) -> tuple[str, float | None]:
    """Duration text and day count under whatever moments are known."""
    if handoff and delivery and delivery >= handoff:
        elapsed_ms = (delivery - handoff).total_seconds() * 1000
        return format_elapsed(elapsed_ms)

    if delivery and not handoff:
        if status == DeliveryStatus.DELIVERED:
            return "Bezorgd (startdatum onbekend)", None
        return "Nog onderweg", None

    if handoff and not delivery:
        if status == DeliveryStatus.DELIVERED:
            return "Bezorgd (einddatum onbekend)", None
        now = now or datetime.now(timezone.utc)
        days = max(0, int((now - handoff).total_seconds() * 1000 // DAY_MS))
        text = "1 dag onderweg" if days == 1 else f"{days} dagen onderweg"
        return text, float(days)

    messages = {
        DeliveryStatus.DELIVERED: "Bezorgd (duur onbekend)",
        DeliveryStatus.IN_TRANSIT: "Nog onderweg",
        DeliveryStatus.PROCESSING: "In verwerking",
        DeliveryStatus.ERROR: "Fout bij ophalen",
    }
    return messages.get(status, "Kan niet bepaald worden"), None


def resolve(raw: RawExtraction, now: datetime | None = None) -> Resolution:
    """
    Derive status, handoff/delivery moments and duration from an extraction.

    Handoff is the earliest parsed event. For delivered parcels the delivery
    moment is the first event mentioning delivery, else the latest event
    (logged as an estimate). In-transit parcels get no delivery moment; their
    latest event is kept as last_update_moment.

    Args:
        raw: RawExtraction from a source
        now: Reference time for in-transit durations, defaults to utcnow

    Returns:
        Resolution
    """
    status = resolve_status(raw)
    timeline = build_timeline(raw)

    handoff = delivery = last_update = None
    if timeline:
        handoff = timeline[0].timestamp
        last_update = timeline[-1].timestamp

        if status == DeliveryStatus.DELIVERED:
            delivery_event = next((e for e in timeline if is_delivery_event(e)), None)
            if delivery_event is not None:
                delivery = delivery_event.timestamp
            else:
                delivery = last_update
                log.info("delivery_moment_estimated", moment=delivery.isoformat())
    elif raw.timeline:
        log.warning("no_parseable_timestamps", events=len(raw.timeline))

    duration, duration_days = describe_duration(status, handoff, delivery, now)

    return Resolution(
        status=status,
        timeline=timeline,
        status_table=[event.label for event in raw.timeline],
        handoff_moment=handoff,
        delivery_moment=delivery,
        last_update_moment=last_update,
        duration=duration,
        duration_days=duration_days,
    )
