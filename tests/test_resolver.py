"""Unit tests for status and duration resolution."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from parceltrace.core.carrier_api import adapt_shipment_payload
from parceltrace.core.extraction import RawEvent, RawExtraction, extract_tracking_page
from parceltrace.core.resolver import (
    describe_duration,
    format_elapsed,
    match_status_label,
    resolve,
    resolve_status,
)
from parceltrace.models.tracking import DeliveryStatus


FIXTURES_DIR = Path(__file__).parent / "fixtures"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def event(when: str, description: str) -> RawEvent:
    date, _, time = when.rpartition(" ")
    return RawEvent(date=date, time=time, description=description)


class TestMatchStatusLabel:
    """Localized labels and canonical API labels."""

    @pytest.mark.parametrize("text,expected", [
        ("Bezorgd", DeliveryStatus.DELIVERED),
        ("Uw zending is afgeleverd", DeliveryStatus.DELIVERED),
        ("delivered", DeliveryStatus.DELIVERED),
        ("Onderweg", DeliveryStatus.IN_TRANSIT),
        ("in_transit", DeliveryStatus.IN_TRANSIT),
        ("Zending verwerkt", DeliveryStatus.PROCESSING),
        ("processing", DeliveryStatus.PROCESSING),
        ("Welkom", None),
        ("", None),
        (None, None),
    ])
    def test_labels(self, text, expected):
        assert match_status_label(text) == expected


class TestResolveStatus:
    """Status state machine."""

    def test_no_valid_data_is_not_found(self):
        assert resolve_status(RawExtraction()) == DeliveryStatus.NOT_FOUND

    def test_recognized_label_wins(self):
        raw = RawExtraction(status_text="Bezorgd", has_valid_data=True)
        assert resolve_status(raw) == DeliveryStatus.DELIVERED

    def test_unrecognized_label_with_events_is_in_transit(self):
        raw = RawExtraction(
            status_text="Status onbekend",
            timeline=[event("13 januari 2025 10:00", "Zending aangemeld")],
            has_valid_data=True,
        )
        assert resolve_status(raw) == DeliveryStatus.IN_TRANSIT

    def test_unrecognized_label_without_events_is_error(self):
        raw = RawExtraction(status_text="Status onbekend", has_valid_data=True)
        assert resolve_status(raw) == DeliveryStatus.ERROR

    def test_no_events_no_label_is_not_found(self):
        raw = extract_tracking_page("<html><body><p>Niets</p></body></html>")
        assert resolve_status(raw) == DeliveryStatus.NOT_FOUND


class TestFormatElapsed:
    """Human-readable elapsed time in the carrier locale."""

    DAY_MS = 24 * 60 * 60 * 1000

    @pytest.mark.parametrize("elapsed_ms,text,days", [
        (DAY_MS, "1 dag", 1.0),
        (2.5 * DAY_MS, "2.5 dagen", 2.5),
        (3 * DAY_MS, "3 dagen", 3.0),
        (3 * 60 * 60 * 1000, "3 uur", 0.1),
        (60 * 60 * 1000, "1 uur", 0.0),
        (12 * 60 * 1000, "12 minuten", 0.0),
        (30 * 1000, "< 1 minuut", 0.0),
    ])
    def test_format(self, elapsed_ms, text, days):
        assert format_elapsed(elapsed_ms) == (text, days)


class TestDescribeDuration:
    """Duration text under partial information."""

    def test_both_moments(self):
        text, days = describe_duration(
            DeliveryStatus.DELIVERED, utc(2025, 1, 1, 10), utc(2025, 1, 3, 22),
        )
        assert (text, days) == ("2.5 dagen", 2.5)

    def test_delivery_before_handoff_is_never_negative(self):
        text, days = describe_duration(
            DeliveryStatus.DELIVERED, utc(2025, 1, 3), utc(2025, 1, 1),
        )
        assert days is None
        assert text == "Bezorgd (duur onbekend)"

    def test_delivered_without_handoff(self):
        text, _ = describe_duration(DeliveryStatus.DELIVERED, None, utc(2025, 1, 3))
        assert text == "Bezorgd (startdatum onbekend)"

    def test_in_transit_counts_days_since_handoff(self):
        text, days = describe_duration(
            DeliveryStatus.IN_TRANSIT, utc(2025, 1, 1, 12), None, now=utc(2025, 1, 5, 13),
        )
        assert (text, days) == ("4 dagen onderweg", 4.0)

    @pytest.mark.parametrize("status,text", [
        (DeliveryStatus.DELIVERED, "Bezorgd (duur onbekend)"),
        (DeliveryStatus.IN_TRANSIT, "Nog onderweg"),
        (DeliveryStatus.PROCESSING, "In verwerking"),
        (DeliveryStatus.NOT_FOUND, "Kan niet bepaald worden"),
        (DeliveryStatus.UNKNOWN, "Kan niet bepaald worden"),
    ])
    def test_no_moments(self, status, text):
        assert describe_duration(status, None, None) == (text, None)


class TestResolve:
    """End-to-end resolution of raw extractions."""

    def test_delivered_page(self):
        html = (FIXTURES_DIR / "tracking_delivered.html").read_text(encoding="utf-8")
        resolution = resolve(extract_tracking_page(html))

        assert resolution.status == DeliveryStatus.DELIVERED
        assert resolution.handoff_moment == utc(2025, 1, 12, 17, 5)
        assert resolution.delivery_moment == utc(2025, 1, 14, 15, 45)
        assert resolution.duration == "1.9 dagen"
        assert resolution.duration_days == 1.9
        assert [e.timestamp for e in resolution.timeline] == sorted(e.timestamp for e in resolution.timeline)
        assert resolution.status_table[0] == "14 januari 2025 16:45 - Zending is bezorgd in de brievenbus"

    def test_api_payload_matches_page(self):
        payload = json.loads((FIXTURES_DIR / "api_delivered.json").read_text(encoding="utf-8"))
        resolution = resolve(adapt_shipment_payload(payload))

        assert resolution.status == DeliveryStatus.DELIVERED
        assert resolution.handoff_moment == utc(2025, 1, 12, 17, 5)
        assert resolution.delivery_moment == utc(2025, 1, 14, 15, 45)
        assert resolution.duration == "1.9 dagen"

    def test_delivery_event_by_description(self):
        raw = RawExtraction(
            status_text="delivered",
            timeline=[
                event("2 januari 2025 12:00", "Your parcel was delivered"),
                event("1 januari 2025 08:00", "Zending aangemeld"),
            ],
            has_valid_data=True,
        )
        resolution = resolve(raw)

        assert resolution.handoff_moment == utc(2025, 1, 1, 7, 0)
        assert resolution.delivery_moment == utc(2025, 1, 2, 11, 0)

    def test_delivery_moment_estimated_from_latest_event(self):
        raw = RawExtraction(
            status_text="Bezorgd",
            timeline=[
                event("1 januari 2025 08:00", "Zending aangemeld"),
                event("3 januari 2025 08:00", "Zending gescand"),
            ],
            has_valid_data=True,
        )
        resolution = resolve(raw)

        assert resolution.delivery_moment == utc(2025, 1, 3, 7, 0)
        assert resolution.duration == "2 dagen"

    def test_in_transit_keeps_last_update(self):
        raw = RawExtraction(
            status_text="Onderweg",
            timeline=[
                event("1 juli 2025 19:05", "Zending ontvangen"),
                event("2 juli 2025 08:15", "Zending is onderweg met de bezorger"),
            ],
            has_valid_data=True,
        )
        resolution = resolve(raw, now=utc(2025, 7, 4, 18, 0))

        assert resolution.status == DeliveryStatus.IN_TRANSIT
        assert resolution.delivery_moment is None
        assert resolution.last_update_moment == utc(2025, 7, 2, 6, 15)
        assert resolution.duration == "3 dagen onderweg"

    def test_unparseable_events_dropped_from_timeline(self):
        raw = RawExtraction(
            status_text="Onderweg",
            timeline=[
                event("1 juli 2025 19:05", "Zending ontvangen"),
                RawEvent(date="gisteren", time="", description="Onbekend moment"),
            ],
            has_valid_data=True,
        )
        resolution = resolve(raw, now=utc(2025, 7, 2, 20, 0))

        assert len(resolution.timeline) == 1
        assert len(resolution.status_table) == 2

    def test_not_found(self):
        resolution = resolve(RawExtraction())

        assert resolution.status == DeliveryStatus.NOT_FOUND
        assert resolution.timeline == []
        assert resolution.duration == "Kan niet bepaald worden"

    def test_duration_days_matches_moments(self):
        raw = RawExtraction(
            status_text="Bezorgd",
            timeline=[
                event("10 maart 2025 06:00", "Zending ontvangen"),
                event("14 maart 2025 18:00", "Zending is bezorgd"),
            ],
            has_valid_data=True,
        )
        resolution = resolve(raw)
        expected = (resolution.delivery_moment - resolution.handoff_moment) / timedelta(days=1)

        assert resolution.duration_days == pytest.approx(expected, abs=0.05)
        assert resolution.duration_days >= 0
