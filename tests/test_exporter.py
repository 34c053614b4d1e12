"""Unit tests for exporter utilities - JSON, CSV and DataFrame."""

import csv
import io
import json
from datetime import datetime, timezone

import pandas as pd
import pytest

from parceltrace.core.exporter import (
    CSV_COLUMNS,
    load_json,
    results_to_df,
    save_csv,
    save_json,
    summary_to_dict,
    timeline_to_df,
    to_csv,
    to_dict,
    to_json,
)
from parceltrace.models.summary import BatchRunSummary
from parceltrace.models.tracking import DeliveryStatus, TimelineEvent, TrackingResult


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def delivered() -> TrackingResult:
    return TrackingResult(
        tracking_code="3SDFC0681190456",
        delivery_status=DeliveryStatus.DELIVERED,
        handoff_moment=utc(2025, 1, 12, 17, 5),
        delivery_moment=utc(2025, 1, 14, 15, 45),
        last_update_moment=utc(2025, 1, 14, 15, 45),
        timeline_events=(
            TimelineEvent(timestamp=utc(2025, 1, 12, 17, 5), description="Zending is ontvangen door DHL"),
            TimelineEvent(timestamp=utc(2025, 1, 14, 15, 45), description="Zending is bezorgd", location="Brievenbus"),
        ),
        status_table=(
            "14 januari 2025 16:45 - Zending is bezorgd",
            "12 januari 2025 18:05 - Zending is ontvangen door DHL",
        ),
        duration="1.9 dagen",
        duration_days=1.9,
        processing_time_ms=1234.6,
        source="tracking_page",
        checked_at=utc(2025, 1, 15, 9, 0),
    )


@pytest.fixture
def failed() -> TrackingResult:
    return TrackingResult(
        tracking_code="JVGL0000000000",
        delivery_status=DeliveryStatus.ERROR,
        duration="Fout bij ophalen",
        message='Navigation to "tracking page" timed out',
        checked_at=utc(2025, 1, 15, 9, 0),
    )


@pytest.fixture
def summary(delivered, failed) -> BatchRunSummary:
    return BatchRunSummary(
        total=2,
        successful=1,
        failed=1,
        total_time_ms=2000.0,
        average_time_ms=1000.0,
        results=(delivered, failed),
    )


class TestJson:
    """JSON conversion and files."""

    def test_to_json_is_valid_json(self, delivered):
        parsed = json.loads(to_json(delivered))
        assert parsed["tracking_code"] == "3SDFC0681190456"
        assert parsed["delivery_status"] == "delivered"

    def test_to_dict_is_json_safe(self, delivered):
        d = to_dict(delivered)
        assert isinstance(d["handoff_moment"], str)
        assert d["timeline_events"][1]["location"] == "Brievenbus"

    def test_save_and_load_result(self, delivered, tmp_path):
        path = save_json(delivered, tmp_path / "out" / "result.json")

        assert path.exists()
        assert load_json(path) == delivered

    def test_save_and_load_summary(self, summary, tmp_path):
        path = save_json(summary, tmp_path / "summary.json")
        loaded = load_json(path)

        assert isinstance(loaded, BatchRunSummary)
        assert loaded.failed == 1
        assert loaded.results[0].duration == "1.9 dagen"

    def test_summary_to_dict_without_results(self, summary):
        d = summary_to_dict(summary, include_results=False)
        assert d["total"] == 2
        assert "results" not in d


class TestDataFrame:
    """pandas conversion."""

    def test_one_row_per_result(self, delivered, failed):
        df = results_to_df([delivered, failed])

        assert isinstance(df, pd.DataFrame)
        assert len(df) == 2
        assert list(df.columns) == CSV_COLUMNS

    def test_accepts_summary(self, summary):
        df = results_to_df(summary)
        assert df["TrackingCode"].tolist() == ["3SDFC0681190456", "JVGL0000000000"]

    def test_status_table_joined(self, delivered):
        row = results_to_df([delivered]).iloc[0]
        assert row["StatusTable"] == (
            "14 januari 2025 16:45 - Zending is bezorgd | 12 januari 2025 18:05 - Zending is ontvangen door DHL"
        )

    def test_empty(self):
        df = results_to_df([])
        assert len(df) == 0
        assert list(df.columns) == CSV_COLUMNS

    def test_timeline_df(self, delivered):
        df = timeline_to_df(delivered)
        assert len(df) == 2
        assert df.iloc[1]["location"] == "Brievenbus"


class TestCsv:
    """Every field quoted, embedded quotes doubled."""

    def test_header_row(self, delivered):
        header = to_csv([delivered]).splitlines()[0]
        assert header == ",".join(f'"{c}"' for c in CSV_COLUMNS)

    def test_every_field_quoted(self, delivered):
        line = to_csv([delivered]).splitlines()[1]
        assert line.startswith('"3SDFC0681190456","delivered",')
        assert '"1235"' in line
        assert '"1.9"' in line

    def test_embedded_quotes_doubled(self, failed):
        text = to_csv([failed])
        assert '"Navigation to ""tracking page"" timed out"' in text

    def test_parses_back(self, delivered, failed):
        rows = list(csv.DictReader(io.StringIO(to_csv([delivered, failed]))))

        assert rows[0]["DeliveryMoment"] == "2025-01-14T15:45:00+00:00"
        assert rows[1]["DeliveryMoment"] == ""
        assert rows[1]["Message"] == 'Navigation to "tracking page" timed out'

    def test_save_csv(self, summary, tmp_path):
        path = save_csv(summary, tmp_path / "export" / "results.csv")
        assert path.read_text(encoding="utf-8").count("\n") == 3
