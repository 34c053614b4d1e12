"""Export utilities for tracking results."""

import csv
import json
from datetime import datetime
from pathlib import Path

import pandas as pd

from parceltrace.models.summary import BatchRunSummary
from parceltrace.models.tracking import TrackingResult

CSV_COLUMNS = [
    "TrackingCode",
    "DeliveryStatus",
    "DeliveryMoment",
    "HandoffMoment",
    "LastUpdateMoment",
    "Duration",
    "DurationDays",
    "ProcessingTimeMs",
    "Source",
    "Message",
    "StatusTable",
]

STATUS_TABLE_SEPARATOR = " | "


def to_json(result: TrackingResult | BatchRunSummary, indent: int = 2) -> str:
    """
    Convert a TrackingResult or BatchRunSummary to a JSON string.

    Args:
        result: Model to serialize
        indent: JSON indentation level

    Returns:
        JSON string
    """
    return result.model_dump_json(indent=indent)


def to_dict(result: TrackingResult | BatchRunSummary) -> dict:
    """JSON-safe dictionary representation."""
    return result.model_dump(mode="json")


def summary_to_dict(summary: BatchRunSummary, include_results: bool = True) -> dict:
    """
    Summary counters, optionally with every result.

    Args:
        summary: BatchRunSummary to convert
        include_results: Whether to embed per-code results

    Returns:
        Dictionary with totals and timings
    """
    data = summary.model_dump(mode="json", exclude={"results"})
    if include_results:
        data["results"] = [to_dict(r) for r in summary.results]
    return data


def save_json(
    result: TrackingResult | BatchRunSummary,
    filepath: str | Path,
    indent: int = 2,
) -> Path:
    """
    Save a result or summary to a JSON file.

    Returns:
        Path to saved file
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(result.model_dump_json(indent=indent), encoding="utf-8")
    return path


def load_json(filepath: str | Path) -> TrackingResult | BatchRunSummary:
    """
    Load a TrackingResult or BatchRunSummary from a JSON file.

    A document with a ``results`` key is read as a summary.
    """
    data = json.loads(Path(filepath).read_text(encoding="utf-8"))
    if "results" in data and "tracking_code" not in data:
        return BatchRunSummary.model_validate(data)
    return TrackingResult.model_validate(data)


def _moment(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def result_row(result: TrackingResult) -> dict:
    """One flat CSV row for a result."""
    return {
        "TrackingCode": result.tracking_code,
        "DeliveryStatus": result.delivery_status.value,
        "DeliveryMoment": _moment(result.delivery_moment),
        "HandoffMoment": _moment(result.handoff_moment),
        "LastUpdateMoment": _moment(result.last_update_moment),
        "Duration": result.duration,
        "DurationDays": "" if result.duration_days is None else result.duration_days,
        "ProcessingTimeMs": round(result.processing_time_ms),
        "Source": result.source or "",
        "Message": result.message or "",
        "StatusTable": STATUS_TABLE_SEPARATOR.join(result.status_table),
    }


def results_to_df(results: list[TrackingResult] | BatchRunSummary) -> pd.DataFrame:
    """
    Convert results to a pandas DataFrame.

    Args:
        results: List of TrackingResults, or a BatchRunSummary

    Returns:
        DataFrame with one row per result and CSV_COLUMNS as columns
    """
    if isinstance(results, BatchRunSummary):
        results = list(results.results)
    return pd.DataFrame([result_row(r) for r in results], columns=CSV_COLUMNS)


def timeline_to_df(result: TrackingResult) -> pd.DataFrame:
    """One row per parsed timeline event of a single result."""
    rows = [
        {
            "tracking_code": result.tracking_code,
            "timestamp": event.timestamp,
            "description": event.description,
            "location": event.location,
        }
        for event in result.timeline_events
    ]
    return pd.DataFrame(rows, columns=["tracking_code", "timestamp", "description", "location"])


def to_csv(results: list[TrackingResult] | BatchRunSummary) -> str:
    """
    Serialize results as CSV.

    Every field is wrapped in double quotes and embedded quotes are doubled.
    """
    return results_to_df(results).to_csv(
        index=False,
        quoting=csv.QUOTE_ALL,
        doublequote=True,
        lineterminator="\n",
    )


def save_csv(
    results: list[TrackingResult] | BatchRunSummary,
    filepath: str | Path,
) -> Path:
    """
    Save results to a CSV file.

    Returns:
        Path to saved file
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_csv(results), encoding="utf-8")
    return path
