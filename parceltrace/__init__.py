"""parceltrace - parcel delivery tracking via carrier API and page automation."""

from parceltrace.models.tracking import DeliveryStatus, TimelineEvent, TrackingResult
from parceltrace.models.summary import BatchRunSummary
from parceltrace.config import TrackerConfig
from parceltrace.core.orchestrator import Tracker
from parceltrace.core.batch import BatchOptions, BatchRunner
from parceltrace.core.timestamps import parse_timestamp
from parceltrace.core.exporter import to_json, to_dict, save_json, load_json, to_csv, save_csv, results_to_df

__version__ = "0.1.0"

__all__ = [
    # Main interface
    "Tracker",
    "BatchRunner",
    "BatchOptions",
    "TrackerConfig",
    "parse_timestamp",
    # Models
    "DeliveryStatus",
    "TimelineEvent",
    "TrackingResult",
    "BatchRunSummary",
    # Export utilities
    "to_json",
    "to_dict",
    "save_json",
    "load_json",
    "to_csv",
    "save_csv",
    "results_to_df",
    "__version__",
]
