"""Parsing of localized (Dutch) carrier date strings into aware datetimes."""

import re
from datetime import datetime, timedelta, timezone

MONTHS = {
    "januari": 1, "jan": 1,
    "februari": 2, "feb": 2,
    "maart": 3, "mrt": 3, "mar": 3,
    "april": 4, "apr": 4,
    "mei": 5,
    "juni": 6, "jun": 6,
    "juli": 7, "jul": 7,
    "augustus": 8, "aug": 8,
    "september": 9, "sep": 9,
    "oktober": 10, "okt": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

_MONTH_NAMES = (
    "januari|februari|maart|april|mei|juni|juli|augustus|september|oktober|november|december"
    "|jan|feb|mar|mrt|apr|jun|jul|aug|sep|okt|oct|nov|dec"
)
_WEEKDAYS = "maandag|dinsdag|woensdag|donderdag|vrijdag|zaterdag|zondag|ma|di|wo|do|vr|za|zo"

NAMED_DATE = rf"(\d{{1,2}})\s+({_MONTH_NAMES})\s+(\d{{4}})"
WEEKDAY_DATE = rf"(?:{_WEEKDAYS})\s+{NAMED_DATE}"
TIME = r"(?:\s+om)?\s+(\d{1,2}):(\d{2})"

# Richest to leanest. The first group layout is day/month-name/year,
# then day/month/year, then year/month/day.
_NAMED_PATTERNS = [
    re.compile(rf"\b{WEEKDAY_DATE}{TIME}", re.IGNORECASE),
    re.compile(rf"\b{NAMED_DATE}{TIME}", re.IGNORECASE),
    re.compile(rf"\b{WEEKDAY_DATE}", re.IGNORECASE),
    re.compile(rf"\b{NAMED_DATE}", re.IGNORECASE),
]
_NUMERIC_PATTERNS = [
    re.compile(r"\b(\d{1,2})[-/](\d{1,2})[-/](\d{4})\s+(\d{1,2}):(\d{2})"),
    re.compile(r"\b(\d{1,2})[-/](\d{1,2})[-/](\d{4})"),
]
_ISO_PATTERNS = [
    re.compile(r"\b(\d{4})[-/](\d{1,2})[-/](\d{1,2})[T\s]+(\d{1,2}):(\d{2})"),
    re.compile(r"\b(\d{4})[-/](\d{1,2})[-/](\d{1,2})"),
]

WINTER_OFFSET = timedelta(hours=1)
SUMMER_OFFSET = timedelta(hours=2)


def carrier_offset(month: int, day: int) -> timedelta:
    """
    Fixed seasonal UTC offset for carrier wall-clock times.

    Summer time is assumed from 25 March up to (not including) 25 October.
    This is an approximation of Europe/Amsterdam: real DST transitions fall on
    the last Sunday of March and October, so times near those boundaries can
    be off by one hour.
    """
    is_winter = (
        month < 3
        or month > 10
        or (month == 3 and day < 25)
        or (month == 10 and day >= 25)
    )
    return WINTER_OFFSET if is_winter else SUMMER_OFFSET


def localize(naive: datetime) -> datetime:
    """Attach the seasonal carrier offset to a naive wall-clock datetime."""
    offset = carrier_offset(naive.month, naive.day)
    return naive.replace(tzinfo=timezone(offset))


def _build(year: int, month: int, day: int, hour: int, minute: int) -> datetime | None:
    if not (1 <= month <= 12 and 1 <= day <= 31 and year >= 2000):
        return None
    try:
        naive = datetime(year, month, day, hour, minute)
    except ValueError:
        # 30 februari, 25:00 and friends
        return None
    return localize(naive).astimezone(timezone.utc)


def _groups(match: re.Match) -> tuple[str, ...]:
    groups = match.groups()
    return groups + (None,) * (5 - len(groups))


def parse_timestamp(text: str | None) -> datetime | None:
    """
    Parse the first recognizable date (and optional time) in free text.

    Supported, in priority order:
        - "dinsdag 14 januari 2025 14:30"
        - "14 januari 2025 14:30" (also "14 januari 2025 om 14:30")
        - "dinsdag 14 januari 2025"
        - "14 januari 2025"
        - "14-01-2025 14:30" / "14/01/2025 14:30"
        - "14-01-2025" / "14/01/2025"
        - "2025-01-14 14:30" / "2025-01-14T14:30"
        - "2025-01-14"

    Returns:
        UTC datetime, or None when nothing valid is found
    """
    if not text or not text.strip():
        return None

    for pattern in _NAMED_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        day, month_name, year, hour, minute = _groups(match)
        month = MONTHS.get(month_name.lower())
        if month is None:
            continue
        # A structural match that fails validation is final
        return _build(int(year), month, int(day), int(hour or 0), int(minute or 0))

    for pattern in _NUMERIC_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        day, month, year, hour, minute = _groups(match)
        return _build(int(year), int(month), int(day), int(hour or 0), int(minute or 0))

    for pattern in _ISO_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        year, month, day, hour, minute = _groups(match)
        return _build(int(year), int(month), int(day), int(hour or 0), int(minute or 0))

    return None


def parse_iso_timestamp(text: str | None) -> datetime | None:
    """
    Parse an ISO 8601 timestamp as returned by the carrier API.

    Timestamps without an offset are treated as carrier wall-clock time.
    Falls back to parse_timestamp for anything fromisoformat rejects.
    """
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    except ValueError:
        return parse_timestamp(text)
    if parsed.tzinfo is None:
        parsed = localize(parsed)
    return parsed.astimezone(timezone.utc)
