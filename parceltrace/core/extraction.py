"""BeautifulSoup-based extraction of status and timeline from tracking pages."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from bs4 import BeautifulSoup, Comment, Tag

from parceltrace.core.timestamps import NAMED_DATE, WEEKDAY_DATE


@dataclass
class RawEvent:
    """Timeline entry as found on the page, before timestamp parsing."""

    date: str
    time: str
    description: str
    location: str | None = None
    timestamp: datetime | None = None

    @property
    def when(self) -> str:
        return f"{self.date} {self.time}".strip()

    @property
    def label(self) -> str:
        return f"{self.when} - {self.description}"


@dataclass
class RawExtraction:
    """Signals pulled out of one page or API response."""

    status_text: str | None = None
    timeline: list[RawEvent] = field(default_factory=list)
    has_valid_data: bool = False
    parse_errors: list[str] = field(default_factory=list)


# Selectors - centralized for easy updates when the carrier changes its DOM
SELECTORS = {
    "status": ".c-tracking-result--status h2",
    "updates": ".c-tracking-result--allshipmentupdates",
    "content_ready": ".c-tracking-result--status, .c-tracking-result--container, [class*='tracking-result']",
}

STATUS_FALLBACK_SELECTORS = [
    'h2[class*="status"]',
    'h2[class*="result"]',
    ".status h2",
    ".result h2",
    ".tracking-status h2",
    '[class*="tracking"] h2',
    '[class*="delivery"] h2',
]

TIMELINE_FALLBACK_SELECTORS = [
    '[class*="shipment"]',
    '[class*="update"]',
    '[class*="timeline"]',
    '[class*="history"]',
    '[class*="tracking"]',
]

BROAD_STATUS_SELECTORS = [
    '[class*="tracking"] [class*="status"]',
    '[class*="delivery"] [class*="status"]',
    '[class*="shipment"] [class*="status"]',
    "h1, h2, h3, h4",
    '[class*="title"]',
    '[class*="headline"]',
    '[class*="result"]',
]

STATUS_WORDS = ("bezorgd", "onderweg", "verwerkt")

BROAD_KEYWORDS = ("bezorgd", "ingepland", "cityhub", "brievenbus", "onderweg", "afgeleverd", "delivered")

# First match wins
LOCATION_KEYWORDS = [
    ("brievenbus", "Brievenbus"),
    ("bezorger", "Bezorger"),
    ("sorteercentrum", "Sorteercentrum"),
    ("cityhub", "CityHub"),
    ("servicepoint", "ServicePoint"),
    ("terminal", "Terminal"),
]

_FULL_MONTHS = "januari|februari|maart|april|mei|juni|juli|augustus|september|oktober|november|december"
DATE_HEADER_RE = re.compile(WEEKDAY_DATE, re.IGNORECASE)
TIME_ONLY_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
SECTION_DATE_RE = re.compile(rf"\d{{1,2}}\s+({_FULL_MONTHS})\s+\d{{4}}", re.IGNORECASE)
PAGE_DATETIME_RE = re.compile(
    rf"(\d{{1,2}}\s+(?:{_FULL_MONTHS})\s+\d{{4}})\s+(\d{{1,2}}:\d{{2}})", re.IGNORECASE
)
BROAD_DATE_RE = re.compile(
    rf"\b(\d{{1,2}}\s+(?:{_FULL_MONTHS})\s+\d{{4}})(?:\s+om\s+(\d{{1,2}}:\d{{2}}))?\b", re.IGNORECASE
)

DESCRIPTION_LOOKAHEAD = 4
MIN_DESCRIPTION_LENGTH = 6


def classify_location(description: str) -> str | None:
    """Map an event description to a coarse location label."""
    desc = description.lower()
    for keyword, label in LOCATION_KEYWORDS:
        if keyword in desc:
            return label
    return None


def text_nodes(element: Tag) -> list[str]:
    """All non-empty, stripped text nodes under element in document order."""
    nodes = []
    for string in element.find_all(string=True):
        if isinstance(string, Comment):
            continue
        if string.parent is not None and string.parent.name in ("script", "style", "noscript"):
            continue
        text = string.strip()
        if text:
            nodes.append(text)
    return nodes


def events_from_text_nodes(nodes: list[str]) -> list[RawEvent]:
    """
    Pair date headers and time lines into events.

    A date header ("dinsdag 14 januari 2025") sets the current date. A line
    holding only a time, seen while a date is current, becomes an event whose
    description is the next non-time node of reasonable length within a short
    lookahead window.
    """
    events = []
    current_date = ""

    for i, text in enumerate(nodes):
        header = DATE_HEADER_RE.search(text)
        if header:
            day, month, year = header.groups()
            current_date = f"{day} {month} {year}"
            continue

        time_match = TIME_ONLY_RE.match(text)
        if not time_match or not current_date:
            continue

        description = ""
        for candidate in nodes[i + 1:i + 1 + DESCRIPTION_LOOKAHEAD]:
            if DATE_HEADER_RE.search(candidate):
                break
            if not TIME_ONLY_RE.match(candidate) and len(candidate) >= MIN_DESCRIPTION_LENGTH:
                description = candidate
                break
        if not description:
            continue

        events.append(RawEvent(
            date=current_date,
            time=f"{time_match.group(1)}:{time_match.group(2)}",
            description=description,
            location=classify_location(description),
        ))

    return events


class ExtractionStrategy(Protocol):
    """One way of locating the status label and the timeline on a page."""

    name: str

    def find_status_label(self, soup: BeautifulSoup) -> str | None:
        ...

    def find_timeline_events(self, soup: BeautifulSoup) -> list[RawEvent]:
        ...


class ExactSelectorStrategy:
    """The carrier's current markup, matched exactly."""

    name = "exact"

    def find_status_label(self, soup: BeautifulSoup) -> str | None:
        el = soup.select_one(SELECTORS["status"])
        return _element_text(el)

    def find_timeline_events(self, soup: BeautifulSoup) -> list[RawEvent]:
        section = soup.select_one(SELECTORS["updates"])
        if section is None:
            return []
        return events_from_text_nodes(text_nodes(section))


class AttributePatternStrategy:
    """Partial class-name matches, for when the exact markup drifts."""

    name = "attribute_pattern"

    def __init__(self, year_markers: tuple[str, ...] | None = None):
        if year_markers is None:
            year = datetime.now().year
            year_markers = (str(year), str(year - 1))
        self.year_markers = year_markers

    def find_status_label(self, soup: BeautifulSoup) -> str | None:
        for selector in STATUS_FALLBACK_SELECTORS:
            text = _element_text(soup.select_one(selector))
            if text:
                return text
        return None

    def find_timeline_events(self, soup: BeautifulSoup) -> list[RawEvent]:
        for selector in TIMELINE_FALLBACK_SELECTORS:
            section = soup.select_one(selector)
            if section is None:
                continue
            section_text = section.get_text(" ")
            if not any(marker in section_text for marker in self.year_markers):
                continue
            events = events_from_text_nodes(text_nodes(section))
            if events:
                return events
        return []


class KeywordScanStrategy:
    """Last resort: status words in any heading, any container with a date."""

    name = "keyword_scan"

    def find_status_label(self, soup: BeautifulSoup) -> str | None:
        for heading in soup.find_all("h2"):
            text = heading.get_text(" ", strip=True)
            if any(word in text.lower() for word in STATUS_WORDS):
                return text
        return None

    def find_timeline_events(self, soup: BeautifulSoup) -> list[RawEvent]:
        for container in soup.find_all(["div", "section", "article"]):
            if SECTION_DATE_RE.search(container.get_text(" ")):
                return events_from_text_nodes(text_nodes(container))
        return []


def default_strategies() -> list[ExtractionStrategy]:
    return [ExactSelectorStrategy(), AttributePatternStrategy(), KeywordScanStrategy()]


def _element_text(el: Tag | None) -> str | None:
    if el is None:
        return None
    text = el.get_text(" ", strip=True)
    return text or None


def _page_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    return body.get_text(" ", strip=True)


def synthesize_timeline(page_text: str) -> list[RawEvent]:
    """
    Minimal timeline from bare "date time" substrings anywhere on the page.

    The first hit is labelled as received, the last as last update, the rest
    as plain updates.
    """
    matches = PAGE_DATETIME_RE.findall(page_text)
    events = []
    for index, (date, time) in enumerate(matches):
        if index == 0:
            description = "Zending ontvangen"
        elif index == len(matches) - 1:
            description = "Laatste update"
        else:
            description = "Update"
        events.append(RawEvent(date=date, time=time, description=description))
    return events


def extract_tracking_page(
    html: str,
    strategies: list[ExtractionStrategy] | None = None,
) -> RawExtraction:
    """
    Extract status label and timeline from a rendered tracking page.

    Status and timeline each take the first non-empty answer from the
    strategies in order. Without any timeline section the whole page text is
    scanned for date/time pairs.

    Args:
        html: Rendered page HTML
        strategies: Ordered strategies, defaults to exact -> attribute -> keyword

    Returns:
        RawExtraction
    """
    soup = BeautifulSoup(html, "lxml")
    strategies = strategies if strategies is not None else default_strategies()
    extraction = RawExtraction()

    for strategy in strategies:
        try:
            label = strategy.find_status_label(soup)
        except Exception as e:
            extraction.parse_errors.append(f"{strategy.name} status: {e}")
            continue
        if label:
            extraction.status_text = label
            break

    for strategy in strategies:
        try:
            events = strategy.find_timeline_events(soup)
        except Exception as e:
            extraction.parse_errors.append(f"{strategy.name} timeline: {e}")
            continue
        if events:
            extraction.timeline = events
            break

    if not extraction.timeline:
        extraction.timeline = synthesize_timeline(_page_text(soup))

    extraction.has_valid_data = bool(extraction.status_text) or bool(extraction.timeline)
    return extraction


def extract_broad(html: str, tracking_code: str) -> RawExtraction:
    """
    Loose whole-page scrape: headline-ish texts, status keywords and every
    date found anywhere.

    Each distinct date occurrence becomes an event, so the event count is a
    rough measure of how much tracking history the page exposed.
    """
    soup = BeautifulSoup(html, "lxml")
    page_text = _page_text(soup)
    extraction = RawExtraction()

    status_texts: list[str] = []
    for selector in BROAD_STATUS_SELECTORS:
        for el in soup.select(selector):
            text = el.get_text(" ", strip=True)
            if 3 < len(text) < 200 and text not in status_texts:
                status_texts.append(text)

    lowered = page_text.lower()
    found_keywords = [k for k in BROAD_KEYWORDS if k in lowered]
    combined = " ".join(status_texts + found_keywords).lower()

    if "ingepland" in combined or "cityhub" in combined:
        extraction.status_text = "onderweg"
    elif "bezorgd" in combined or "delivered" in combined:
        extraction.status_text = "bezorgd"
    elif "onderweg" in combined or "transit" in combined:
        extraction.status_text = "onderweg"

    seen: set[tuple[str, str, str]] = set()
    for string in soup.find_all(string=BROAD_DATE_RE):
        text = string.strip()
        for match in BROAD_DATE_RE.finditer(text):
            date, time = match.group(1), match.group(2) or ""
            description = text if len(text) < 200 else text[:200]
            key = (date.lower(), time, description)
            if key in seen:
                continue
            seen.add(key)
            extraction.timeline.append(RawEvent(
                date=date,
                time=time,
                description=description,
                location=classify_location(description),
            ))

    extraction.has_valid_data = tracking_code in page_text and len(page_text) >= 1000
    return extraction
