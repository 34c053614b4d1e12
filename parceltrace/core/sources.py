"""Ordered acquisition strategies: carrier API first, then browser scrapes."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass

from playwright.async_api import Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from parceltrace.config import TrackerConfig
from parceltrace.core.carrier_api import CarrierApiClient
from parceltrace.core.extraction import SELECTORS, RawExtraction, extract_broad, extract_tracking_page
from parceltrace.core.pool import BrowserPool
from parceltrace.exceptions import ExtractionError, NavigationError, NavigationTimeoutError
from parceltrace.logging import get_logger
from parceltrace.models.tracking import DeliveryStatus

CONSENT_SELECTORS = [
    "#onetrust-accept-btn-handler",
    "button:has-text('Alle cookies accepteren')",
    "button:has-text('Accepteer alle cookies')",
    "button:has-text('Accept All')",
]

LOCALE_SELECTORS = [
    "a:has-text('Nederland - Nederlands')",
    "button:has-text('Doorgaan')",
]

EXPAND_SELECTORS = [
    "button:has-text('Meer details over zending')",
    "h3:has-text('Alle zending updates') >> xpath=..",
]

BROAD_WAIT_SELECTOR = ".c-tracking-result--container, .js--tracking-result--container, [class*='tracking-result'], [class*='error']"


@dataclass
class Acquisition:
    """What a source brought back, with a richness score."""

    raw: RawExtraction
    quality: int
    source: str


class AcquisitionSource(ABC):
    """One way to obtain tracking data for a code."""

    name: str = "source"

    @abstractmethod
    async def acquire(self, tracking_code: str) -> Acquisition:
        """
        Obtain raw tracking signals.

        Raises:
            ParcelTraceError subclasses on failure
        """
        ...

    @abstractmethod
    def accepts(self, acquisition: Acquisition, status: DeliveryStatus) -> bool:
        """Whether the result is good enough to stop trying further sources."""
        ...


class CarrierApiSource(AcquisitionSource):
    """Authoritative structured API. Accepted whenever it returns events."""

    name = "carrier_api"

    def __init__(self, client: CarrierApiClient):
        self.client = client

    async def acquire(self, tracking_code: str) -> Acquisition:
        raw = await self.client.fetch(tracking_code)
        return Acquisition(raw=raw, quality=len(raw.timeline), source=self.name)

    def accepts(self, acquisition: Acquisition, status: DeliveryStatus) -> bool:
        return acquisition.quality >= 1


class BrowserSource(AcquisitionSource):
    """Shared plumbing for sources that drive a pooled browser page."""

    def __init__(self, pool: BrowserPool, config: TrackerConfig | None = None):
        self.pool = pool
        self.config = config or pool.config
        self._log = get_logger(self.name)

    def tracking_url(self, tracking_code: str, index: int = 0) -> str:
        return self.config.tracking_urls[index].format(code=tracking_code)

    async def _goto(self, page: Page, url: str, wait_until: str = "domcontentloaded") -> None:
        self._log.debug("navigating", url=url)
        try:
            await page.goto(url, wait_until=wait_until, timeout=self.config.navigation_timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(f"Navigation to {url} timed out") from e
        except PlaywrightError as e:
            raise NavigationError(f"Navigation to {url} failed: {e}") from e

    async def _wait_for_content(self, page: Page, selector: str) -> bool:
        """
        Wait for selector or the fallback budget, whichever comes first.

        Returns:
            True if the selector appeared
        """
        try:
            await asyncio.wait_for(
                page.wait_for_selector(selector, timeout=self.config.selector_timeout_ms),
                timeout=self.config.fallback_wait_ms / 1000,
            )
            return True
        except (PlaywrightTimeoutError, asyncio.TimeoutError):
            self._log.debug("content_selector_missing", selector=selector)
            return False

    async def _click_first(self, page: Page, selectors: list[str], timeout_ms: int = 2000) -> bool:
        for selector in selectors:
            locator = page.locator(selector)
            try:
                if await locator.count() == 0:
                    continue
                await locator.first.click(timeout=timeout_ms)
                return True
            except PlaywrightError as e:
                self._log.debug("click_failed", selector=selector, error=str(e))
        return False


class BroadScrapeSource(BrowserSource):
    """
    Loose whole-page scrape. Only trusted when it surfaces a lot of history.
    """

    name = "broad_scrape"

    async def acquire(self, tracking_code: str) -> Acquisition:
        async with self.pool.page() as page:
            await self._goto(page, self.tracking_url(tracking_code), wait_until="networkidle")
            await self._wait_for_content(page, BROAD_WAIT_SELECTOR)
            await asyncio.sleep(self.config.animation_wait_ms / 1000)
            html = await page.content()

        raw = extract_broad(html, tracking_code)
        self._log.info(
            "broad_extracted",
            status_text=raw.status_text,
            events=len(raw.timeline),
            valid=raw.has_valid_data,
        )
        return Acquisition(raw=raw, quality=len(raw.timeline), source=self.name)

    def accepts(self, acquisition: Acquisition, status: DeliveryStatus) -> bool:
        return (
            status != DeliveryStatus.ERROR
            and acquisition.quality > self.config.broad_scrape_min_events
        )


class TrackingPageSource(BrowserSource):
    """
    Full tracking page scrape with consent handling and alternate URLs.

    This is the final source and its result is always taken.
    """

    name = "tracking_page"

    async def acquire(self, tracking_code: str) -> Acquisition:
        async with self.pool.page() as page:
            html = await self._load_tracking_page(page, tracking_code)

        raw = extract_tracking_page(html)
        if raw.parse_errors:
            self._log.warning("extraction_partial", errors=raw.parse_errors)
        self._log.info(
            "page_extracted",
            status_text=raw.status_text,
            events=len(raw.timeline),
        )
        return Acquisition(raw=raw, quality=len(raw.timeline), source=self.name)

    def accepts(self, acquisition: Acquisition, status: DeliveryStatus) -> bool:
        return True

    async def _load_tracking_page(self, page: Page, tracking_code: str) -> str:
        last_error: Exception | None = None

        for index in range(len(self.config.tracking_urls)):
            url = self.tracking_url(tracking_code, index)
            try:
                await self._goto(page, url)
            except NavigationError as e:
                last_error = e
                self._log.warning("navigation_failed", url=url, error=str(e))
                continue

            await self._handle_consent(page)

            if not await self._on_tracking_page(page, tracking_code):
                self._log.warning("unexpected_page", url=url, landed=page.url)
                last_error = ExtractionError(f"Landed on unexpected page {page.url}")
                continue

            await self._wait_for_content(page, SELECTORS["content_ready"])
            await self._expand_details(page)
            return await page.content()

        raise last_error or ExtractionError("No tracking URL configured")

    async def _handle_consent(self, page: Page) -> None:
        if await self._click_first(page, CONSENT_SELECTORS):
            self._log.debug("cookie_consent_accepted")
        if await self._click_first(page, LOCALE_SELECTORS):
            self._log.debug("locale_selected")

    async def _on_tracking_page(self, page: Page, tracking_code: str) -> bool:
        if tracking_code in page.url:
            return True
        html = await page.content()
        return tracking_code in html

    async def _expand_details(self, page: Page) -> None:
        for selector in EXPAND_SELECTORS:
            locator = page.locator(selector)
            try:
                count = await locator.count()
                for i in range(count):
                    await locator.nth(i).click(timeout=2000)
            except PlaywrightError as e:
                self._log.debug("expand_failed", selector=selector, error=str(e))

        # Let expand animations settle
        await asyncio.sleep(self.config.animation_wait_ms / 1000)
