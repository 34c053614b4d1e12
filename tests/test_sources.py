"""Unit tests for acquisition sources - scripted fake pages, no browser."""

from pathlib import Path

import httpx
import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from parceltrace.core.carrier_api import CarrierApiClient
from parceltrace.core.extraction import RawExtraction
from parceltrace.core.sources import (
    CONSENT_SELECTORS,
    EXPAND_SELECTORS,
    Acquisition,
    BroadScrapeSource,
    CarrierApiSource,
    TrackingPageSource,
)
from parceltrace.exceptions import ExtractionError, NavigationTimeoutError, TrackingNotFoundError
from parceltrace.models.tracking import DeliveryStatus

from fakes import FakePage, FakePool


FIXTURES_DIR = Path(__file__).parent / "fixtures"
CODE = "3SDFC0681190456"


def load_fixture_html(name: str) -> str:
    return (FIXTURES_DIR / f"{name}.html").read_text(encoding="utf-8")


def broad_html(events: int) -> str:
    items = "".join(f"<li>Scan {i} op {i % 28 + 1} januari 2025 om 10:{i % 60:02d}</li>" for i in range(events))
    filler = "Informatie over uw zending. " * 50
    return f"<html><body><h2>Onderweg</h2><p>{CODE}</p><ul>{items}</ul><p>{filler}</p></body></html>"


class TestCarrierApiSource:
    """Structured API as the first source."""

    @pytest.mark.asyncio
    async def test_quality_is_event_count(self, fast_config):
        payload = (FIXTURES_DIR / "api_delivered.json").read_text(encoding="utf-8")
        config = fast_config.model_copy(update={"api_key": "k"})
        client = CarrierApiClient(config, transport=httpx.MockTransport(lambda r: httpx.Response(200, text=payload)))

        async with client:
            acquisition = await CarrierApiSource(client).acquire(CODE)

        assert acquisition.quality == 4
        assert acquisition.source == "carrier_api"

    @pytest.mark.asyncio
    async def test_not_found_propagates(self, fast_config):
        config = fast_config.model_copy(update={"api_key": "k"})
        client = CarrierApiClient(config, transport=httpx.MockTransport(lambda r: httpx.Response(404)))

        async with client:
            with pytest.raises(TrackingNotFoundError):
                await CarrierApiSource(client).acquire(CODE)

    def test_accepts_any_events(self):
        source = CarrierApiSource(client=None)
        assert source.accepts(Acquisition(RawExtraction(), 1, "carrier_api"), DeliveryStatus.IN_TRANSIT)
        assert not source.accepts(Acquisition(RawExtraction(), 0, "carrier_api"), DeliveryStatus.NOT_FOUND)


class TestBroadScrapeSource:
    """Loose scrape, trusted only above the event threshold."""

    @pytest.mark.asyncio
    async def test_acquire(self, fast_config):
        pool = FakePool(lambda: FakePage({CODE: broad_html(60)}), fast_config)
        acquisition = await BroadScrapeSource(pool, fast_config).acquire(CODE)

        assert acquisition.quality == 60
        assert acquisition.raw.status_text == "onderweg"
        assert pool.pages[0].visited == [fast_config.tracking_urls[0].format(code=CODE)]

    def test_threshold(self, fast_config):
        source = BroadScrapeSource(FakePool(lambda: FakePage({}), fast_config), fast_config)

        assert source.accepts(Acquisition(RawExtraction(), 51, "broad_scrape"), DeliveryStatus.IN_TRANSIT)
        assert not source.accepts(Acquisition(RawExtraction(), 50, "broad_scrape"), DeliveryStatus.IN_TRANSIT)
        assert not source.accepts(Acquisition(RawExtraction(), 80, "broad_scrape"), DeliveryStatus.ERROR)

    @pytest.mark.asyncio
    async def test_navigation_timeout(self, fast_config):
        page = FakePage({CODE: PlaywrightTimeoutError("Timeout 30000ms exceeded")})
        source = BroadScrapeSource(FakePool(lambda: page, fast_config), fast_config)

        with pytest.raises(NavigationTimeoutError):
            await source.acquire(CODE)


class TestTrackingPageSource:
    """Full tracking page with consent handling and alternate URLs."""

    @pytest.mark.asyncio
    async def test_extracts_fixture(self, fast_config):
        pool = FakePool(lambda: FakePage({CODE: load_fixture_html("tracking_delivered")}), fast_config)
        acquisition = await TrackingPageSource(pool, fast_config).acquire(CODE)

        assert acquisition.raw.status_text == "Bezorgd"
        assert acquisition.quality == 4
        assert pool.pages[0].visited == [fast_config.tracking_urls[0].format(code=CODE)]

    @pytest.mark.asyncio
    async def test_accepts_consent_and_expands(self, fast_config):
        clickable = {CONSENT_SELECTORS[0]: 1, EXPAND_SELECTORS[0]: 2}
        page = FakePage({CODE: load_fixture_html("tracking_delivered")}, clickable=clickable)

        await TrackingPageSource(FakePool(lambda: page, fast_config), fast_config).acquire(CODE)

        assert page.clicked.count(CONSENT_SELECTORS[0]) == 1
        assert page.clicked.count(EXPAND_SELECTORS[0]) == 2

    @pytest.mark.asyncio
    async def test_tries_alternate_url_after_failed_navigation(self, fast_config):
        primary = fast_config.tracking_urls[0].format(code=CODE)
        alternate = fast_config.tracking_urls[1].format(code=CODE)
        page = FakePage({
            primary: PlaywrightTimeoutError("Timeout 30000ms exceeded"),
            alternate: load_fixture_html("tracking_delivered"),
        })

        acquisition = await TrackingPageSource(FakePool(lambda: page, fast_config), fast_config).acquire(CODE)

        assert page.visited[:2] == [primary, alternate]
        assert acquisition.raw.status_text == "Bezorgd"

    @pytest.mark.asyncio
    async def test_tries_alternate_url_after_redirect(self, fast_config):
        page = FakePage(
            {"": "<html><body><h1>Welkom bij DHL</h1></body></html>"},
            landed_url="https://www.dhl.com/nl-nl/home.html",
        )

        with pytest.raises(ExtractionError):
            await TrackingPageSource(FakePool(lambda: page, fast_config), fast_config).acquire(CODE)

        assert len(page.visited) == len(fast_config.tracking_urls)

    @pytest.mark.asyncio
    async def test_all_urls_time_out(self, fast_config):
        page = FakePage({"": PlaywrightTimeoutError("Timeout 30000ms exceeded")})

        with pytest.raises(NavigationTimeoutError):
            await TrackingPageSource(FakePool(lambda: page, fast_config), fast_config).acquire(CODE)

    def test_always_accepts(self, fast_config):
        source = TrackingPageSource(FakePool(lambda: FakePage({}), fast_config), fast_config)
        assert source.accepts(Acquisition(RawExtraction(), 0, "tracking_page"), DeliveryStatus.ERROR)
