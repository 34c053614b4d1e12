"""Shared Playwright browser with lazy start, idle recycling and per-call pages."""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Error as PlaywrightError,
)

from parceltrace.config import TrackerConfig
from parceltrace.exceptions import ResourceUnavailableError
from parceltrace.logging import get_logger

BASE_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--disable-gpu",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
]

# Extra flags for constrained runtimes (Lambda and similar) where /tmp is
# the only writable path and there is a single process slot.
SERVERLESS_ARGS = [
    "--no-zygote",
    "--single-process",
    "--disable-extensions",
]

Launcher = Callable[[TrackerConfig], Awaitable[Browser]]


class BrowserPool:
    """
    Owns one browser instance shared by all acquisitions.

    The browser is started on first demand, reused while connected, and closed
    after ``pool_idle_timeout_s`` without use. Pages are never shared: each
    caller gets a fresh context through ``page()``.

    Example:
        async with BrowserPool(config) as pool:
            async with pool.page() as page:
                await page.goto(url)
    """

    def __init__(self, config: TrackerConfig | None = None, launcher: Launcher | None = None):
        """
        Args:
            config: TrackerConfig instance, uses defaults if None
            launcher: Coroutine function that starts a browser. Defaults to
                Playwright Chromium; tests pass an in-memory fake.
        """
        self.config = config or TrackerConfig()
        self.idle_timeout = self.config.pool_idle_timeout_s
        self._launcher = launcher or self._launch_chromium
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._init_task: asyncio.Task | None = None
        self._sweeper: asyncio.Task | None = None
        self.last_used_at = time.monotonic()
        self._log = get_logger("pool")

    async def __aenter__(self) -> "BrowserPool":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def acquire(self) -> Browser:
        """
        Return the live browser, starting one if needed.

        Concurrent callers during startup all await the same launch.

        Raises:
            ResourceUnavailableError: If the browser cannot be started
        """
        self.last_used_at = time.monotonic()

        if self.is_connected:
            return self._browser

        if self._init_task is None:
            self._init_task = asyncio.create_task(self._start())
        task = self._init_task
        try:
            browser = await asyncio.shield(task)
        finally:
            if self._init_task is task and task.done():
                self._init_task = None
        return browser

    async def _start(self) -> Browser:
        self._log.info("browser_starting", serverless=self.config.is_serverless)
        try:
            browser = await self._launcher(self.config)
        except PlaywrightError as e:
            raise ResourceUnavailableError(f"Browser launch failed: {e}") from e
        except OSError as e:
            raise ResourceUnavailableError(f"Browser executable unavailable: {e}") from e

        browser.on("disconnected", self._on_disconnected)
        self._browser = browser
        self._log.info("browser_started")
        return browser

    def _on_disconnected(self, browser: Browser) -> None:
        if browser is self._browser:
            self._log.warning("browser_disconnected")
            self._browser = None

    async def _launch_chromium(self, config: TrackerConfig) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        args = list(BASE_ARGS)
        if config.is_serverless:
            args.extend(SERVERLESS_ARGS)

        launch_options: dict = {"headless": config.headless, "args": args}
        if config.browser_executable_path:
            launch_options["executable_path"] = config.browser_executable_path

        return await self._playwright.chromium.launch(**launch_options)

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """
        Open an isolated context and page with a realistic client identity.

        The context is closed on exit whatever happens inside the block; the
        shared browser stays up. A browser that went stale between acquire and
        use is replaced once.
        """
        context = await self._new_context()
        try:
            yield await context.new_page()
        finally:
            self.last_used_at = time.monotonic()
            try:
                await context.close()
            except PlaywrightError as e:
                self._log.debug("context_close_failed", error=str(e))

    async def _new_context(self) -> BrowserContext:
        options = {
            "viewport": {
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            "user_agent": self.config.user_agent,
            "locale": self.config.locale,
            "extra_http_headers": {
                "Accept-Language": self.config.accept_language,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            },
        }
        browser = await self.acquire()
        try:
            return await browser.new_context(**options)
        except PlaywrightError:
            if browser.is_connected():
                raise
            self._log.warning("browser_stale_reacquiring")
            if self._browser is browser:
                self._browser = None
            browser = await self.acquire()
            return await browser.new_context(**options)

    async def cleanup_idle(self) -> bool:
        """
        Close the browser if it has been idle longer than the timeout.

        Returns:
            True if a browser was closed
        """
        idle_for = time.monotonic() - self.last_used_at
        if self._browser is None or idle_for <= self.idle_timeout:
            return False
        self._log.info("browser_idle_cleanup", idle_seconds=round(idle_for, 1))
        await self._close_browser()
        return True

    def start_sweeper(self, interval_s: float | None = None) -> None:
        """Run cleanup_idle periodically in the background until close()."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        interval = interval_s if interval_s is not None else self.idle_timeout / 2
        self._sweeper = asyncio.create_task(self._sweep(interval))

    async def _sweep(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.cleanup_idle()

    async def _close_browser(self) -> None:
        browser, self._browser = self._browser, None
        if browser is None:
            return
        try:
            await browser.close()
        except PlaywrightError as e:
            self._log.debug("browser_close_failed", error=str(e))

    async def close(self) -> None:
        """Close browser and Playwright driver. Safe to call repeatedly."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

        if self._init_task is not None and not self._init_task.done():
            try:
                await self._init_task
            except ResourceUnavailableError:
                pass
        self._init_task = None

        await self._close_browser()

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
