from __future__ import annotations

import asyncio
import contextlib
from typing import Any, AsyncIterator, Awaitable, Callable

from loguru import logger
from playwright.async_api import async_playwright

from webscout.config import settings

LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
    "--window-size=1366,768",
)

# Returns (browser, driver); driver is stopped after the browser closes and may be None.
Launcher = Callable[[], Awaitable[tuple[Any, Any]]]


async def launch_chromium() -> tuple[Any, Any]:
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(
            headless=settings.browser_headless,
            executable_path=settings.browser_executable_path or None,
            args=list(LAUNCH_ARGS),
            timeout=settings.browser_launch_timeout_ms,
        )
    except Exception:
        await playwright.stop()
        raise
    return browser, playwright


class BrowserManager:
    """One lazily launched browser shared by every dynamic extraction.

    Concurrent first callers wait on the same launch. Each checkout cancels
    the idle timer; when the last checkout is released a new timer starts and
    closes the browser after ``idle_timeout`` seconds without use.
    """

    def __init__(
        self,
        *,
        launcher: Launcher | None = None,
        idle_timeout: float | None = None,
    ):
        self._launcher = launcher or launch_chromium
        self.idle_timeout = settings.browser_idle_timeout_seconds if idle_timeout is None else idle_timeout
        self._browser: Any = None
        self._driver: Any = None
        self._lock = asyncio.Lock()
        self._idle_task: asyncio.Task | None = None
        self._active = 0
        self.launches = 0

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    @property
    def active(self) -> int:
        return self._active

    async def get_browser(self) -> Any:
        if self.is_running:
            return self._browser
        async with self._lock:
            if self.is_running:
                return self._browser
            await self._close_current()
            logger.info("Launching shared browser")
            self._browser, self._driver = await self._launcher()
            self.launches += 1
            return self._browser

    @contextlib.asynccontextmanager
    async def checkout(self) -> AsyncIterator[Any]:
        self._cancel_idle_timer()
        self._active += 1
        try:
            yield await self.get_browser()
        finally:
            self._active -= 1
            if self._active == 0:
                self._schedule_idle_close()

    async def aclose(self) -> None:
        self._cancel_idle_timer()
        async with self._lock:
            await self._close_current()

    def _cancel_idle_timer(self) -> None:
        if self._idle_task is not None and not self._idle_task.done():
            self._idle_task.cancel()
        self._idle_task = None

    def _schedule_idle_close(self) -> None:
        self._cancel_idle_timer()
        self._idle_task = asyncio.create_task(self._close_when_idle())

    async def _close_when_idle(self) -> None:
        await asyncio.sleep(self.idle_timeout)
        # Past the timer a checkout may no longer cancel us; it waits on the lock instead.
        if self._idle_task is asyncio.current_task():
            self._idle_task = None
        if self._active:
            return
        async with self._lock:
            if self._active == 0 and self._browser is not None:
                logger.info(f"Closing shared browser after {self.idle_timeout:.0f}s idle")
                await asyncio.shield(self._close_current())

    async def _close_current(self) -> None:
        browser, driver = self._browser, self._driver
        self._browser = None
        self._driver = None
        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:
                logger.warning(f"Browser close failed: {exc}")
        if driver is not None:
            try:
                await driver.stop()
            except Exception as exc:
                logger.warning(f"Browser driver stop failed: {exc}")
