from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Response
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import RuntimeSettings
from .config_schema import BrowserConfig
from .errors import BrowserError


class CapturedResponse(Protocol):
    @property
    def url(self) -> str: ...

    async def text(self) -> str: ...


ResponseHandler = Callable[[CapturedResponse], Awaitable[None]]
ResponsePredicate = Callable[[CapturedResponse], bool]


class BrowserDriver(Protocol):
    """The browser capability the pipeline runs against."""

    def on_response(self, handler: ResponseHandler) -> None: ...

    async def navigate(self, url: str, *, wait_until: str, timeout_ms: int) -> None: ...

    async def wait_for_response(
        self, predicate: ResponsePredicate, *, timeout_ms: int
    ) -> None: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def settle(self) -> None: ...

    async def close(self) -> None: ...


DriverFactory = Callable[[], Awaitable[BrowserDriver]]


class PlaywrightDriver:
    """
    BrowserDriver backed by a single Playwright page.

    Response handlers run as tasks on the page's event loop; `settle()` waits for the
    ones already scheduled. Playwright timeouts surface as builtin TimeoutError and
    other driver failures as BrowserError.
    """

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._pending: set[asyncio.Task[None]] = set()
        self._closed = False

    def on_response(self, handler: ResponseHandler) -> None:
        def _listener(response: Response) -> None:
            task = asyncio.ensure_future(handler(response))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        self._page.on("response", _listener)

    async def navigate(self, url: str, *, wait_until: str, timeout_ms: int) -> None:
        try:
            await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)  # type: ignore[arg-type]
        except PlaywrightTimeoutError as e:
            raise TimeoutError(f"Navigation timed out after {timeout_ms}ms: {url}") from e
        except PlaywrightError as e:
            raise BrowserError(f"Navigation failed for {url}: {e.message}") from e

    async def wait_for_response(
        self, predicate: ResponsePredicate, *, timeout_ms: int
    ) -> None:
        try:
            await self._page.wait_for_event("response", predicate=predicate, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise TimeoutError(f"No matching response within {timeout_ms}ms") from e
        except PlaywrightError as e:
            raise BrowserError(f"Waiting for a response failed: {e.message}") from e

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    async def settle(self) -> None:
        if not self._pending:
            return
        await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.settle()
        try:
            await self._context.close()
            await self._browser.close()
        finally:
            await self._playwright.stop()


async def launch_playwright_driver(
    browser_cfg: BrowserConfig, settings: RuntimeSettings
) -> PlaywrightDriver:
    """Start Playwright, launch Chromium (or the configured executable) and open one page."""
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(
            headless=browser_cfg.headless,
            executable_path=settings.executable_path,
            args=list(browser_cfg.launch_args),
        )
        context = await browser.new_context(
            user_agent=browser_cfg.user_agent,
            viewport={
                "width": browser_cfg.viewport.width,
                "height": browser_cfg.viewport.height,
            },
            extra_http_headers={"Accept-Language": browser_cfg.accept_language},
        )
        page = await context.new_page()
    except PlaywrightError as e:
        await playwright.stop()
        raise BrowserError(f"Failed to launch browser: {e.message}") from e

    return PlaywrightDriver(playwright, browser, context, page)
