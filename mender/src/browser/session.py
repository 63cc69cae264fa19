"""Playwright-backed browser driver and per-run sessions."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from mender.src.browser.executor import execute_step, run_script, seed_namespace
from mender.src.browser.page_info import get_page_state
from mender.src.utils.config import CONFIG, BrowserConfig
from mender.src.utils.models import PageState

logger = logging.getLogger(__name__)


async def _close_quietly(resource: Any, label: str) -> None:
    try:
        await resource.close()
    except Exception as exc:
        logger.debug("[PlaywrightDriver] %s close failed: %s", label, exc)


class StepNamespace(Protocol):
    namespace: Dict[str, Any]


class BrowserSession(Protocol):
    async def run(self, code: str, context: StepNamespace) -> None: ...

    async def run_script(self, script: str) -> None: ...

    async def current_state(self) -> PageState: ...

    async def close(self) -> None: ...


class BrowserDriver(Protocol):
    async def start(self) -> None: ...

    async def open_session(self, config: Optional[BrowserConfig] = None) -> BrowserSession: ...

    async def stop(self) -> None: ...


class PlaywrightSession:
    """One isolated browser context with a single page."""

    def __init__(
        self,
        page: Page,
        context: BrowserContext,
        browser: Browser,
        config: BrowserConfig,
        *,
        owns_browser: bool = False,
    ) -> None:
        self.page = page
        self.context = context
        self.browser = browser
        self.config = config
        self._owns_browser = owns_browser
        self._closed = False

    async def run(self, code: str, context: StepNamespace) -> None:
        seed_namespace(context.namespace, page=self.page, context=self.context, browser=self.browser)
        await execute_step(
            self.page,
            code,
            context.namespace,
            step_timeout_ms=self.config.step_timeout_ms,
            default_timeout_ms=self.config.default_timeout_ms,
            hard_timeout=self.config.step_hard_timeout,
        )

    async def run_script(self, script: str) -> None:
        await run_script(script, page=self.page, context=self.context, browser=self.browser)

    async def current_state(self) -> PageState:
        return await get_page_state(self.page)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.context.close()
        finally:
            if self._owns_browser:
                await self.browser.close()


class PlaywrightDriver:
    """Owns one Playwright instance and a launched browser."""

    def __init__(self, config: Optional[BrowserConfig] = None) -> None:
        self.config = config or CONFIG.browser
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def start(self) -> None:
        if self._browser is not None:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._launch(self.config)
        logger.info(
            "[PlaywrightDriver] launched %s (headless=%s)", self.config.browser_type, self.config.headless
        )

    async def _launch(self, config: BrowserConfig) -> Browser:
        assert self._playwright is not None
        launcher = getattr(self._playwright, config.browser_type, None) or self._playwright.chromium
        return await launcher.launch(headless=config.headless)

    async def open_session(self, config: Optional[BrowserConfig] = None) -> PlaywrightSession:
        config = config or self.config
        await self.start()
        assert self._browser is not None

        browser = self._browser
        owns_browser = False
        if config.headless != self.config.headless or config.browser_type != self.config.browser_type:
            browser = await self._launch(config)
            owns_browser = True

        context: Optional[BrowserContext] = None
        try:
            context = await browser.new_context(
                viewport={"width": config.viewport_width, "height": config.viewport_height},
                **config.context_options,
            )
            page = await context.new_page()
            page.set_default_timeout(config.default_timeout_ms)
        except Exception:
            if context is not None:
                await _close_quietly(context, "context")
            if owns_browser:
                await _close_quietly(browser, "browser")
            raise
        return PlaywrightSession(page, context, browser, config, owns_browser=owns_browser)

    async def stop(self) -> None:
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        if browser is not None:
            await _close_quietly(browser, "browser")
        if playwright is not None:
            await playwright.stop()
