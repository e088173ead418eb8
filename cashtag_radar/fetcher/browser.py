"""Headless Chromium session with a stealth fingerprint profile."""

from __future__ import annotations

import logging

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright_stealth import Stealth

from cashtag_radar.config import ScraperConfig, StealthConfig

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-features=IsolateOrigins,site-per-process",
    "--disable-blink-features=AutomationControlled",
]


class BrowserSession:
    """Owns one Playwright browser, context and page for a scrape run.

    Use as an async context manager::

        async with BrowserSession(scraper_cfg, stealth_cfg) as page:
            ...
    """

    def __init__(self, scraper: ScraperConfig, stealth: StealthConfig) -> None:
        self._scraper = scraper
        self._stealth = stealth
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page | None:
        return self._page

    async def start(self) -> Page:
        profile = Stealth(
            navigator_languages_override=(self._stealth.locale, "en"),
            navigator_user_agent_override=self._stealth.user_agent,
            navigator_vendor_override="Google Inc.",
        )
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._scraper.headless,
            args=_LAUNCH_ARGS,
        )
        self._context = await self._browser.new_context(
            user_agent=self._stealth.user_agent,
            locale=self._stealth.locale,
            timezone_id=self._stealth.timezone_id,
            viewport={"width": 1280, "height": 900},
            extra_http_headers={
                "Accept-Language": self._stealth.accept_language,
                "Referer": self._stealth.referer,
                "Upgrade-Insecure-Requests": "1",
            },
        )
        await profile.apply_stealth_async(self._context)
        self._page = await self._context.new_page()
        self._page.set_default_navigation_timeout(self._scraper.navigation_timeout_ms)
        logger.info(
            "Browser started (headless=%s, tz=%s)",
            self._scraper.headless,
            self._stealth.timezone_id,
        )
        return self._page

    async def close(self) -> None:
        """Release browser resources; errors during teardown are logged only."""
        for closer, name in (
            (self._context, "context"),
            (self._browser, "browser"),
        ):
            if closer is None:
                continue
            try:
                await closer.close()
            except Exception:
                logger.warning("Failed to close browser %s", name, exc_info=True)
        if self._playwright is not None:
            await self._playwright.stop()
        self._page = self._context = self._browser = self._playwright = None
        logger.info("Browser closed")

    async def __aenter__(self) -> Page:
        return await self.start()

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
