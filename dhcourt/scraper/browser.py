"""Browser automation with stealth capabilities."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from dhcourt.config.settings import Config
from dhcourt.scraper.errors import NavigationError
from dhcourt.scraper.fingerprint import FingerprintSpoofer
from dhcourt.utils.logger import get_logger
from dhcourt.utils.retry import RetryPolicy, linear_backoff

logger = get_logger(__name__)


class BrowserSession:
    """One page inside one browser context, owned by a single scrape."""

    def __init__(self, page: Page, navigation_timeout: float = 30,
                 base_delay: float = 2.0, sleep: Optional[Callable] = None):
        self.page = page
        self.navigation_timeout = navigation_timeout
        self.base_delay = base_delay
        self._sleep = sleep

    async def _goto(self, url: str):
        response = await self.page.goto(
            url,
            wait_until="networkidle",
            timeout=self.navigation_timeout * 1000,
        )
        if response is not None and response.status >= 400:
            raise NavigationError(f"HTTP {response.status} for {url}")
        return response

    async def navigate(self, url: str, max_attempts: int = 3):
        """Load ``url``, waiting ``base_delay * attempt`` between failed attempts.

        Raises:
            NavigationError: after ``max_attempts`` failures, carrying the last error.
        """
        policy = RetryPolicy(
            max_attempts=max_attempts,
            backoff=linear_backoff(self.base_delay),
            label=f"Navigation to {url}",
        )
        if self._sleep is not None:
            policy.sleep = self._sleep

        logger.info(f"Navigating to {url}")
        outcome = await policy.run(self._goto, url)
        if not outcome.ok:
            raise NavigationError(
                f"Failed to navigate after {outcome.attempts} attempts: {outcome.error}",
                last_error=outcome.error,
                attempts=outcome.attempts,
            ) from outcome.error
        return outcome.result


class BrowserManager:
    """Launches a fingerprint-masked Chromium per session and always tears it down."""

    LAUNCH_ARGS = [
        "--disable-blink-features=AutomationControlled",
        "--disable-dev-shm-usage",
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-accelerated-2d-canvas",
        "--no-first-run",
        "--disable-gpu",
    ]

    EXTRA_HEADERS = {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Upgrade-Insecure-Requests": "1",
    }

    def __init__(self, config: Config):
        self.config = config
        self.fingerprint_spoofer = (
            FingerprintSpoofer(config.locale, config.timezone_id) if config.stealth_mode else None
        )

    def _context_options(self) -> dict:
        headers = dict(self.EXTRA_HEADERS)
        headers["Accept-Language"] = f"{self.config.locale},{self.config.locale.split('-')[0]};q=0.9"
        return {
            "viewport": self.config.viewport,
            "user_agent": self.config.user_agent,
            "locale": self.config.locale,
            "timezone_id": self.config.timezone_id,
            "extra_http_headers": headers,
        }

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        """Acquire a scoped browsing session; released on every exit path."""
        playwright = None
        browser: Optional[Browser] = None
        context: Optional[BrowserContext] = None
        logger.info("Starting browser...")
        try:
            playwright = await async_playwright().start()
            browser = await playwright.chromium.launch(
                headless=self.config.headless,
                args=self.LAUNCH_ARGS,
            )
            context = await browser.new_context(**self._context_options())

            if self.fingerprint_spoofer:
                await self.fingerprint_spoofer.apply_to_context(context)

            page = await context.new_page()
            logger.info("Browser started successfully")
            yield BrowserSession(
                page,
                navigation_timeout=self.config.navigation_timeout,
                base_delay=self.config.navigation_base_delay,
            )
        finally:
            await self._close(playwright, browser, context)

    async def _close(self, playwright, browser, context):
        """Clean up browser resources, continuing past individual close failures."""
        for name, resource, closer in (
            ("context", context, "close"),
            ("browser", browser, "close"),
            ("playwright", playwright, "stop"),
        ):
            if resource is None:
                continue
            try:
                await getattr(resource, closer)()
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")
        logger.info("Browser stopped")
