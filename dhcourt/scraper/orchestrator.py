"""Scrape orchestrator: one case-status lookup from query to ScrapeResult."""

import asyncio
from typing import Any, AsyncContextManager, Callable, Optional

from dhcourt.config.settings import Config
from dhcourt.scraper.browser import BrowserManager, BrowserSession
from dhcourt.scraper.downloader import DocumentDownloader
from dhcourt.scraper.errors import (
    CaptchaError,
    CourtScraperError,
    ScrapeTimeoutError,
    SiteReportedError,
)
from dhcourt.scraper.extractor import ResultExtractor
from dhcourt.scraper.form_submitter import FormSubmitter
from dhcourt.scraper.models import (
    CaptchaState,
    DocumentPayload,
    DownloadOutcome,
    ScrapeResult,
    ScrapeStage,
    SearchQuery,
)
from dhcourt.utils.captcha_client import TwoCaptchaClient
from dhcourt.utils.captcha_handler import CaptchaResolver
from dhcourt.utils.logger import get_logger

logger = get_logger(__name__)

CAPTCHA_REQUIRED_MESSAGE = "CAPTCHA verification required"

SessionFactory = Callable[[], AsyncContextManager[BrowserSession]]


class CourtScraper:
    """Main scraper orchestrator.

    Each call to ``search_case`` owns one browser session from start to
    finish. A CAPTCHA that needs a human answer ends the call with
    ``requires_captcha``; the caller repeats the whole search with the answer
    in ``SearchQuery.captcha_response``.
    """

    def __init__(
        self,
        config: Config,
        session_factory: Optional[SessionFactory] = None,
        captcha_client: Optional[TwoCaptchaClient] = None,
        extractor: Optional[ResultExtractor] = None,
        sleep: Callable = asyncio.sleep,
    ):
        self.config = config
        self.session_factory = session_factory or BrowserManager(config).session

        if captcha_client is None and config.captcha_api_key:
            captcha_client = TwoCaptchaClient(
                config.captcha_api_key,
                base_url=config.captcha_provider_url,
                timeout=config.captcha_request_timeout,
            )
        self.captcha_client = captcha_client

        self.form_submitter = FormSubmitter(settle_delay=config.settle_delay, sleep=sleep)
        self.captcha_resolver = CaptchaResolver(
            client=captcha_client,
            poll_interval=config.captcha_poll_interval,
            max_polls=config.captcha_max_polls,
            sleep=sleep,
        )
        self.extractor = extractor or ResultExtractor(config.base_url)
        self.downloader = DocumentDownloader.from_config(config, sleep=sleep)
        self.stage_timeouts = config.stage_timeouts

    async def _bounded(self, stage: str, awaitable):
        timeout = self.stage_timeouts.get(stage)
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ScrapeTimeoutError(stage, timeout) from e

    async def _submit_and_read(self, page) -> str:
        await self.form_submitter.submit(page)
        return await page.content()

    async def search_case(self, query: SearchQuery) -> ScrapeResult:
        """Run the full pipeline for ``query``; never raises."""
        stage = ScrapeStage.INIT
        try:
            query.validate()
        except CourtScraperError as e:
            logger.warning(f"Rejected search query: {e}")
            return ScrapeResult.fail(str(e))

        logger.info(
            f"Searching case: {query.case_type} {query.case_number.strip()} ({query.filing_year})"
        )
        try:
            async with self.session_factory() as session:
                page = session.page

                await self._bounded(
                    "navigation",
                    session.navigate(self.config.search_url, self.config.navigation_max_attempts),
                )
                stage = ScrapeStage.NAVIGATED

                report = await self._bounded("form", self.form_submitter.fill(page, query))
                if report.missing:
                    logger.warning(f"Form fields not located: {', '.join(report.missing)}")
                stage = ScrapeStage.FORM_FILLED

                challenge = await self._bounded(
                    "captcha", self.captcha_resolver.resolve(page, query.captcha_response)
                )
                if challenge.state == CaptchaState.AWAITING_RESPONSE:
                    logger.info("Stopping for manual CAPTCHA entry")
                    return ScrapeResult.fail(
                        CAPTCHA_REQUIRED_MESSAGE,
                        stage=ScrapeStage.CAPTCHA_PENDING,
                        requires_captcha=True,
                        captcha_image=challenge.image_data_url,
                    )
                stage = ScrapeStage.CAPTCHA_RESOLVED

                html = await self._bounded("submit", self._submit_and_read(page))
                stage = ScrapeStage.SUBMITTED

                site_error = self.extractor.check_for_errors(html)
                if site_error:
                    raise SiteReportedError(site_error)
                stage = ScrapeStage.ERROR_CHECKED

                record = self.extractor.extract(html, page_url=page.url)
                logger.info(f"Case data extracted: {record.parties_names or '(parties not found)'}")
                return ScrapeResult.ok(record)

        except CaptchaError as e:
            logger.error(f"CAPTCHA failed after {stage.value}: {e}")
            challenge = e.challenge
            image = challenge.image_data_url if challenge is not None else ""
            return ScrapeResult.fail(str(e), requires_captcha=bool(image), captcha_image=image or None)
        except CourtScraperError as e:
            logger.error(f"Scrape failed after {stage.value} ({e.code}): {e}")
            return ScrapeResult.fail(str(e))
        except Exception as e:
            logger.error(f"Scraping failed after {stage.value}: {e}", exc_info=True)
            return ScrapeResult.fail(f"Scraping failed: {e}")

    async def download_document(self, target: Any) -> DocumentPayload:
        """Fetch a DocumentRef or URL as a validated PDF payload; raises DownloadError."""
        return await self.downloader.fetch_document(target)

    async def retry_download(self, url: str, max_attempts: Optional[int] = None) -> DownloadOutcome:
        return await self.downloader.retry_download(url, max_attempts)
