"""Search form population with multi-candidate field lookup."""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from dhcourt.scraper.models import SearchQuery
from dhcourt.utils.logger import get_logger

logger = get_logger(__name__)

# (selector, action) pairs tried in order; first element that accepts the value wins.
FieldCandidates = List[Tuple[str, str]]

CASE_TYPE_CANDIDATES: FieldCandidates = [
    ("#caseType", "select"),
    ("#case_type", "select"),
    ("select[name*='type']", "select"),
    ("select[name*='case']", "select"),
]

CASE_NUMBER_CANDIDATES: FieldCandidates = [
    ("#caseNumber", "fill"),
    ("#case_number", "fill"),
    ("input[name*='number']:not([type='hidden'])", "fill"),
    ("input[name*='case']:not([type='hidden'])", "fill"),
]

FILING_YEAR_CANDIDATES: FieldCandidates = [
    ("#filing_year", "select"),
    ("#year", "select"),
    ("select[name*='year']", "select"),
    ("input[name*='year']:not([type='hidden'])", "fill"),
]

SUBMIT_CANDIDATES = [
    "input[type='submit']",
    "button[type='submit']",
    "input[type='image']",
    "button[name*='submit']",
]


@dataclass
class FormFillReport:
    """Which selector filled each logical field; None means the field was skipped."""
    filled: Dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def missing(self) -> List[str]:
        return [name for name, selector in self.filled.items() if selector is None]


class FormSubmitter:
    """Fills the case-status form; unmatched fields are skipped, not fatal."""

    def __init__(self, settle_delay: float = 3.0, load_timeout: float = 15,
                 sleep: Callable = asyncio.sleep):
        self.settle_delay = settle_delay
        self.option_timeout = 2000  # ms
        self.load_timeout = load_timeout
        self._sleep = sleep

    async def fill(self, page, query: SearchQuery) -> FormFillReport:
        report = FormFillReport()
        fields = [
            ("case_type", CASE_TYPE_CANDIDATES, query.case_type),
            ("case_number", CASE_NUMBER_CANDIDATES, query.case_number.strip()),
            ("filing_year", FILING_YEAR_CANDIDATES, str(query.filing_year)),
        ]
        for name, candidates, value in fields:
            selector = await self._fill_first(page, candidates, value)
            report.filled[name] = selector
            if selector is None:
                logger.warning(f"No form element found for {name}; skipping")
            else:
                logger.debug(f"Filled {name} using {selector}")
        return report

    async def _fill_first(self, page, candidates: FieldCandidates, value: str) -> Optional[str]:
        for selector, action in candidates:
            try:
                element = await page.query_selector(selector)
            except Exception as e:
                logger.debug(f"Selector {selector} failed: {e}")
                continue
            if element is None:
                continue
            if await self._apply(element, action, value):
                return selector
        return None

    async def _apply(self, element, action: str, value: str) -> bool:
        try:
            if action == "select":
                try:
                    selected = await element.select_option(label=value, timeout=self.option_timeout)
                except Exception:
                    selected = await element.select_option(value=value, timeout=self.option_timeout)
                return bool(selected)
            await element.fill("")
            await element.fill(value)
            return True
        except Exception as e:
            logger.debug(f"Could not set value {value!r}: {e}")
            return False

    async def submit(self, page) -> Optional[str]:
        """Click the first submit candidate (or submit the form via script) and let the page settle."""
        used = None
        for selector in SUBMIT_CANDIDATES:
            try:
                button = await page.query_selector(selector)
            except Exception as e:
                logger.debug(f"Selector {selector} failed: {e}")
                continue
            if button is not None:
                await button.click()
                used = selector
                break

        if used is None:
            logger.warning("No submit button found; submitting first form via script")
            await page.evaluate("() => { const f = document.querySelector('form'); if (f) f.submit(); }")

        try:
            await page.wait_for_load_state("networkidle", timeout=self.load_timeout * 1000)
        except PlaywrightTimeoutError:
            logger.warning("Page did not reach network idle after submit; continuing")

        if self.settle_delay:
            await self._sleep(self.settle_delay)
        return used
