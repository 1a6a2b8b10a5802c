"""Shared fixtures: an in-memory page driven by BeautifulSoup instead of a browser."""

from contextlib import asynccontextmanager
from typing import List, Optional

import pytest
from bs4 import BeautifulSoup

from dhcourt.config.settings import Config

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-captcha-image"

SEARCH_FORM_HTML = """
<html><body>
<form action="/case_status.asp" method="post">
  <select id="caseType" name="case_type">
    <option value="">Select</option>
    <option value="C">Civil</option>
    <option value="CR">Criminal</option>
  </select>
  <input type="text" id="caseNumber" name="case_number">
  <select id="year" name="year">
    <option value="2022">2022</option>
    <option value="2023">2023</option>
  </select>
  {captcha}
  <input type="submit" value="Search">
</form>
</body></html>
"""

CAPTCHA_HTML = '<img id="captcha_image" src="/captcha.asp"><input type="text" id="captcha" name="captcha">'

RESULT_HTML = """
<html><body>
<table>
  <tr><td>Petitioner</td></tr>
  <tr><td>X vs Y</td></tr>
  <tr><td>Filing Date</td><td>12/03/2023</td></tr>
  <tr><td>Next Date</td><td>01/09/2025</td></tr>
  <tr><td>Case Status</td><td>Pending</td></tr>
  <tr><td>Court No</td><td>Court No: 12</td></tr>
</table>
<a href="/doc.pdf">Order dated 15/07/2025</a>
</body></html>
"""


def make_config(**overrides) -> Config:
    data = {
        "site": {"base_url": "https://court.example", "search_path": "/case_status.asp"},
        "browser": {"headless": True, "stealth": False},
        "navigation": {"max_attempts": 3, "base_delay": 2.0, "timeout": 30},
        "captcha": {"api_key": "", "poll_interval": 5.0, "max_polls": 30},
        "download": {"timeout": 5, "max_size_mb": 1, "max_attempts": 3},
        "scrape": {"settle_delay": 0},
        "logging": {"level": "DEBUG"},
    }
    for section, values in overrides.items():
        data.setdefault(section, {}).update(values)
    return Config.from_dict(data)


class FakeResponse:
    def __init__(self, status: int = 200):
        self.status = status


class FakeElement:
    """Just enough of a Playwright ElementHandle over a BeautifulSoup tag."""

    def __init__(self, page: "FakePage", tag):
        self.page = page
        self.tag = tag

    async def select_option(self, label: Optional[str] = None, value: Optional[str] = None, timeout=None):
        for option in self.tag.find_all("option"):
            if (label is not None and option.get_text(strip=True) == label) or (
                value is not None and option.get("value") == value
            ):
                option["selected"] = "selected"
                return [option.get("value", "")]
        raise TimeoutError(f"No option matching label={label!r} value={value!r}")

    async def fill(self, value: str):
        self.tag["value"] = value
        self.page.filled[self.tag.get("id") or self.tag.get("name")] = value

    async def click(self):
        self.page.clicks.append(self.tag.get("type") or self.tag.name)
        self.page.submit()

    async def screenshot(self, type: str = "png"):
        return self.page.screenshot_bytes


class FakePage:
    """In-memory stand-in for a Playwright Page.

    ``goto_results`` is consumed one entry per navigation; exceptions are raised,
    status codes are wrapped in a response.
    """

    def __init__(self, html: str, result_html: Optional[str] = None,
                 goto_results: Optional[List] = None, url: str = "https://court.example/case_status.asp"):
        self.soup = BeautifulSoup(html, "html.parser")
        self.result_html = result_html
        self.goto_results = list(goto_results or [])
        self.url = url
        self.goto_calls: List[str] = []
        self.filled = {}
        self.clicks: List[str] = []
        self.submitted = False
        self.screenshot_bytes = PNG_BYTES

    async def goto(self, url: str, wait_until=None, timeout=None):
        self.goto_calls.append(url)
        result = self.goto_results.pop(0) if self.goto_results else 200
        if isinstance(result, BaseException):
            raise result
        self.url = url
        return FakeResponse(result)

    async def query_selector(self, selector: str):
        tag = self.soup.select_one(selector)
        return FakeElement(self, tag) if tag is not None else None

    async def evaluate(self, script: str):
        self.clicks.append("script")
        self.submit()

    async def wait_for_load_state(self, state: str = "load", timeout=None):
        return None

    async def content(self) -> str:
        return str(self.soup)

    def submit(self):
        self.submitted = True
        if self.result_html is not None:
            self.soup = BeautifulSoup(self.result_html, "html.parser")


class FakeSession:
    def __init__(self, page: FakePage):
        self.page = page
        self.navigated: List[str] = []

    async def navigate(self, url: str, max_attempts: int = 3):
        self.navigated.append(url)
        return await self.page.goto(url)


class SessionTracker:
    """Session factory recording how many sessions were opened and released."""

    def __init__(self, page: FakePage, session_cls=FakeSession):
        self.page = page
        self.session_cls = session_cls
        self.opened = 0
        self.released = 0
        self.sessions: List[FakeSession] = []

    @asynccontextmanager
    async def __call__(self):
        self.opened += 1
        session = self.session_cls(self.page)
        self.sessions.append(session)
        try:
            yield session
        finally:
            self.released += 1


async def no_sleep(_seconds):
    return None


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture(autouse=True)
def no_provider_key(monkeypatch):
    monkeypatch.delenv("TWOCAPTCHA_API_KEY", raising=False)
