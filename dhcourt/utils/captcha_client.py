"""Client for a 2Captcha-compatible image CAPTCHA solving service."""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from dhcourt.scraper.errors import CaptchaProviderError
from dhcourt.utils.logger import get_logger

logger = get_logger(__name__)

NOT_READY = "CAPCHA_NOT_READY"


@dataclass
class PollResult:
    """One status check: exactly one of not_ready, text or error is meaningful."""
    not_ready: bool = False
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def solved(self) -> bool:
        return self.text is not None


class TwoCaptchaClient:
    """Submit a base64 image, then poll a ticket id until it is solved."""

    def __init__(self, api_key: str, base_url: str = "http://2captcha.com", timeout: float = 30):
        if not api_key:
            raise ValueError("2Captcha API key not configured")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    if response.status != 200:
                        raise CaptchaProviderError(f"2Captcha API error: HTTP {response.status}")
                    return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise CaptchaProviderError("2Captcha request timed out") from e
        except aiohttp.ClientError as e:
            raise CaptchaProviderError(f"2Captcha service error: {e}") from e
        except ValueError as e:
            raise CaptchaProviderError(f"2Captcha returned a malformed response: {e}") from e

    @staticmethod
    def _error_text(payload: Dict[str, Any]) -> str:
        return str(payload.get("error_text") or payload.get("request") or "Unknown error")

    async def submit(self, image_base64: str) -> str:
        """Submit an image and return the provider ticket id."""
        payload = await self._request(
            "POST",
            "in.php",
            data={"method": "base64", "key": self.api_key, "body": image_base64, "json": "1"},
        )
        if payload.get("status") != 1:
            raise CaptchaProviderError(f"2Captcha submit failed: {self._error_text(payload)}")
        ticket = str(payload["request"])
        logger.info(f"CAPTCHA submitted to solving service (ticket {ticket})")
        return ticket

    async def check(self, ticket_id: str) -> PollResult:
        """Ask once for the answer to ``ticket_id``."""
        payload = await self._request(
            "GET",
            "res.php",
            params={"key": self.api_key, "action": "get", "id": ticket_id, "json": "1"},
        )
        if payload.get("status") == 1:
            return PollResult(text=str(payload.get("request", "")))
        if payload.get("request") == NOT_READY or payload.get("error_text") == NOT_READY:
            return PollResult(not_ready=True)
        return PollResult(error=self._error_text(payload))

    async def get_balance(self) -> float:
        payload = await self._request(
            "GET",
            "res.php",
            params={"key": self.api_key, "action": "getbalance", "json": "1"},
        )
        if payload.get("status") != 1:
            raise CaptchaProviderError(f"Failed to get balance: {self._error_text(payload)}")
        return float(payload["request"])

    async def report_bad(self, ticket_id: str) -> bool:
        """Tell the provider a solution was rejected by the site."""
        try:
            payload = await self._request(
                "GET",
                "res.php",
                params={"key": self.api_key, "action": "reportbad", "id": ticket_id, "json": "1"},
            )
        except CaptchaProviderError as e:
            logger.warning(f"Failed to report bad CAPTCHA {ticket_id}: {e}")
            return False
        return payload.get("status") == 1

    async def is_available(self) -> bool:
        """True when the account answers and has a positive balance."""
        try:
            return await self.get_balance() > 0
        except CaptchaProviderError as e:
            logger.warning(f"2Captcha service check failed: {e}")
            return False
