"""CAPTCHA detection and resolution."""

import asyncio
import base64
from typing import Callable, Optional

from dhcourt.scraper.errors import (
    CaptchaFormatError,
    CaptchaProviderError,
    CaptchaTimeoutError,
    CaptchaUnresolvedError,
)
from dhcourt.scraper.models import CaptchaChallenge, CaptchaState, validate_captcha_response
from dhcourt.utils.captcha_client import TwoCaptchaClient
from dhcourt.utils.logger import get_logger

logger = get_logger(__name__)


class CaptchaResolver:
    """Detects an image CAPTCHA on the search form and gets it answered.

    Resolution order: caller-supplied text, then the external solving service
    when one is configured, otherwise the challenge image is surfaced to the
    caller (AWAITING_RESPONSE).
    """

    # Image elements carrying the challenge
    IMAGE_SELECTORS = [
        "#captcha_image",
        "img[src*='captcha']",
        "img[alt*='captcha']",
        "img[id*='captcha']",
        "img[class*='captcha']",
        ".captcha-image",
        "img[src*='verification']",
    ]

    # Text inputs receiving the answer
    INPUT_SELECTORS = [
        "#captcha",
        "#verification_code",
        "#security_code",
        "input[name*='captcha']",
        "input[id*='captcha']",
        "input[class*='captcha']",
        "input[name*='verification']",
        "input[name*='code']",
    ]

    POLL_INTERVAL = 5.0
    MAX_POLLS = 30

    def __init__(
        self,
        client: Optional[TwoCaptchaClient] = None,
        poll_interval: float = POLL_INTERVAL,
        max_polls: int = MAX_POLLS,
        sleep: Callable = asyncio.sleep,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._sleep = sleep

    async def _first(self, page, selectors):
        for selector in selectors:
            try:
                element = await page.query_selector(selector)
            except Exception as e:
                logger.debug(f"Error checking selector {selector}: {e}")
                continue
            if element is not None:
                return element
        return None

    async def find_image(self, page):
        return await self._first(page, self.IMAGE_SELECTORS)

    async def capture_image(self, element) -> str:
        """Screenshot the challenge element and return it base64-encoded."""
        try:
            png = await element.screenshot(type="png")
        except Exception as e:
            raise CaptchaUnresolvedError(f"Could not capture CAPTCHA image: {e}") from e
        if not png:
            raise CaptchaUnresolvedError("Captured CAPTCHA image is empty")
        return base64.b64encode(png).decode("ascii")

    async def fill_answer(self, page, text: str) -> bool:
        field = await self._first(page, self.INPUT_SELECTORS)
        if field is None:
            logger.warning("No CAPTCHA input field found; answer not entered")
            return False
        await field.fill(text)
        return True

    async def resolve(self, page, supplied_response: Optional[str] = None) -> CaptchaChallenge:
        """Run the resolution state machine against the current page.

        Returns a challenge in state NONE, SOLVED or AWAITING_RESPONSE.

        Raises:
            CaptchaFormatError: supplied text is not 3-10 alphanumerics.
            CaptchaProviderError: the solving service failed (state FAILED).
            CaptchaTimeoutError: the solving service never answered (state TIMEOUT).
        """
        if supplied_response is not None and not validate_captcha_response(supplied_response):
            raise CaptchaFormatError("CAPTCHA response must be 3-10 alphanumeric characters")

        image = await self.find_image(page)
        if image is None:
            logger.info("No CAPTCHA detected")
            return CaptchaChallenge(state=CaptchaState.NONE)

        if supplied_response is not None:
            challenge = CaptchaChallenge(state=CaptchaState.SOLVED, resolved_text=supplied_response.strip())
            logger.info("CAPTCHA detected; using caller-supplied response")
        else:
            challenge = CaptchaChallenge(image_data=await self.capture_image(image))
            if self.client is None:
                challenge.state = CaptchaState.AWAITING_RESPONSE
                logger.warning("CAPTCHA detected and no solving service configured; manual entry required")
                return challenge
            await self.solve_external(challenge)
            if challenge.state == CaptchaState.TIMEOUT:
                raise CaptchaTimeoutError(challenge.error, challenge=challenge)
            if challenge.state != CaptchaState.SOLVED:
                raise CaptchaProviderError(challenge.error, challenge=challenge)

        await self.fill_answer(page, challenge.resolved_text)
        return challenge

    async def solve_external(self, challenge: CaptchaChallenge) -> CaptchaChallenge:
        """Submit the image and poll the service; leaves the challenge SOLVED, FAILED or TIMEOUT."""
        try:
            challenge.ticket_id = await self.client.submit(challenge.image_data)
        except CaptchaProviderError as e:
            challenge.state = CaptchaState.FAILED
            challenge.error = str(e)
            logger.error(f"CAPTCHA submission failed: {e}")
            return challenge

        challenge.state = CaptchaState.SUBMITTED_EXTERNAL
        logger.info(f"CAPTCHA ticket {challenge.ticket_id} accepted; polling every {self.poll_interval:g}s")
        while challenge.polls < self.max_polls:
            await self._sleep(self.poll_interval)
            challenge.state = CaptchaState.POLLING
            challenge.polls += 1
            try:
                result = await self.client.check(challenge.ticket_id)
            except CaptchaProviderError as e:
                challenge.state = CaptchaState.FAILED
                challenge.error = str(e)
                break
            if result.not_ready:
                logger.debug(f"CAPTCHA {challenge.ticket_id} not ready (poll {challenge.polls}/{self.max_polls})")
                continue
            if result.solved:
                challenge.state = CaptchaState.SOLVED
                challenge.resolved_text = result.text
                logger.info(f"CAPTCHA {challenge.ticket_id} solved after {challenge.polls} poll(s)")
                return challenge
            challenge.state = CaptchaState.FAILED
            challenge.error = f"2Captcha result failed: {result.error}"
            break
        else:
            challenge.state = CaptchaState.TIMEOUT
            challenge.error = f"2Captcha timeout - no result after {self.max_polls} attempts"

        logger.error(f"CAPTCHA {challenge.ticket_id} unresolved: {challenge.error}")
        return challenge
