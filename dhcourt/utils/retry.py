"""Retry policies shared by navigation and document downloads."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from dhcourt.utils.logger import get_logger

logger = get_logger(__name__)

Backoff = Callable[[int], float]


def linear_backoff(base_delay: float) -> Backoff:
    """Wait ``base_delay * attempt`` seconds after the given failed attempt."""
    return lambda attempt: base_delay * attempt


def exponential_backoff(base: float = 2.0, max_delay: Optional[float] = None) -> Backoff:
    """Wait ``base ** attempt`` seconds after the given failed attempt."""
    def wait(attempt: int) -> float:
        delay = base ** attempt
        return min(delay, max_delay) if max_delay is not None else delay
    return wait


@dataclass
class RetryOutcome:
    result: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RetryPolicy:
    """Attempt cap plus backoff, applied uniformly to any coroutine function.

    Exceptions matching ``retry_on`` are retried until the cap and then
    reported in the RetryOutcome; anything else propagates immediately.
    """
    max_attempts: int
    backoff: Backoff
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)
    label: str = "operation"

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(max(1, self.max_attempts)),
            wait=lambda retry_state: self.backoff(retry_state.attempt_number),
            retry=retry_if_exception_type(self.retry_on),
            sleep=self.sleep,
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                f"{self.label} attempt {retry_state.attempt_number}/{self.max_attempts} failed: "
                f"{retry_state.outcome.exception()}; retrying in "
                f"{self.backoff(retry_state.attempt_number):g}s"
            ),
        )

    async def run(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> RetryOutcome:
        attempts = 0
        result = None
        try:
            async for attempt in self.retrying():
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    result = await func(*args, **kwargs)
        except self.retry_on as exc:
            logger.error(f"{self.label} failed after {attempts} attempt(s): {exc}")
            return RetryOutcome(error=exc, attempts=attempts)
        return RetryOutcome(result=result, attempts=attempts)
