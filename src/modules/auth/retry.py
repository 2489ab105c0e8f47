"""Bounded retry and timeout helpers for idempotent reads.

Only reads (balance refresh, account status) go through these. Ledger
mutations are never retried.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from src.utils.logger import get_logger
from src.utils.settings.gems import GemSettings

logger = get_logger(__name__)

T = TypeVar("T")


class RetryState(str, Enum):
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (zero-based)."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    @classmethod
    def for_status_checks(cls, settings: GemSettings | None = None) -> "RetryPolicy":
        settings = settings or GemSettings()
        return cls(
            attempts=settings.STATUS_RETRY_ATTEMPTS,
            base_delay=settings.STATUS_RETRY_BASE_DELAY,
            max_delay=settings.STATUS_RETRY_MAX_DELAY,
        )

    @classmethod
    def for_balance_reads(cls, settings: GemSettings | None = None) -> "RetryPolicy":
        settings = settings or GemSettings()
        return cls(
            attempts=settings.BALANCE_READ_ATTEMPTS,
            base_delay=settings.BALANCE_RETRY_BASE_DELAY,
            max_delay=settings.STATUS_RETRY_MAX_DELAY,
        )


class RetryExhaustedError(Exception):
    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


class BoundedRetry:
    """Runs an operation until it succeeds or the attempt budget is spent.

    States move ATTEMPTING -> SUCCEEDED, or ATTEMPTING -> FAILED once
    ``policy.attempts`` calls have raised. ``attempt`` counts failed calls.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if policy.attempts < 1:
            raise ValueError("Retry policy needs at least one attempt")
        self.policy = policy
        self.state = RetryState.ATTEMPTING
        self.attempt = 0
        self.last_error: BaseException | None = None
        self._sleep = sleep

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        self.state = RetryState.ATTEMPTING
        self.attempt = 0
        self.last_error = None

        while True:
            try:
                result = await operation()
            except Exception as e:
                self.last_error = e
                self.attempt += 1
                if self.attempt >= self.policy.attempts:
                    self.state = RetryState.FAILED
                    raise RetryExhaustedError(self.attempt, e) from e

                delay = self.policy.delay_for(self.attempt - 1)
                logger.warning(
                    f"Attempt {self.attempt}/{self.policy.attempts} failed, retrying in {delay}s: {e}"
                )
                await self._sleep(delay)
                continue

            self.state = RetryState.SUCCEEDED
            return result


async def with_timeout(awaitable: Awaitable[T], seconds: float, fallback: T) -> T:
    """Race ``awaitable`` against ``seconds``; return ``fallback`` on timeout."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        logger.warning(f"Operation timed out after {seconds}s, using fallback {fallback!r}")
        return fallback
