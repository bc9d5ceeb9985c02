"""Bounded retry with a delay between attempts.

Knows nothing about chats: it runs any zero-argument coroutine function and
decides whether to try again from the raised exception alone.
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from ..errors import RetryExhausted
from ..log import get_logger

if TYPE_CHECKING:
    from ..config import Settings

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class Backoff(str, Enum):
    """Delay schedule between attempts."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"


def is_retryable(error: BaseException) -> bool:
    """Default retry predicate.

    Errors exposing an ``is_retryable()`` method decide for themselves; any
    other exception is treated as a transient failure.
    """
    check = getattr(error, "is_retryable", None)
    if callable(check):
        return bool(check())
    return True


class RetryPolicy:
    """Runs an async operation up to ``max_attempts`` times.

    Example:
        policy = RetryPolicy(max_attempts=3, base_delay=1.0)
        reply = await policy.run(lambda: transport.send_chat_request(history, text))
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        backoff: Backoff | str = Backoff.FIXED,
        max_delay: float | None = None,
        retry_if: Callable[[BaseException], bool] = is_retryable,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        _check_bounds(max_attempts, base_delay)
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.backoff = Backoff(backoff)
        self.max_delay = max_delay
        self._retry_if = retry_if
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: "Settings", **kwargs) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.retry_delay,
            backoff=settings.backoff,
            **kwargs,
        )

    def delay_for(self, attempt: int, base_delay: float | None = None) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        base = self.base_delay if base_delay is None else base_delay
        if self.backoff is Backoff.EXPONENTIAL:
            delay = base * (2 ** (attempt - 1))
        else:
            delay = base
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: int | None = None,
        base_delay: float | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument callable returning an awaitable
            max_attempts: Overrides the policy's attempt bound for this call
            base_delay: Overrides the policy's delay for this call

        Returns:
            The first successful result

        Raises:
            RetryExhausted: All attempts failed with retryable errors
            Exception: A non-retryable error, re-raised unchanged
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        delay_base = self.base_delay if base_delay is None else base_delay
        _check_bounds(attempts, delay_base)

        for attempt in range(1, attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not self._retry_if(e):
                    logger.debug("Attempt %d failed with non-retryable error: %s", attempt, e)
                    raise
                if attempt == attempts:
                    logger.warning("Attempt %d/%d failed, giving up: %s", attempt, attempts, e)
                    raise RetryExhausted(attempts, e) from e

                delay = self.delay_for(attempt, delay_base)
                logger.warning(
                    "Attempt %d/%d failed, retrying in %.2fs: %s", attempt, attempts, delay, e
                )
                await self._sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover


def _check_bounds(max_attempts: int, base_delay: float) -> None:
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
    if base_delay < 0:
        raise ValueError(f"base_delay must be >= 0, got {base_delay}")
