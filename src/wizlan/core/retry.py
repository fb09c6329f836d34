"""Bounded retry with backoff for unicast exchanges."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from wizlan.errors import (
    EmptyReplyError,
    RequestCancelledError,
    RequestTimeoutError,
    RetriesExhaustedError,
    TransportClosedError,
)

from .signals import sleep_or_cancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    RequestTimeoutError,
    EmptyReplyError,
    OSError,
)
TERMINAL_ERRORS: tuple[type[BaseException], ...] = (
    RequestCancelledError,
    TransportClosedError,
)


class RetryPolicy:
    """Exponential backoff retry policy.

    Attempt ``n`` (0-indexed) that fails with a transient error is followed by
    a delay of ``base_delay * 2 ** n``, capped at ``max_delay``. The defaults
    give 0.2s, 0.4s and 0.8s between four attempts.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 0.2,
        max_delay: float = 5.0,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    def get_delay(self, attempt: int) -> float:
        return min(self.base_delay * (2**attempt), self.max_delay)

    def total_delay(self) -> float:
        return sum(self.get_delay(attempt) for attempt in range(self.max_retries))

    @staticmethod
    def is_transient(exc: BaseException) -> bool:
        if isinstance(exc, TERMINAL_ERRORS):
            return False
        return isinstance(exc, TRANSIENT_ERRORS)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        cancel: asyncio.Event | None = None,
        description: str = "command",
    ) -> T:
        """Run ``operation`` until it succeeds, fails terminally or runs out of attempts.

        Raises:
            RequestCancelledError: ``cancel`` fired, no further attempts are made
            RetriesExhaustedError: every attempt failed with a transient error
        """
        attempt = 0
        while True:
            if cancel is not None and cancel.is_set():
                raise RequestCancelledError()
            try:
                result = await operation()
            except Exception as exc:
                if not self.is_transient(exc):
                    raise
                logger.warning(
                    "%s failed on attempt %d of %d: %s",
                    description,
                    attempt + 1,
                    self.attempts,
                    exc,
                )
                if attempt >= self.max_retries:
                    logger.error("%s failed after %d attempts", description, self.attempts)
                    raise RetriesExhaustedError(self.attempts, exc) from exc
            else:
                if attempt > 0:
                    logger.info("%s succeeded after %d retries", description, attempt)
                return result

            delay = self.get_delay(attempt)
            logger.debug("Waiting %.0fms before retry", delay * 1000)
            if await sleep_or_cancelled(delay, cancel):
                raise RequestCancelledError()
            attempt += 1

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_retries={self.max_retries}, "
            f"base_delay={self.base_delay}s, max_delay={self.max_delay}s)"
        )
