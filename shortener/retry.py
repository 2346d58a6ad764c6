"""Bounded, immediate retry of an async operation.

Only errors the policy's predicate marks as retryable are retried; anything
else propagates on the first occurrence. There is no sleep between attempts.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

__all__ = ["RetryPolicy", "RetryExhausted"]

T = TypeVar("T")


class RetryExhausted(Exception):
    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    is_retryable: Callable[[BaseException], bool]
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("shortener"))

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts!r}")

    async def run(self, operation: Callable[[int], Awaitable[T]]) -> T:
        """Call ``operation(attempt)`` until it succeeds or the policy gives up.

        ``attempt`` is 1-based so callers can log it.
        """
        attempt = 1
        while True:
            try:
                return await operation(attempt)
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                self.logger.warning(
                    f"Retryable failure on attempt {attempt}/{self.max_attempts}: {exc}",
                    extra={"attempt": attempt},
                )
                if attempt >= self.max_attempts:
                    raise RetryExhausted(self.max_attempts, exc) from exc
            attempt += 1
