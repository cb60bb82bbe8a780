"""Exponential backoff around fallible async operations.

Only errors the classifier marks retryable are retried. The delay before retry
n (1-indexed) is `base_delay_s * 2 ** (n - 1)`, with no jitter. When retries run
out, or the error is not retryable, the original exception propagates unchanged.

Operations are re-invoked from scratch and must be safe to repeat.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tradodesk.observability.logging import get_logger

from .classifier import ErrorClassifier, classify

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[object]]

_log = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_s: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.base_delay_s < 0:
            raise ValueError("base_delay_s must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry `attempt` (1-indexed)."""

        if attempt < 1:
            raise ValueError("attempt is 1-indexed")
        return self.base_delay_s * 2 ** (attempt - 1)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    correlation_id: str | None = None,
    max_attempts: int = 3,
    *,
    base_delay_s: float = 1.0,
    sleep: Sleep = asyncio.sleep,
    classifier: ErrorClassifier | None = None,
) -> T:
    """Await `operation()`, retrying retryable failures with exponential backoff.

    At most `max_attempts + 1` invocations happen in total.
    """

    policy = RetryPolicy(max_attempts=max_attempts, base_delay_s=base_delay_s)
    attempts = 0

    while True:
        try:
            return await operation()
        except Exception as exc:
            if classifier is not None:
                app_error = classifier.classify(exc, correlation_id=correlation_id)
            else:
                app_error = classify(exc, correlation_id=correlation_id)

            if not app_error.retryable or attempts >= policy.max_attempts:
                raise

            attempts += 1
            delay = policy.delay_for(attempts)
            _log.warning(
                "llm_retry",
                correlation_id=correlation_id,
                attempt=attempts,
                max_attempts=policy.max_attempts,
                delay_s=delay,
                code=app_error.code.value,
                original_message=str(exc),
            )
            await sleep(delay)
