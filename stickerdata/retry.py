"""Bounded retry helpers for flaky remote calls."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from .config import RetryConfig

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class TaskFailed(RuntimeError):
    """Raised once an operation has failed on every allowed attempt."""

    def __init__(self, description: str, attempts: int, cause: BaseException) -> None:
        super().__init__(f"{description} failed after {attempts} attempt(s): {cause}")
        self.description = description
        self.attempts = attempts
        self.cause = cause


def retrying(
    operation: Callable[[], T],
    policy: RetryConfig,
    *,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[], T]:
    """Wrap ``operation`` so that it is attempted up to ``policy.max_attempts`` times.

    Every exception counts as a failed attempt. When the final attempt fails the
    wrapper raises :class:`TaskFailed` chained to the last error.
    """

    max_attempts = max(1, int(policy.max_attempts))

    def _run() -> T:
        attempt = 1
        while True:
            try:
                return operation()
            except Exception as exc:
                if attempt >= max_attempts:
                    raise TaskFailed(description, attempt, exc) from exc
                delay = policy.delay_for(attempt)
                LOGGER.warning(
                    "Attempt %d/%d failed for %s: %s; retrying in %.1fs",
                    attempt,
                    max_attempts,
                    description,
                    exc,
                    delay,
                )
                if delay > 0:
                    sleep(delay)
            attempt += 1

    return _run


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryConfig,
    *,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    return retrying(operation, policy, description=description, sleep=sleep)()
