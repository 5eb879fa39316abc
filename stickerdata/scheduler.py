"""Concurrency-limited task runner."""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Generic, Sequence, TypeVar

from .config import DEFAULT_CONCURRENCY

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class BoundedScheduler(Generic[T]):
    """Run zero-argument tasks on a thread pool with a fixed concurrency ceiling.

    Tasks are started in the order given as slots free up. Results come back
    in completion order. The first task error stops further submissions; tasks
    already running are allowed to finish before that error is re-raised.
    """

    def __init__(self, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._concurrency = concurrency

    def run_all(self, tasks: Sequence[Callable[[], T]]) -> list[T]:
        results: list[T] = []
        if not tasks:
            return results

        in_flight: dict[Future[T], int] = {}
        first_error: BaseException | None = None

        def _drain_completed(*, block_until_empty: bool) -> None:
            nonlocal first_error
            while in_flight:
                done, _ = wait(tuple(in_flight), return_when=FIRST_COMPLETED)
                for finished in done:
                    index = in_flight.pop(finished)
                    try:
                        results.append(finished.result())
                    except Exception as exc:
                        if first_error is None:
                            first_error = exc
                            LOGGER.debug("Task %d failed; no further tasks will be started", index)
                if not block_until_empty:
                    break

        with ThreadPoolExecutor(max_workers=self._concurrency) as executor:
            for index, task in enumerate(tasks):
                if first_error is not None:
                    break
                in_flight[executor.submit(task)] = index
                if len(in_flight) >= self._concurrency:
                    _drain_completed(block_until_empty=False)

            _drain_completed(block_until_empty=True)

        if first_error is not None:
            raise first_error
        return results


def run_all(tasks: Sequence[Callable[[], T]], concurrency: int = DEFAULT_CONCURRENCY) -> list[T]:
    return BoundedScheduler(concurrency).run_all(tasks)
