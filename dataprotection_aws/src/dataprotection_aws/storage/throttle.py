
from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator, Awaitable, Iterable, List, TypeVar

from ..core.exceptions import ConfigurationError

T = TypeVar("T")


class ConcurrencyThrottle:
    """Admission gate bounding how many fetches are outstanding at once"""

    def __init__(self, max_concurrency: int) -> None:
        if max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1")
        self._limit = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._in_flight = 0
        self._peak = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak(self) -> int:
        return self._peak

    @contextlib.asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._semaphore:
            self._in_flight += 1
            self._peak = max(self._peak, self._in_flight)
            try:
                yield
            finally:
                self._in_flight -= 1


async def gather_settled(aws: Iterable[Awaitable[T]]) -> List[T]:
    """Run every awaitable to completion, then raise the first failure if any.

    A failing task does not cancel its siblings. Cancelling the caller cancels
    all of them and nothing is returned.
    """
    outcomes = await asyncio.gather(*aws, return_exceptions=True)
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return list(outcomes)  # type: ignore[arg-type]


__all__ = ["ConcurrencyThrottle", "gather_settled"]
