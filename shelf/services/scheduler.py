"""Bounded-concurrency runner for independent asynchronous tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

from .reporting import ErrorReporter

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_all(
    tasks: Sequence[Callable[[], Awaitable[T]]],
    limit: int,
    *,
    reporter: ErrorReporter | None = None,
) -> list[T]:
    """Run ``tasks`` with at most ``limit`` in flight.

    Results are returned in completion order. Failed tasks are reported and
    left out of the result; nothing is retried here.
    """

    if limit < 1:
        raise ValueError("Concurrency limit must be at least 1")

    results: list[T] = []
    in_flight: set[asyncio.Future[T]] = set()

    def _collect(future: asyncio.Future[T]) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            if reporter is not None:
                reporter.report(error, phase="task")
            else:
                logger.warning("Task failed: %s", error)
            return
        results.append(future.result())

    for factory in tasks:
        future = asyncio.ensure_future(factory())
        future.add_done_callback(_collect)
        in_flight.add(future)
        if len(in_flight) >= limit:
            _, in_flight = await asyncio.wait(
                in_flight, return_when=asyncio.FIRST_COMPLETED
            )

    if in_flight:
        await asyncio.wait(in_flight)
    return results
