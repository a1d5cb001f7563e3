"""Bounded concurrent execution of independent tests using asyncio."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from httpstages_models import TestDefinition

from .results import TestOutcome

logger = logging.getLogger(__name__)


@dataclass
class ScheduledResult:
    """Outcomes of one scheduled test, at its position in the plan."""

    index: int
    definition: TestDefinition
    outcomes: list[TestOutcome]


RunFn = Callable[[int, TestDefinition], Awaitable[list[TestOutcome]]]


async def execute_sequential(order: list[TestDefinition], run_fn: RunFn) -> list[ScheduledResult]:
    results = []
    for index, definition in enumerate(order):
        results.append(ScheduledResult(index=index, definition=definition, outcomes=await run_fn(index, definition)))
    return results


async def execute_concurrent(order: list[TestDefinition], run_fn: RunFn, max_workers: int) -> list[ScheduledResult]:
    """Run tests concurrently, at most ``max_workers`` at a time.

    A test waits for the test it requires to finish before taking a worker
    slot. Results come back in plan order whatever the completion order.

    Args:
        order: Tests in resolver order.
        run_fn: Coroutine running one test (index, definition) -> outcomes.
        max_workers: Maximum number of tests in flight.

    Returns:
        One ScheduledResult per test, in the order given.
    """
    finished = {definition.id: asyncio.Event() for definition in order}
    semaphore = asyncio.Semaphore(max_workers)

    async def worker(index: int, definition: TestDefinition) -> ScheduledResult:
        try:
            if definition.requires in finished:
                await finished[definition.requires].wait()
            async with semaphore:
                outcomes = await run_fn(index, definition)
            return ScheduledResult(index=index, definition=definition, outcomes=outcomes)
        finally:
            finished[definition.id].set()

    tasks = [asyncio.create_task(worker(index, definition)) for index, definition in enumerate(order)]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


async def execute_plan(order: list[TestDefinition], run_fn: RunFn, max_workers: int = 1) -> list[ScheduledResult]:
    if max_workers <= 1 or len(order) <= 1:
        return await execute_sequential(order, run_fn)
    logger.info(f"Running {len(order)} tests with up to {max_workers} workers")
    return await execute_concurrent(order, run_fn, max_workers)
