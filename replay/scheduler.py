"""Batch job scheduler for stream-player.

run_jobs() runs a number of replay jobs in consecutive batches of at most
concurrency_limit jobs. A batch starts only after every job of the previous
batch has settled, so no more than concurrency_limit connections are ever
open at once.

The first job failure aborts the run: its siblings are cancelled, no
further batches start and the error is raised unchanged.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from session.result import AggregateStats, JobResult, fold_results

logger = logging.getLogger(__name__)

JobFactory = Callable[[int], Awaitable[JobResult]]


async def _run_batch(job_numbers: range, job_factory: JobFactory) -> list[JobResult]:
    tasks = [asyncio.ensure_future(job_factory(n)) for n in job_numbers]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for task in tasks:
            error = task.exception() if task in done else None
            if error is not None:
                logger.debug(f"Job failed, aborting batch: {error}")
                raise error
        return [task.result() for task in tasks]
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def run_jobs(
    total_iterations: int,
    concurrency_limit: int,
    job_factory: JobFactory,
) -> AggregateStats:
    """Run total_iterations jobs, concurrency_limit at a time.

    Args:
        total_iterations: Number of jobs to run (>= 0).
        concurrency_limit: Maximum jobs in flight (>= 1).
        job_factory: Called with the 1-based job number; returns the
            awaitable for that job. Called only when the job's batch starts.

    Returns:
        AggregateStats summed over every job's JobResult.

    Raises:
        ValueError: On negative iterations or a concurrency limit below 1.
        Exception: The first error raised by any job.
    """
    if total_iterations < 0:
        raise ValueError(f"total_iterations must be >= 0, got {total_iterations}")
    if concurrency_limit < 1:
        raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

    results: list[JobResult] = []
    for first in range(1, total_iterations + 1, concurrency_limit):
        last = min(first + concurrency_limit - 1, total_iterations)
        logger.debug(f"Starting batch: jobs {first}-{last} of {total_iterations}")
        results.extend(await _run_batch(range(first, last + 1), job_factory))

    return fold_results(results)
