"""Replay runner for stream-player.

Contains run_replay() which resolves the target (starting a local discard
server when no address is given), runs the requested iterations through the
batch scheduler and returns the aggregate statistics.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

from replay.scheduler import run_jobs
from server.discard import DiscardServer
from session.player import SessionOptions, play_stream, source_size
from session.result import AggregateStats, JobResult
from wire.address import Address, parse_address
from wire.protocol import DEFAULT_PORT

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Exit codes for the command line."""

    SUCCESS = 0  # All iterations completed
    FAILURE = 1  # Any session or setup error
    USAGE = 2  # Invalid command line


@dataclass
class RunOptions:
    """Settings for a whole replay run."""

    iterations: int = 1
    max_concurrency: int = 1
    verbose: bool = True
    default_port: int = DEFAULT_PORT
    session: SessionOptions = field(default_factory=SessionOptions)


async def _run_against(
    source_path: Path, address: Address, options: RunOptions
) -> AggregateStats:
    async def job(job_number: int) -> JobResult:
        if options.verbose and options.iterations > 1:
            print(f"Playing iteration {job_number}/{options.iterations}")
        return await play_stream(source_path, address, options.session)

    logger.debug(
        f"Replaying {source_path} to {address} "
        f"({options.iterations} iterations, max {options.max_concurrency} concurrent)"
    )
    return await run_jobs(options.iterations, options.max_concurrency, job)


async def run_replay(
    source_path: Path,
    server_address: str | None,
    options: RunOptions | None = None,
) -> AggregateStats:
    """Replay source_path options.iterations times.

    With server_address None, a discard server is started on an ephemeral
    port before the first session and stopped after the last one, whether
    the run succeeds or not.

    Raises:
        ConfigError: If the source is missing or unreadable.
        AddressError: If server_address is malformed.
        NetworkError, ProtocolError: From the first failing session.
    """
    options = options or RunOptions()
    source_path = Path(source_path)
    source_size(source_path)

    if server_address is not None:
        address = parse_address(server_address, options.default_port)
        return await _run_against(source_path, address, options)

    async with DiscardServer() as server:
        return await _run_against(source_path, server.address, options)


def run(
    source_path: Path,
    server_address: str | None,
    options: RunOptions | None = None,
) -> AggregateStats:
    """Synchronous entry point around run_replay()."""
    return asyncio.run(run_replay(source_path, server_address, options))
