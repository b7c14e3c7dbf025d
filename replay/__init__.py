"""Replay package for stream-player.

Contains the batch scheduler and the run orchestration:
- scheduler: run_jobs
- runner: run_replay, run, RunOptions, ExitCode
"""

from replay.runner import ExitCode, RunOptions, run, run_replay
from replay.scheduler import run_jobs

__all__ = [
    "ExitCode",
    "RunOptions",
    "run",
    "run_jobs",
    "run_replay",
]
