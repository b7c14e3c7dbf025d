"""Replay session package for stream-player.

This package handles one replay over one connection and its results:
- Source framing and upload with backpressure
- Inbound decoding, byte counting and debug output
- Idle-timeout end-of-session detection
- Result folding and throughput reporting
"""

from session.instrument import ReceiveInstrument
from session.player import SessionOptions, SessionPlayer, play_stream
from session.report import StatsReport
from session.result import AggregateStats, JobResult, fold_results

__all__ = [
    "AggregateStats",
    "JobResult",
    "ReceiveInstrument",
    "SessionOptions",
    "SessionPlayer",
    "StatsReport",
    "fold_results",
    "play_stream",
]
