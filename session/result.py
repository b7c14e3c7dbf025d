"""Session result types for stream-player.

Contains:
- JobResult: Result of replaying the source over one connection
- AggregateStats: Elementwise sum of JobResults
- fold_results: Order-independent fold of results into AggregateStats
"""

from collections.abc import Iterable
from dataclasses import dataclass
from functools import reduce


@dataclass(frozen=True)
class JobResult:
    """Result from one replay session.

    Attributes:
        bytes_sent: Size of the replayed source in bytes.
        bytes_received: Sum of received blob lengths.
        send_duration_ms: Time from first source read to source exhausted.
        receive_duration_ms: Time from first inbound header to last
            completed inbound frame.
    """

    bytes_sent: int = 0
    bytes_received: int = 0
    send_duration_ms: int = 0
    receive_duration_ms: int = 0

    def __add__(self, other: "JobResult") -> "AggregateStats":
        if not isinstance(other, JobResult):
            return NotImplemented
        return AggregateStats(
            bytes_sent=self.bytes_sent + other.bytes_sent,
            bytes_received=self.bytes_received + other.bytes_received,
            send_duration_ms=self.send_duration_ms + other.send_duration_ms,
            receive_duration_ms=self.receive_duration_ms + other.receive_duration_ms,
        )

    def send_rate(self) -> float:
        """Return send throughput in bytes/second, or 0 if duration is 0."""
        if self.send_duration_ms <= 0:
            return 0.0
        return self.bytes_sent / (self.send_duration_ms / 1000)

    def receive_rate(self) -> float:
        """Return receive throughput in bytes/second, or 0 if duration is 0."""
        if self.receive_duration_ms <= 0:
            return 0.0
        return self.bytes_received / (self.receive_duration_ms / 1000)


@dataclass(frozen=True)
class AggregateStats(JobResult):
    """Totals over all sessions of a run."""

    @classmethod
    def zero(cls) -> "AggregateStats":
        return cls()


def fold_results(results: Iterable[JobResult]) -> AggregateStats:
    """Sum results into AggregateStats. Order does not matter."""
    return reduce(lambda total, result: total + result, results, AggregateStats.zero())
