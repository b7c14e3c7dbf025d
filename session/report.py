"""Run reporting for stream-player.

Contains:
- StatsReport: Throughput report printed after a successful run
"""

from dataclasses import dataclass

from session.result import AggregateStats
from wire.report import Report, format_size


@dataclass
class StatsReport(Report):
    """Send and receive throughput over all sessions of a run."""

    stats: AggregateStats

    def print(self) -> None:
        """Print the throughput report.

        Each line is only printed when bytes moved in that direction.
        """
        s = self.stats

        if s.bytes_sent > 0:
            seconds = s.send_duration_ms / 1000
            print(
                f"Sent {format_size(s.bytes_sent)} in {seconds} seconds "
                f"({format_size(s.send_rate())}/second)"
            )

        if s.bytes_received > 0:
            seconds = s.receive_duration_ms / 1000
            print(
                f"Received {format_size(s.bytes_received)} in {seconds} seconds "
                f"({format_size(s.receive_rate())}/second)"
            )
