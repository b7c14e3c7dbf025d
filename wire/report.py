"""Reporting abstractions for stream-player.

Contains:
- Report ABC: Base class for all reports
- format_size: Human-readable byte counts
"""

from abc import ABC, abstractmethod

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(num_bytes: float) -> str:
    """Format a byte count using 1024-based units (e.g. 1536 -> "1.5 KB")."""
    value = float(num_bytes)
    unit_index = 0
    while abs(value) >= 1024 and unit_index < len(SIZE_UNITS) - 1:
        value /= 1024
        unit_index += 1
    number = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{number} {SIZE_UNITS[unit_index]}"


class Report(ABC):
    """Abstract base class for run reports."""

    @abstractmethod
    def print(self) -> None:
        """Print the report to stdout."""
        pass
