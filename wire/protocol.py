"""Protocol definitions for stream-player.

Contains:
- Command enum for frame command codes
- Frame field sizes and limits
- Timing and network defaults (some configurable via envvar)
- Logging configuration
"""

import logging
import os
from enum import IntEnum

# TRACE logging level (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Default log level for the CLI (configurable via envvar)
LOG_LEVEL = os.environ.get("STREAM_PLAYER_LOG_LEVEL", "INFO").upper()


class Command(IntEnum):
    """Frame command codes."""

    GET = 0x01
    PUT = 0x02
    TXN_START = 0x03
    TXN_END = 0x04
    FOUND = 0x10
    MISSING = 0x11
    ERROR = 0x1F

    @property
    def carries_data(self) -> bool:
        """True if frames with this command declare a size and a blob."""
        return self in _DATA_COMMANDS


_DATA_COMMANDS = frozenset({Command.PUT, Command.FOUND, Command.ERROR})

# Frame field sizes in bytes
COMMAND_SIZE = 1
SIZE_FIELD_SIZE = 8
SESSION_ID_SIZE = 16
CHECKSUM_SIZE = 16

# Largest blob a header may declare (prevents huge waits on corrupted sizes)
MAX_BLOB_SIZE = 1 << 30

# Source file read size
READ_CHUNK_SIZE = 64 * 1024

# Default network settings
DEFAULT_PORT = int(os.environ.get("STREAM_PLAYER_DEFAULT_PORT", "8126"))
DEFAULT_CONNECT_TIMEOUT_S = 10.0

# Quiet period after which the server is assumed to be done responding
IDLE_TIMEOUT_MS = int(os.environ.get("STREAM_PLAYER_IDLE_TIMEOUT_MS", "500"))
IDLE_TIMEOUT_S = IDLE_TIMEOUT_MS / 1000
