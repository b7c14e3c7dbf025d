"""Frame header encoding/decoding for stream-player.

Frames use a command-prefixed header with an optional size field:
  [1-byte command][8-byte size, data commands only][16-byte session id]
  [16-byte checksum][size bytes of data]

All integers are little-endian unsigned. The checksum is the MD5 digest
of the frame's data.
"""

import hashlib
import os
import uuid
from dataclasses import dataclass
from typing import Literal

from wire.errors import ProtocolError
from wire.protocol import (
    CHECKSUM_SIZE,
    COMMAND_SIZE,
    MAX_BLOB_SIZE,
    SESSION_ID_SIZE,
    SIZE_FIELD_SIZE,
    Command,
)

UINT64_SIZE = 8
BYTE_ORDER: Literal["little", "big"] = "little"


def uint64_to_bytes(value: int) -> bytes:
    """Encode unsigned 64-bit int as little-endian bytes."""
    return value.to_bytes(UINT64_SIZE, BYTE_ORDER, signed=False)


def uint64_from_bytes(data: bytes) -> int:
    """Decode little-endian bytes to unsigned 64-bit int."""
    return int.from_bytes(data, BYTE_ORDER, signed=False)


def generate_session_id() -> bytes:
    """Generate random 16-byte session ID."""
    return os.urandom(SESSION_ID_SIZE)


def session_id_to_string(session_id: bytes) -> str:
    """Render a session ID in its canonical UUID form."""
    return str(uuid.UUID(bytes=session_id))


def checksum(data: bytes) -> bytes:
    """Compute the 16-byte frame checksum of a blob."""
    return hashlib.md5(data).digest()


@dataclass(frozen=True)
class FrameHeader:
    """Decoded frame header.

    size is None exactly when the command carries no data.
    """

    command: Command
    size: int | None
    session_id: bytes
    checksum: bytes

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.command.carries_data and self.size is None:
            raise ValueError(f"{self.command.name} header requires a size")
        if not self.command.carries_data and self.size is not None:
            raise ValueError(f"{self.command.name} header cannot carry a size")
        if len(self.session_id) != SESSION_ID_SIZE:
            raise ValueError(f"session_id must be {SESSION_ID_SIZE} bytes")
        if len(self.checksum) != CHECKSUM_SIZE:
            raise ValueError(f"checksum must be {CHECKSUM_SIZE} bytes")

    @property
    def has_data(self) -> bool:
        return self.size is not None

    def encode(self) -> bytes:
        """Encode the header to its wire form."""
        size = b"" if self.size is None else uint64_to_bytes(self.size)
        return bytes([self.command]) + size + self.session_id + self.checksum


def header_length(command: Command) -> int:
    """Return the full header length for a command."""
    length = COMMAND_SIZE + SESSION_ID_SIZE + CHECKSUM_SIZE
    if command.carries_data:
        length += SIZE_FIELD_SIZE
    return length


def parse_command(code: int) -> Command:
    """Map a command byte to a Command, raising ProtocolError if unknown."""
    try:
        return Command(code)
    except ValueError:
        raise ProtocolError(f"Invalid command code: 0x{code:02x}")


def parse_header(data: bytes) -> FrameHeader:
    """Decode a complete header.

    data must be exactly header_length(command) bytes long.

    Raises:
        ProtocolError: On unknown command, wrong length or oversized blob.
    """
    if not data:
        raise ProtocolError("Empty frame header")

    command = parse_command(data[0])
    expected = header_length(command)
    if len(data) != expected:
        raise ProtocolError(
            f"{command.name} header is {len(data)} bytes, expected {expected}"
        )

    pos = COMMAND_SIZE
    size: int | None = None
    if command.carries_data:
        size = uint64_from_bytes(data[pos : pos + SIZE_FIELD_SIZE])
        if size > MAX_BLOB_SIZE:
            raise ProtocolError(f"Blob size {size} exceeds max {MAX_BLOB_SIZE}")
        pos += SIZE_FIELD_SIZE

    session_id = data[pos : pos + SESSION_ID_SIZE]
    pos += SESSION_ID_SIZE
    return FrameHeader(
        command=command,
        size=size,
        session_id=session_id,
        checksum=data[pos : pos + CHECKSUM_SIZE],
    )
