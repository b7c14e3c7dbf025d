"""Incremental frame decoder for stream-player.

Turns a byte stream of arbitrary chunking into an ordered event sequence:
  Header(header), then Data(chunk)... and DataEnd() if the header declared
  a size.

Bytes that do not yet form a complete header are buffered until the next
feed() call, so a read may hold a partial header, a header plus part of a
blob, or several frames.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum, auto

from wire.errors import ProtocolError
from wire.frame import FrameHeader, header_length, parse_command, parse_header
from wire.protocol import TRACE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Header:
    """A complete frame header was decoded."""

    header: FrameHeader


@dataclass(frozen=True)
class Data:
    """A chunk of the current frame's blob."""

    chunk: bytes


@dataclass(frozen=True)
class DataEnd:
    """The current frame's blob has been fully delivered."""

    pass


Event = Header | Data | DataEnd


class DecoderState(Enum):
    """Parser state."""

    AWAITING_HEADER = auto()
    AWAITING_DATA = auto()


class FrameDecoder:
    """Incremental state-machine parser for inbound frames."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._state = DecoderState.AWAITING_HEADER
        self._remaining = 0
        self._failed = False
        self._closed = False
        self.frames_decoded = 0

    @property
    def in_frame(self) -> bool:
        """True if a frame has started but not yet completed."""
        return self._state is DecoderState.AWAITING_DATA or bool(self._buffer)

    def feed(self, data: bytes) -> Iterator[Event]:
        """Buffer data and return an iterator over the events now available.

        Events are produced lazily from shared parser state, so every
        returned iterator should be drained before the stream is closed.

        Raises:
            ProtocolError: On malformed framing (raised while iterating),
                or if the decoder already failed or was closed.
        """
        if self._failed:
            raise ProtocolError("Decoder already failed on malformed input")
        if self._closed:
            raise ProtocolError("Decoder is closed")
        self._buffer += data
        return self._events()

    def close(self) -> None:
        """Mark end of stream.

        Raises:
            ProtocolError: If the stream ended inside a header or blob.
        """
        self._closed = True
        if self._state is DecoderState.AWAITING_DATA:
            raise ProtocolError(
                f"Connection closed with {self._remaining} blob bytes outstanding"
            )
        if self._buffer:
            raise ProtocolError(
                f"Connection closed inside a frame header ({len(self._buffer)} bytes buffered)"
            )

    def _fail(self, e: ProtocolError) -> ProtocolError:
        self._failed = True
        return e

    def _next_header(self) -> FrameHeader | None:
        """Parse a header from the buffer if one is complete."""
        if not self._buffer:
            return None
        try:
            command = parse_command(self._buffer[0])
        except ProtocolError as e:
            raise self._fail(e)
        length = header_length(command)
        if len(self._buffer) < length:
            return None
        try:
            header = parse_header(bytes(self._buffer[:length]))
        except ProtocolError as e:
            raise self._fail(e)
        del self._buffer[:length]
        return header

    def _events(self) -> Iterator[Event]:
        while True:
            if self._state is DecoderState.AWAITING_HEADER:
                header = self._next_header()
                if header is None:
                    return
                logger.log(TRACE, f"Decoded {header.command.name} header (size={header.size})")
                if header.size is None:
                    self.frames_decoded += 1
                else:
                    self._state = DecoderState.AWAITING_DATA
                    self._remaining = header.size
                yield Header(header)
                continue

            if self._remaining == 0:
                self._state = DecoderState.AWAITING_HEADER
                self.frames_decoded += 1
                yield DataEnd()
                continue

            if not self._buffer:
                return
            take = min(self._remaining, len(self._buffer))
            chunk = bytes(self._buffer[:take])
            del self._buffer[:take]
            self._remaining -= take
            yield Data(chunk)
