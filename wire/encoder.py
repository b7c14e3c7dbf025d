"""Outbound frame encoding for stream-player.

Contains:
- encode_frame: Build a single frame from a command, session ID and blob
- FrameEncoder: Streaming transform from source bytes to outbound frames

FrameEncoder has two modes:
- wrap: each source chunk is sent as the blob of one PUT frame
- realign: the source already holds frames (a recorded client stream) and
  is re-cut on frame boundaries without changing any byte
"""

import logging
from collections.abc import AsyncIterator

from wire.decoder import Data, FrameDecoder, Header
from wire.frame import FrameHeader, checksum
from wire.protocol import TRACE, Command

logger = logging.getLogger(__name__)


def encode_frame(
    command: Command,
    session_id: bytes,
    data: bytes | None = None,
    checksum_value: bytes | None = None,
) -> bytes:
    """Encode one frame.

    data must be given for commands that carry data and omitted otherwise.
    The checksum defaults to the MD5 of data (of b"" for dataless frames).
    """
    blob = data if data is not None else b""
    header = FrameHeader(
        command=command,
        size=len(blob) if data is not None else None,
        session_id=session_id,
        checksum=checksum_value if checksum_value is not None else checksum(blob),
    )
    return header.encode() + blob


class FrameEncoder:
    """Streaming transform turning source bytes into outbound frames."""

    def __init__(self, session_id: bytes, realign: bool = False) -> None:
        self.session_id = session_id
        self.realign = realign
        self.frames_emitted = 0
        self._decoder = FrameDecoder() if realign else None

    def encode(self, chunk: bytes) -> list[bytes]:
        """Encode one source chunk.

        In wrap mode returns one PUT frame per non-empty chunk. In realign
        mode returns each complete header and each run of blob bytes found
        so far, in order.

        Raises:
            ProtocolError: In realign mode, on malformed source framing.
        """
        if not chunk:
            return []

        if self._decoder is None:
            self.frames_emitted += 1
            logger.log(TRACE, f"Wrapping {len(chunk)} source bytes in a PUT frame")
            return [encode_frame(Command.PUT, self.session_id, chunk)]

        out: list[bytes] = []
        for event in self._decoder.feed(chunk):
            match event:
                case Header(header=header):
                    self.frames_emitted += 1
                    out.append(header.encode())
                case Data(chunk=data):
                    out.append(data)
        return out

    def finish(self) -> None:
        """Signal end of source.

        Raises:
            ProtocolError: In realign mode, if the source ended mid-frame.
        """
        if self._decoder is not None:
            self._decoder.close()

    async def transform(self, source: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        """Yield encoded output for each chunk pulled from source.

        Nothing is read from source until the consumer asks for the next
        output, so a slow sink holds the source back.
        """
        async for chunk in source:
            for piece in self.encode(chunk):
                yield piece
        self.finish()
