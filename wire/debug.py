"""Protocol stream debugging for stream-player.

Contains:
- header_tokens: Render a frame header as printable tokens
- DebugTap: Pass-through filter reporting each outbound frame it sees
"""

from collections.abc import AsyncIterator, Callable

from wire.decoder import FrameDecoder, Header
from wire.frame import FrameHeader, session_id_to_string


def header_tokens(header: FrameHeader) -> list[str]:
    """Return [command, size (if present), session ID, checksum hex]."""
    tokens = [header.command.name]
    if header.size is not None:
        tokens.append(str(header.size))
    tokens.append(session_id_to_string(header.session_id))
    tokens.append(header.checksum.hex())
    return tokens


class DebugTap:
    """Forwards bytes unchanged, calling on_frame once per frame header.

    The tap parses its own copy of the stream, so framing errors in the
    outbound bytes surface here as ProtocolError.
    """

    def __init__(self, on_frame: Callable[[list[str]], None]) -> None:
        self._on_frame = on_frame
        self._decoder = FrameDecoder()

    def observe(self, chunk: bytes) -> bytes:
        """Inspect a chunk and return it unchanged."""
        for event in self._decoder.feed(chunk):
            if isinstance(event, Header):
                self._on_frame(header_tokens(event.header))
        return chunk

    async def transform(self, source: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        """Yield every chunk of source unchanged, observing it on the way."""
        async for chunk in source:
            yield self.observe(chunk)
