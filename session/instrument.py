"""Inbound stream instrumentation for stream-player.

ReceiveInstrument consumes decoder events for one session. It counts
received blob bytes, records the receive window and, in debug mode, prints
each inbound header and the SHA-256 of each blob.
"""

import hashlib
import time
from collections.abc import Callable

from wire.debug import header_tokens
from wire.decoder import Data, DataEnd, Event, Header
from wire.frame import FrameHeader


class ReceiveInstrument:
    """Byte counting, timing and debug output for inbound frames."""

    def __init__(
        self,
        debug: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.debug = debug
        self.bytes_received = 0
        self.frames_received = 0
        self.receive_start: float | None = None
        self.receive_end: float | None = None
        self._clock = clock
        self._blob_hash: "hashlib._Hash | None" = None

    @property
    def receive_duration_ms(self) -> int:
        """Milliseconds from first header to last DataEnd (0 if none)."""
        if self.receive_start is None or self.receive_end is None:
            return 0
        return round((self.receive_end - self.receive_start) * 1000)

    def handle(self, event: Event) -> None:
        match event:
            case Header(header=header):
                self.on_header(header)
            case Data(chunk=chunk):
                self.on_data(chunk)
            case DataEnd():
                self.on_data_end()

    def on_header(self, header: FrameHeader) -> None:
        now = self._clock()
        if self.receive_start is None:
            self.receive_start = now

        if self.debug:
            print(f"<<< {' '.join(header_tokens(header))}")
            if header.has_data:
                self._blob_hash = hashlib.sha256()

        # Only DataEnd closes the receive window
        if not header.has_data:
            self.frames_received += 1

    def on_data(self, chunk: bytes) -> None:
        self.bytes_received += len(chunk)
        if self._blob_hash is not None:
            self._blob_hash.update(chunk)

    def on_data_end(self) -> None:
        self.frames_received += 1
        self.receive_end = self._clock()
        if self._blob_hash is not None:
            print(f"<<< <BLOB {self._blob_hash.hexdigest()}>")
            self._blob_hash = None
