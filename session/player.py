"""Single-session replay for stream-player.

Contains:
- SessionOptions: Per-session settings
- SessionPlayer: Replays the source over one connection
- play_stream: Convenience wrapper returning the session's JobResult

The protocol has no end-of-response marker. A session ends when no inbound
frame has started for idle_timeout_s: the idle timer is armed on connect,
cancelled by every inbound header and re-armed when a frame completes. When
it expires (and the source has been fully written) the connection is
closed. A peer closing the connection first also ends the session.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

from session.instrument import ReceiveInstrument
from session.result import JobResult
from wire.address import Address
from wire.debug import DebugTap
from wire.decoder import DataEnd, FrameDecoder, Header
from wire.encoder import FrameEncoder
from wire.errors import ConfigError, NetworkError
from wire.frame import generate_session_id, session_id_to_string
from wire.protocol import (
    DEFAULT_CONNECT_TIMEOUT_S,
    IDLE_TIMEOUT_S,
    READ_CHUNK_SIZE,
    TRACE,
)

logger = logging.getLogger(__name__)


@dataclass
class SessionOptions:
    """Settings for one replay session."""

    idle_timeout_s: float = IDLE_TIMEOUT_S
    debug_protocol: bool = False
    realign: bool = False  # Source already holds frames
    connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S
    read_chunk_size: int = READ_CHUNK_SIZE


def source_size(source_path: Path) -> int:
    """Return the size of the source file.

    Raises:
        ConfigError: If the file does not exist or cannot be inspected.
    """
    if not source_path.is_file():
        raise ConfigError(f"Cannot find {source_path}")
    try:
        return source_path.stat().st_size
    except OSError as e:
        raise ConfigError(f"Cannot read {source_path}: {e}") from e


def _elapsed_ms(start: float | None, end: float | None) -> int:
    if start is None or end is None:
        return 0
    return round((end - start) * 1000)


class SessionPlayer:
    """Replays a source file over a single connection."""

    def __init__(
        self,
        source_path: Path,
        address: Address,
        options: SessionOptions | None = None,
    ) -> None:
        self.source_path = Path(source_path)
        self.address = address
        self.options = options or SessionOptions()
        self.session_id = generate_session_id()
        self.label = session_id_to_string(self.session_id)[:8]

        self._encoder = FrameEncoder(self.session_id, realign=self.options.realign)
        self._decoder = FrameDecoder()
        self._instrument = ReceiveInstrument(debug=self.options.debug_protocol)
        self._send_start: float | None = None
        self._send_end: float | None = None

        self._idle_handle: asyncio.TimerHandle | None = None
        self._idle_expired = False
        self._sending_done = False
        self._finished: asyncio.Event | None = None

    # -------------------------------------------------------------------------
    # Idle timer
    # -------------------------------------------------------------------------

    def _arm_idle_timer(self) -> None:
        self._cancel_idle_timer()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self.options.idle_timeout_s, self._on_idle_timeout)

    def _cancel_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None
        self._idle_expired = False

    def _on_idle_timeout(self) -> None:
        self._idle_handle = None
        self._idle_expired = True
        logger.log(TRACE, f"Session {self.label}: idle timeout expired")
        self._maybe_finish()

    def _maybe_finish(self) -> None:
        # The upload is never cut short; an expiry during sending closes
        # the session as soon as the source is exhausted.
        if self._idle_expired and self._sending_done and self._finished is not None:
            self._finished.set()

    # -------------------------------------------------------------------------
    # Outbound pump
    # -------------------------------------------------------------------------

    async def _read_source(self) -> AsyncIterator[bytes]:
        try:
            f = open(self.source_path, "rb")
        except OSError as e:
            raise ConfigError(f"Cannot open {self.source_path}: {e}") from e

        with f:
            self._send_start = time.monotonic()
            while True:
                try:
                    chunk = f.read(self.options.read_chunk_size)
                except OSError as e:
                    raise ConfigError(f"Cannot read {self.source_path}: {e}") from e
                if not chunk:
                    break
                yield chunk
        self._send_end = time.monotonic()

    def _print_outbound(self, tokens: list[str]) -> None:
        print(f">>> {' '.join(tokens)}")

    async def _pump_out(self, writer: asyncio.StreamWriter) -> None:
        pipeline = self._encoder.transform(self._read_source())
        if self.options.debug_protocol:
            pipeline = DebugTap(self._print_outbound).transform(pipeline)

        async for piece in pipeline:
            try:
                writer.write(piece)
                await writer.drain()
            except OSError as e:
                raise NetworkError(f"Write to {self.address} failed: {e}") from e

        logger.debug(
            f"Session {self.label}: source sent "
            f"({self._encoder.frames_emitted} frames)"
        )
        self._sending_done = True
        self._maybe_finish()

    # -------------------------------------------------------------------------
    # Inbound pump
    # -------------------------------------------------------------------------

    async def _pump_in(self, reader: asyncio.StreamReader) -> None:
        while True:
            try:
                data = await reader.read(self.options.read_chunk_size)
            except OSError as e:
                raise NetworkError(f"Read from {self.address} failed: {e}") from e

            if not data:
                if self._decoder.in_frame:
                    logger.debug(f"Session {self.label}: server closed the connection mid-frame")
                self._decoder.close()
                logger.debug(f"Session {self.label}: server closed the connection")
                return

            for event in self._decoder.feed(data):
                self._instrument.handle(event)
                match event:
                    case Header(header=header) if header.has_data:
                        self._cancel_idle_timer()
                    case Header():
                        self._arm_idle_timer()
                    case DataEnd():
                        self._arm_idle_timer()

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def _connect(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        try:
            return await asyncio.wait_for(
                asyncio.open_connection(self.address.host, self.address.port),
                timeout=self.options.connect_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"Timeout ({self.options.connect_timeout_s}s) connecting to {self.address}"
            ) from e
        except OSError as e:
            raise NetworkError(f"Cannot connect to {self.address}: {e}") from e

    async def play(self) -> JobResult:
        """Replay the source and return the session's JobResult.

        Raises:
            ConfigError: If the source is missing or unreadable.
            NetworkError: On connection failure or transport errors.
            ProtocolError: If the inbound stream cannot be decoded.
        """
        bytes_sent = source_size(self.source_path)
        reader, writer = await self._connect()
        logger.debug(f"Session {self.label}: connected to {self.address}")

        self._finished = asyncio.Event()
        self._arm_idle_timer()

        sender = asyncio.create_task(self._pump_out(writer))
        receiver = asyncio.create_task(self._pump_in(reader))
        finished = asyncio.create_task(self._finished.wait())
        tasks = {sender, receiver, finished}

        try:
            waiting = set(tasks)
            while not (finished.done() or receiver.done()):
                done, waiting = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    task.result()

            if not receiver.done():
                writer.write(b"")
                try:
                    await writer.drain()
                except OSError as e:
                    raise NetworkError(f"Flush to {self.address} failed: {e}") from e
                logger.debug(f"Session {self.label}: idle, closing connection")
        finally:
            self._cancel_idle_timer()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug(f"Session {self.label}: error while closing: {e}")

        result = JobResult(
            bytes_sent=bytes_sent,
            bytes_received=self._instrument.bytes_received,
            send_duration_ms=_elapsed_ms(self._send_start, self._send_end),
            receive_duration_ms=self._instrument.receive_duration_ms,
        )
        logger.debug(
            f"Session {self.label}: {result} "
            f"({self._decoder.frames_decoded} frames received)"
        )
        return result


async def play_stream(
    source_path: Path,
    address: Address,
    options: SessionOptions | None = None,
) -> JobResult:
    """Replay source_path against address once and return the JobResult."""
    return await SessionPlayer(source_path, address, options).play()
