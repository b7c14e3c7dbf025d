"""Integration tests for SessionPlayer against a scripted local server."""

import asyncio
import logging
import socket
import time
from pathlib import Path

import pytest

from session.player import SessionOptions, SessionPlayer, play_stream, source_size
from wire.address import Address
from wire.encoder import encode_frame
from wire.errors import ConfigError, NetworkError, ProtocolError
from wire.frame import header_length
from wire.protocol import Command

IDLE_S = 0.2
# Scheduling slack allowed around timer expiry
TOLERANCE_S = 0.05


def _options(**kwargs) -> SessionOptions:
    kwargs.setdefault("idle_timeout_s", IDLE_S)
    return SessionOptions(**kwargs)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _settle(server) -> None:
    """Wait for the server side of every connection to finish."""
    for _ in range(100):
        if all(r.closed_at is not None for r in server.records):
            return
        await asyncio.sleep(0.01)


@pytest.mark.unit
class TestSourceSize:
    """Tests for source_size."""

    def test_size(self, source_file) -> None:
        assert source_size(source_file(b"x" * 123)) == 123

    def test_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot find"):
            source_size(tmp_path / "nope.bin")

    def test_directory(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            source_size(tmp_path)


@pytest.mark.integration
class TestSessionPlayer:
    """End-to-end session behaviour over loopback TCP."""

    def test_counts_blob_bytes(self, responder, step, source_file, session_id: bytes) -> None:
        path = source_file(b"request bytes")
        steps = [
            step(encode_frame(Command.FOUND, session_id, b"helloworld")),
            step(encode_frame(Command.MISSING, session_id)),
            step(encode_frame(Command.FOUND, session_id, b"x" * 1000)),
        ]

        async def scenario():
            async with responder(steps) as server:
                return await play_stream(path, Address("127.0.0.1", server.port), _options())

        result = asyncio.run(scenario())
        assert result.bytes_sent == 13
        assert result.bytes_received == 1010
        assert result.receive_duration_ms >= 0

    def test_logs_frames_received(
        self, responder, step, source_file, session_id: bytes, caplog: pytest.LogCaptureFixture
    ) -> None:
        path = source_file(b"abc")
        steps = [
            step(encode_frame(Command.FOUND, session_id, b"helloworld")),
            step(encode_frame(Command.MISSING, session_id)),
        ]

        async def scenario():
            async with responder(steps) as server:
                await play_stream(path, Address("127.0.0.1", server.port), _options())

        with caplog.at_level(logging.DEBUG, logger="session.player"):
            asyncio.run(scenario())
        assert "(2 frames received)" in caplog.text

    def test_logs_close_mid_frame(
        self, responder, step, source_file, session_id: bytes, caplog: pytest.LogCaptureFixture
    ) -> None:
        path = source_file(b"abc")
        steps = [step(encode_frame(Command.FOUND, session_id, b"helloworld")[:20])]

        async def scenario():
            async with responder(steps, close_after_script=True) as server:
                await play_stream(path, Address("127.0.0.1", server.port), _options(idle_timeout_s=5.0))

        with caplog.at_level(logging.DEBUG, logger="session.player"):
            with pytest.raises(ProtocolError, match="inside a frame header"):
                asyncio.run(scenario())
        assert "closed the connection mid-frame" in caplog.text

    def test_server_receives_wrapped_stream(self, responder, source_file) -> None:
        data = bytes(range(256)) * 10
        path = source_file(data)

        async def scenario():
            async with responder() as server:
                await play_stream(
                    path,
                    Address("127.0.0.1", server.port),
                    _options(read_chunk_size=1000),
                )
                await _settle(server)
                return server

        server = asyncio.run(scenario())
        # 2560 bytes in three PUT frames
        expected = len(data) + 3 * header_length(Command.PUT)
        assert [r.bytes_received for r in server.records] == [expected]

    def test_framed_source_sent_unchanged(self, responder, source_file, session_id: bytes) -> None:
        recorded = (
            encode_frame(Command.TXN_START, session_id)
            + encode_frame(Command.PUT, session_id, b"payload")
            + encode_frame(Command.GET, session_id)
            + encode_frame(Command.TXN_END, session_id)
        )
        path = source_file(recorded)

        async def scenario():
            async with responder() as server:
                await play_stream(
                    path,
                    Address("127.0.0.1", server.port),
                    _options(realign=True, read_chunk_size=7),
                )
                await _settle(server)
                return server

        server = asyncio.run(scenario())
        assert server.records[0].bytes_received == len(recorded)

    def test_framed_source_truncated(self, responder, source_file, session_id: bytes) -> None:
        path = source_file(encode_frame(Command.PUT, session_id, b"payload")[:-2])

        async def scenario():
            async with responder() as server:
                await play_stream(path, Address("127.0.0.1", server.port), _options(realign=True))

        with pytest.raises(ProtocolError):
            asyncio.run(scenario())

    def test_closes_after_idle_timeout(self, responder, step, source_file, session_id: bytes) -> None:
        path = source_file(b"abc")
        steps = [
            step(encode_frame(Command.FOUND, session_id, b"first")),
            step(encode_frame(Command.FOUND, session_id, b"second"), delay_s=0.1),
        ]

        async def scenario():
            async with responder(steps) as server:
                result = await play_stream(path, Address("127.0.0.1", server.port), _options())
                await _settle(server)
                return result, server

        result, server = asyncio.run(scenario())
        assert result.bytes_received == 11
        record = server.records[0]
        quiet = record.closed_at - record.last_sent_at
        assert quiet >= IDLE_S - TOLERANCE_S
        assert quiet < IDLE_S + 0.5

    def test_gap_shorter_than_idle_keeps_session(self, responder, step, source_file, session_id: bytes) -> None:
        path = source_file(b"abc")
        steps = [
            step(encode_frame(Command.FOUND, session_id, b"a" * 10)),
            step(encode_frame(Command.FOUND, session_id, b"b" * 10), delay_s=IDLE_S / 2),
            step(encode_frame(Command.FOUND, session_id, b"c" * 10), delay_s=IDLE_S / 2),
        ]

        async def scenario():
            async with responder(steps) as server:
                return await play_stream(path, Address("127.0.0.1", server.port), _options())

        result = asyncio.run(scenario())
        assert result.bytes_received == 30
        assert result.receive_duration_ms >= (IDLE_S - TOLERANCE_S) * 1000

    def test_silent_server_ends_after_idle(self, responder, source_file) -> None:
        path = source_file(b"abc")

        async def scenario():
            async with responder() as server:
                start = time.monotonic()
                result = await play_stream(path, Address("127.0.0.1", server.port), _options())
                return result, time.monotonic() - start

        result, elapsed = asyncio.run(scenario())
        assert result.bytes_received == 0
        assert result.receive_duration_ms == 0
        assert elapsed >= IDLE_S - TOLERANCE_S

    def test_dataless_responses_end_session(self, responder, step, source_file, session_id: bytes) -> None:
        path = source_file(b"abc")
        steps = [step(encode_frame(Command.MISSING, session_id))]

        async def scenario():
            async with responder(steps) as server:
                return await play_stream(path, Address("127.0.0.1", server.port), _options())

        result = asyncio.run(scenario())
        assert result.bytes_received == 0

    def test_receive_window_ends_at_last_blob(self, responder, step, source_file, session_id: bytes) -> None:
        """A trailing dataless frame re-arms the timer but not the receive end."""
        path = source_file(b"abc")
        steps = [
            step(encode_frame(Command.FOUND, session_id, b"helloworld")),
            step(encode_frame(Command.MISSING, session_id), delay_s=0.3),
        ]

        async def scenario():
            async with responder(steps) as server:
                return await play_stream(
                    path, Address("127.0.0.1", server.port), _options(idle_timeout_s=0.5)
                )

        result = asyncio.run(scenario())
        assert result.bytes_received == 10
        assert result.receive_duration_ms < 100

    def test_remote_close_ends_session(self, responder, step, source_file, session_id: bytes) -> None:
        path = source_file(b"abc")
        steps = [step(encode_frame(Command.FOUND, session_id, b"helloworld"))]

        async def scenario():
            async with responder(steps, close_after_script=True) as server:
                start = time.monotonic()
                result = await play_stream(
                    path, Address("127.0.0.1", server.port), _options(idle_timeout_s=5.0)
                )
                return result, time.monotonic() - start

        result, elapsed = asyncio.run(scenario())
        assert result.bytes_received == 10
        assert elapsed < 2.0

    def test_close_mid_blob_is_protocol_error(self, responder, step, source_file, session_id: bytes) -> None:
        path = source_file(b"abc")
        frame = encode_frame(Command.FOUND, session_id, b"helloworld")
        steps = [step(frame[:-4])]

        async def scenario():
            async with responder(steps, close_after_script=True) as server:
                await play_stream(path, Address("127.0.0.1", server.port), _options(idle_timeout_s=5.0))

        with pytest.raises(ProtocolError, match="outstanding"):
            asyncio.run(scenario())

    def test_malformed_response(self, responder, step, source_file) -> None:
        path = source_file(b"abc")
        steps = [step(b"\x99" + b"\x00" * 40)]

        async def scenario():
            async with responder(steps) as server:
                await play_stream(path, Address("127.0.0.1", server.port), _options())

        with pytest.raises(ProtocolError, match="Invalid command code"):
            asyncio.run(scenario())

    def test_connection_refused(self, source_file) -> None:
        path = source_file(b"abc")
        with pytest.raises(NetworkError):
            asyncio.run(play_stream(path, Address("127.0.0.1", _free_port()), _options()))

    def test_missing_source(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            asyncio.run(play_stream(tmp_path / "missing.bin", Address("127.0.0.1", 1), _options()))

    def test_empty_source(self, responder, source_file) -> None:
        path = source_file(b"")

        async def scenario():
            async with responder() as server:
                result = await play_stream(path, Address("127.0.0.1", server.port), _options())
                await _settle(server)
                return result, server

        result, server = asyncio.run(scenario())
        assert result.bytes_sent == 0
        assert server.records[0].bytes_received == 0

    def test_debug_output(
        self, responder, step, source_file, session_id: bytes, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = source_file(b"hello")
        steps = [step(encode_frame(Command.FOUND, session_id, b"helloworld"))]

        async def scenario():
            async with responder(steps) as server:
                await play_stream(
                    path, Address("127.0.0.1", server.port), _options(debug_protocol=True)
                )

        asyncio.run(scenario())
        lines = capsys.readouterr().out.splitlines()
        assert any(line.startswith(">>> PUT 5 ") for line in lines)
        assert any(line.startswith("<<< FOUND 10 00010203-") for line in lines)
        assert any(line.startswith("<<< <BLOB ") for line in lines)

    def test_session_ids_are_unique(self, tmp_path: Path) -> None:
        players = [SessionPlayer(tmp_path / "x", Address("127.0.0.1", 1)) for _ in range(10)]
        assert len({p.session_id for p in players}) == 10
        assert all(len(p.label) == 8 for p in players)
