"""pytest configuration and fixtures for stream-player tests.

Provides:
- ResponderServer: Scripted asyncio TCP server that answers each connection
  with a list of frames and records connection timing and concurrency
- responder fixture: Factory for ResponderServer
- source_file fixture: Factory writing a source file under tmp_path
- session_id fixture: Fixed 16-byte session ID
- Markers for unit vs integration tests
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest


@dataclass
class ConnectionRecord:
    """Timing and traffic of one accepted connection."""

    opened_at: float
    closed_at: float | None = None
    last_sent_at: float | None = None
    bytes_received: int = 0


@dataclass
class Step:
    """One scripted action: wait delay_s, then send data."""

    data: bytes
    delay_s: float = 0.0


class ResponderServer:
    """Scripted TCP server for session tests.

    Every connection is answered with the same steps. Afterwards the server
    either keeps reading until the client closes (default) or closes the
    connection itself (close_after_script=True).
    """

    def __init__(
        self,
        steps: list[Step] | None = None,
        close_after_script: bool = False,
    ) -> None:
        self.steps = steps or []
        self.close_after_script = close_after_script
        self.records: list[ConnectionRecord] = []
        self.open_connections = 0
        self.max_open_connections = 0
        self.open_samples: list[int] = []
        self._server: asyncio.Server | None = None

    @property
    def port(self) -> int:
        assert self._server is not None
        return self._server.sockets[0].getsockname()[1]

    async def __aenter__(self) -> "ResponderServer":
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        assert self._server is not None
        self._server.close()
        await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        record = ConnectionRecord(opened_at=time.monotonic())
        self.records.append(record)
        self.open_connections += 1
        self.max_open_connections = max(self.max_open_connections, self.open_connections)
        self.open_samples.append(self.open_connections)
        drain = asyncio.create_task(self._drain(reader, record))
        try:
            for step in self.steps:
                if step.delay_s:
                    await asyncio.sleep(step.delay_s)
                writer.write(step.data)
                await writer.drain()
                record.last_sent_at = time.monotonic()
            if not self.close_after_script:
                await drain
        except ConnectionError:
            pass
        finally:
            drain.cancel()
            record.closed_at = time.monotonic()
            self.open_connections -= 1
            writer.close()

    @staticmethod
    async def _drain(reader: asyncio.StreamReader, record: ConnectionRecord) -> None:
        while True:
            try:
                data = await reader.read(65536)
            except ConnectionError:
                return
            if not data:
                return
            record.bytes_received += len(data)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test (opens local sockets)")


@pytest.fixture
def responder() -> Callable[..., ResponderServer]:
    """Return a factory for ResponderServer (use as an async context manager)."""
    return ResponderServer


@pytest.fixture
def step() -> type[Step]:
    """Return the Step type for building responder scripts."""
    return Step


@pytest.fixture
def source_file(tmp_path: Path) -> Callable[[bytes], Path]:
    """Return a factory writing the given bytes to a source file."""

    def make(data: bytes, name: str = "session.bin") -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return make


@pytest.fixture
def session_id() -> bytes:
    """Return a fixed 16-byte session ID."""
    return bytes(range(16))
