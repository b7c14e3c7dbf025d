"""Local discard server for stream-player.

Contains DiscardServer, an ephemeral TCP listener used when no server
address is given. It accepts any number of connections, reads each until
the client closes and throws the bytes away, so a run measures plain
loopback throughput.
"""

import asyncio
import logging

from wire.address import Address
from wire.protocol import READ_CHUNK_SIZE

logger = logging.getLogger(__name__)

ALL_INTERFACES = "0.0.0.0"
LOOPBACK = "127.0.0.1"


class DiscardServer:
    """TCP server that discards everything it receives."""

    def __init__(self, host: str = ALL_INTERFACES, port: int = 0) -> None:
        self.host = host
        self.port = port
        self.connections = 0
        self.bytes_discarded = 0
        self._server: asyncio.Server | None = None

    @property
    def address(self) -> Address:
        """Connectable address of the running server."""
        if self._server is None:
            raise RuntimeError("Discard server is not running")
        host, port = self._server.sockets[0].getsockname()[:2]
        if host in (ALL_INTERFACES, "::"):
            host = LOOPBACK
        return Address(host=host, port=port)

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, self.host, self.port)
        logger.debug(f"Discard server listening on {self.address}")

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.debug(
            f"Discard server stopped ({self.connections} connections, "
            f"{self.bytes_discarded} bytes discarded)"
        )

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        peer = writer.get_extra_info("peername")
        logger.debug(f"Discard server: connection from {peer}")
        try:
            while True:
                data = await reader.read(READ_CHUNK_SIZE)
                if not data:
                    break
                self.bytes_discarded += len(data)
        except ConnectionError as e:
            logger.debug(f"Discard server: connection from {peer} lost: {e}")
        finally:
            writer.close()

    async def __aenter__(self) -> "DiscardServer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
