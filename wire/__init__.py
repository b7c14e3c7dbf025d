"""Wire-level modules for stream-player.

This package contains the framing code shared by the player and its tests:
- protocol: Command enum, field sizes, timing and network defaults
- errors: Error taxonomy (ConfigError, AddressError, NetworkError, ProtocolError)
- address: Address dataclass and host:port parsing
- frame: FrameHeader and header encoding/decoding
- decoder: Incremental FrameDecoder and its events
- encoder: FrameEncoder and encode_frame
- debug: DebugTap and header rendering
- report: Reporting abstractions
"""

from wire.address import Address, parse_address
from wire.decoder import Data, DataEnd, Event, FrameDecoder, Header
from wire.encoder import FrameEncoder, encode_frame
from wire.errors import (
    AddressError,
    ConfigError,
    NetworkError,
    ProtocolError,
    StreamPlayerError,
)
from wire.frame import FrameHeader
from wire.protocol import (
    DEFAULT_PORT,
    IDLE_TIMEOUT_MS,
    IDLE_TIMEOUT_S,
    TRACE,
    Command,
)

__all__ = [
    # Protocol
    "Command",
    "DEFAULT_PORT",
    "IDLE_TIMEOUT_MS",
    "IDLE_TIMEOUT_S",
    "TRACE",
    # Framing
    "Address",
    "parse_address",
    "FrameHeader",
    "FrameDecoder",
    "FrameEncoder",
    "encode_frame",
    "Event",
    "Header",
    "Data",
    "DataEnd",
    # Exceptions
    "AddressError",
    "ConfigError",
    "NetworkError",
    "ProtocolError",
    "StreamPlayerError",
]
