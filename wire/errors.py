"""Error types for stream-player.

Contains:
- StreamPlayerError: Base class for all run failures
- ConfigError: Source file missing or unreadable
- AddressError: Malformed server address string
- NetworkError: Connection refused, reset or timed out
- ProtocolError: Inbound or outbound bytes that cannot be framed
"""


class StreamPlayerError(Exception):
    """Base class for errors that abort a replay run."""

    pass


class ConfigError(StreamPlayerError):
    """Raised when the source file is missing or unreadable."""

    pass


class AddressError(StreamPlayerError):
    """Raised when a server address string cannot be parsed."""

    pass


class NetworkError(StreamPlayerError):
    """Raised when the transport fails (refused, reset, timeout)."""

    pass


class ProtocolError(StreamPlayerError):
    """Raised when a byte stream violates the framing rules."""

    pass
