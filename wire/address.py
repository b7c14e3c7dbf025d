"""Server address parsing for stream-player.

Accepted forms:
  host
  host:port
  [ipv6]
  [ipv6]:port

A bare IPv6 literal (more than one colon, no brackets) is taken as a host
without a port. The default port is substituted when none is given.
"""

from dataclasses import dataclass

from wire.errors import AddressError
from wire.protocol import DEFAULT_PORT

MAX_PORT = 65535


@dataclass(frozen=True)
class Address:
    """A connectable server address."""

    host: str
    port: int

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


def _parse_port(text: str, address: str) -> int:
    if not text.isdigit():
        raise AddressError(f"Invalid port in address {address!r}: {text!r}")
    port = int(text)
    if not 0 < port <= MAX_PORT:
        raise AddressError(f"Port out of range in address {address!r}: {port}")
    return port


def parse_address(address: str, default_port: int = DEFAULT_PORT) -> Address:
    """Parse a host[:port] string into an Address.

    Raises AddressError if the host is empty or the port is not a valid
    TCP port number.
    """
    text = address.strip()
    port_text: str | None = None

    if text.startswith("["):
        end = text.find("]")
        if end == -1:
            raise AddressError(f"Unterminated IPv6 literal in address {address!r}")
        host = text[1:end]
        rest = text[end + 1 :]
        if rest:
            if not rest.startswith(":"):
                raise AddressError(f"Unexpected text after IPv6 literal in {address!r}")
            port_text = rest[1:]
    elif text.count(":") == 1:
        host, port_text = text.split(":")
    else:
        host = text

    if not host:
        raise AddressError(f"Missing host in address {address!r}")

    port = default_port if port_text is None else _parse_port(port_text, address)
    return Address(host=host, port=port)
