"""Server package for stream-player.

Contains the local discard server used when no server address is given.
"""

from server.discard import DiscardServer

__all__ = [
    "DiscardServer",
]
