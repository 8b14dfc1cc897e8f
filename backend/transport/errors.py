"""
Transport error taxonomy.

- TransportConnectionError: the channel could not be opened
- WriteError: a control byte could not be transmitted
- ReadError: the read side failed mid-session

ReadError.intentional distinguishes a read torn down by close() (swallowed
by the read loop) from a peer that went away (treated as a disconnect).
"""

from __future__ import annotations


class TransportError(Exception):
    """Base class for serial transport errors."""


class TransportConnectionError(TransportError, ConnectionError):
    """
    Raised when open() fails: no device at the port, permission denied,
    or the port vanished before the handshake completed.

    Surfaced to the caller; there is no retry loop. The caller re-invokes
    open() to try again.
    """


class WriteError(TransportError):
    """Raised when writing to a transport that is not open, or the write fails."""


class ReadError(TransportError):
    """
    Raised when a read fails or is attempted on a closed transport.
    """

    def __init__(self, message: str, *, intentional: bool = False) -> None:
        super().__init__(message)
        self.intentional = intentional
