"""Exception hierarchy for the Marionette client.

Every failure the client can report derives from :class:`MarionetteError`.
Framing failures leave the socket at an unknown position in the byte stream,
so a client that raised a :class:`FrameError` must be reopened before reuse.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from .parser import ProtocolError


class MarionetteError(Exception):
    """Base class for all Marionette client errors."""


class MarionetteConnectionError(MarionetteError, ConnectionError):
    """Raised when the TCP connection to the remote end cannot be opened."""

    def __init__(
        self,
        host: str,
        port: int,
        errno: int | None = None,
        reason: str = "",
    ) -> None:
        message = f"Could not open connection to {host}:{port}"
        if errno is not None:
            message += f" (errno {errno})"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.host = host
        self.port = port
        self.errno = errno
        self.reason = reason


class NotConnectedError(MarionetteError, ConnectionError):
    """Raised when a command is sent before the handshake has completed."""


class ClientStateError(MarionetteError):
    """Raised when a lifecycle method is called in the wrong state."""


class InitError(MarionetteError):
    """Raised when the handshake frame cannot be read or understood."""


# ─── FRAMING ─────────────────────────────────────────────────────────


class FrameError(MarionetteError):
    """Base class for transport-level framing failures."""


class BadSizePrefixError(FrameError):
    """The bytes before the ``:`` delimiter are not a decimal length."""

    def __init__(self, message: str, prefix: bytes = b"") -> None:
        super().__init__(message)
        self.prefix = prefix


class TruncatedFrameError(FrameError):
    """The stream ended before the announced number of payload bytes."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"Frame truncated: expected {expected} bytes, got {received}"
        )
        self.expected = expected
        self.received = received


class FrameTimeoutError(FrameError, TimeoutError):
    """The read deadline expired before a whole frame arrived."""


class FrameWriteError(FrameError):
    """Writing a frame to the socket failed."""


class ConnectionLostError(FrameError):
    """The socket was reset or broken while a frame was being read."""


# ─── ENVELOPES ───────────────────────────────────────────────────────


class EncodeError(MarionetteError):
    """Command parameters could not be serialized to a JSON object."""


class DecodeError(MarionetteError):
    """A frame was read but does not hold valid protocol data."""


class InvalidJsonError(DecodeError):
    """The frame payload is not valid UTF-8 JSON."""


class MalformedEnvelopeError(DecodeError):
    """The JSON value is neither a handshake nor a 4-slot envelope."""


# ─── COMMAND RESULTS ─────────────────────────────────────────────────


class ProtocolViolation(MarionetteError):
    """A successful response does not carry what the command requires."""

    def __init__(
        self, message: str, command: str | None = None, payload: Any = None
    ) -> None:
        super().__init__(message)
        self.command = command
        self.payload = payload


class RemoteError(MarionetteError):
    """The remote end rejected a command.

    The structured error is available as :attr:`error`; ``str()`` gives its
    rendered form.
    """

    def __init__(self, error: ProtocolError, command: str | None = None) -> None:
        super().__init__(str(error))
        self.error = error
        self.command = command

    @property
    def kind(self) -> str:
        return self.error.kind
