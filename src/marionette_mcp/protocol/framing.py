"""Length-prefixed frame codec for the Marionette byte stream.

Frame layout::

    +------------------------+-----+-----------------------------+
    | Size                   |  :  | Payload                     |
    | ASCII decimal digits   |     | exactly <Size> bytes (JSON) |
    +------------------------+-----+-----------------------------+

- Size: byte length of the payload, not its character count
- Payload: UTF-8 encoded JSON, see :mod:`.parser` and :mod:`.commands`

The first frame after connecting is the handshake; every later frame carries
one envelope. Reads are bounded by a single deadline covering the size prefix
and the payload together.
"""

from __future__ import annotations

import socket
import time

from .errors import (
    BadSizePrefixError,
    ConnectionLostError,
    FrameTimeoutError,
    FrameWriteError,
    TruncatedFrameError,
)

SIZE_DELIMITER = b":"
DEFAULT_READ_TIMEOUT = 30.0  # seconds; long enough for a full page load
RECV_CHUNK_SIZE = 65536


def build_frame(payload: bytes) -> bytes:
    """Prefix ``payload`` with its decimal byte length and the delimiter."""
    return str(len(payload)).encode("ascii") + SIZE_DELIMITER + payload


def write_frame(sock: socket.socket, payload: bytes) -> None:
    """Frame ``payload`` and write it to ``sock`` in one ``sendall`` call.

    Raises:
        FrameWriteError: If the socket rejects the write.
    """
    try:
        sock.sendall(build_frame(payload))
    except OSError as e:
        raise FrameWriteError(f"Failed to write frame: {e}") from e


class _Deadline:
    """Applies one overall deadline to a sequence of ``recv`` calls."""

    def __init__(self, sock: socket.socket, timeout: float | None) -> None:
        self._sock = sock
        self._timeout = timeout
        self._expires = None if timeout is None else time.monotonic() + timeout

    def recv(self, size: int) -> bytes:
        if self._expires is not None:
            remaining = self._expires - time.monotonic()
            if remaining <= 0:
                raise FrameTimeoutError(
                    f"Timed out after {self._timeout}s while reading frame"
                )
            self._sock.settimeout(remaining)
        try:
            return self._sock.recv(size)
        except socket.timeout as e:
            raise FrameTimeoutError(
                f"Timed out after {self._timeout}s while reading frame"
            ) from e
        except OSError as e:
            raise ConnectionLostError(f"Connection lost while reading frame: {e}") from e


def _read_size(reader: _Deadline) -> int:
    digits = bytearray()
    while True:
        byte = reader.recv(1)
        if not byte:
            raise BadSizePrefixError(
                "Stream ended before the size delimiter", bytes(digits)
            )
        if byte == SIZE_DELIMITER:
            break
        digits += byte
        if not byte.isdigit():
            raise BadSizePrefixError(
                f"Frame size is not numeric: {bytes(digits)!r}", bytes(digits)
            )

    if not digits:
        raise BadSizePrefixError("Frame size is empty", b"")
    return int(digits)


def read_frame(
    sock: socket.socket, timeout: float | None = DEFAULT_READ_TIMEOUT
) -> bytes:
    """Read one frame from ``sock`` and return its payload bytes.

    The size prefix is consumed one byte at a time so that nothing past the
    delimiter is read; the payload is then read in a loop until exactly the
    announced number of bytes has arrived.

    Args:
        sock: A connected stream socket.
        timeout: Deadline in seconds for the whole frame, or None to block.

    Raises:
        BadSizePrefixError: The prefix is not ``<digits>:``.
        TruncatedFrameError: The stream ended inside the payload.
        FrameTimeoutError: The deadline expired. Bytes already consumed are
            lost, so the stream is no longer aligned on a frame boundary.
        ConnectionLostError: The socket failed while reading.
    """
    reader = _Deadline(sock, timeout)
    size = _read_size(reader)

    payload = bytearray()
    while len(payload) < size:
        chunk = reader.recv(min(size - len(payload), RECV_CHUNK_SIZE))
        if not chunk:
            raise TruncatedFrameError(size, len(payload))
        payload += chunk

    return bytes(payload)
