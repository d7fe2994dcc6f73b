"""Shared test helpers: a scripted socket stand-in and frame builders."""

from __future__ import annotations

import json
import socket


class FakeSocket:
    """Socket double that serves pre-loaded bytes and records writes.

    Args:
        incoming: Bytes the remote end "sends".
        chunk_size: Upper bound on bytes returned per ``recv`` call.
        timeout_when_empty: Raise ``socket.timeout`` instead of returning
            ``b""`` once the incoming bytes are exhausted.
    """

    def __init__(
        self,
        incoming: bytes = b"",
        chunk_size: int | None = None,
        timeout_when_empty: bool = False,
    ) -> None:
        self._incoming = bytearray(incoming)
        self._chunk_size = chunk_size
        self._timeout_when_empty = timeout_when_empty
        self.sent = bytearray()
        self.timeouts: list[float | None] = []
        self.recv_calls = 0
        self.close_calls = 0

    def feed(self, data: bytes) -> None:
        self._incoming += data

    def settimeout(self, value: float | None) -> None:
        self.timeouts.append(value)

    def recv(self, size: int) -> bytes:
        self.recv_calls += 1
        if not self._incoming:
            if self._timeout_when_empty:
                raise socket.timeout("timed out")
            return b""
        if self._chunk_size is not None:
            size = min(size, self._chunk_size)
        data = bytes(self._incoming[:size])
        del self._incoming[:size]
        return data

    def sendall(self, data: bytes) -> None:
        self.sent += data

    def close(self) -> None:
        self.close_calls += 1

    @property
    def remaining(self) -> bytes:
        return bytes(self._incoming)


def frame(message) -> bytes:
    """Frame a JSON-serializable message the way the remote end does."""
    payload = json.dumps(message).encode("utf-8")
    return str(len(payload)).encode("ascii") + b":" + payload


def sent_messages(sock: FakeSocket) -> list:
    """Split everything written to ``sock`` back into decoded JSON messages."""
    messages = []
    data = bytes(sock.sent)
    while data:
        size, _, rest = data.partition(b":")
        length = int(size)
        messages.append(json.loads(rest[:length]))
        data = rest[length:]
    return messages


HANDSHAKE = {"applicationType": "gecko", "marionetteProtocol": 3}
