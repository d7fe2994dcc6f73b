"""Decoding of incoming frame payloads.

A payload is either the one-time handshake object::

    {"applicationType": "gecko", "marionetteProtocol": 3}

or a 4-slot envelope::

    [<reply-to>, <message id>, <error object> | "<command>" | null, <result> | null]

:func:`decode_incoming` decides which once and returns a tagged value; callers
dispatch on the returned type and never look at the raw JSON again.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from .errors import InvalidJsonError, MalformedEnvelopeError

HANDSHAKE_VERSION_KEY = "marionetteProtocol"
HANDSHAKE_APPLICATION_KEY = "applicationType"
ENVELOPE_LENGTH = 4
UNKNOWN_ERROR_KIND = "unknown error"


@dataclass(frozen=True)
class ProtocolError:
    """An error reported by the remote end for a single command."""

    kind: str
    detail: str | None = None
    trace: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProtocolError:
        """Build from the wire keys ``error``, ``message`` and ``stacktrace``."""
        return cls(
            kind=_optional_str(data.get("error")) or UNKNOWN_ERROR_KIND,
            detail=_optional_str(data.get("message")),
            trace=_optional_str(data.get("stacktrace")),
        )

    def __str__(self) -> str:
        return render_protocol_error(self)


def render_protocol_error(error: ProtocolError) -> str:
    """Render as ``"ProtocolError Kind: ..., Detail: ..., Trace: ..."``.

    Fields that are None or empty are left out.
    """
    parts = [f"Kind: {error.kind}"] if error.kind else []
    if error.detail:
        parts.append(f"Detail: {error.detail}")
    if error.trace:
        parts.append(f"Trace: {error.trace}")
    return " ".join(filter(None, [type(error).__name__, ", ".join(parts)]))


@dataclass(frozen=True)
class Handshake:
    """The first frame sent by the remote end after a connect."""

    protocol_version: int
    application_type: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EnvelopeSuccess:
    """A response carrying a result payload."""

    reply_to: int
    message_id: int
    result: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EnvelopeError:
    """A response carrying a remote error; it has no usable result."""

    reply_to: int
    message_id: int
    error: ProtocolError

    def __repr__(self) -> str:
        return (
            f"EnvelopeError(reply_to={self.reply_to}, "
            f"message_id={self.message_id}, kind={self.error.kind!r})"
        )


@dataclass(frozen=True)
class EnvelopeCommand:
    """A command envelope, as produced by :func:`.commands.encode_command`."""

    reply_to: int
    message_id: int
    name: str
    params: dict[str, Any] = field(default_factory=dict)


Incoming = Union[Handshake, EnvelopeSuccess, EnvelopeError, EnvelopeCommand]


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_handshake(data: dict[str, Any]) -> Handshake:
    """Parse the handshake object.

    The protocol version must be an integer; the application type is kept
    as-is when it is a string.
    """
    version = data.get(HANDSHAKE_VERSION_KEY)
    if not _is_int(version):
        raise MalformedEnvelopeError(
            f"Handshake protocol version is not an integer: {version!r}"
        )
    application = data.get(HANDSHAKE_APPLICATION_KEY)
    return Handshake(
        protocol_version=version,
        application_type=application if isinstance(application, str) else None,
        raw=data,
    )


def parse_envelope(
    message: list[Any],
) -> EnvelopeSuccess | EnvelopeError | EnvelopeCommand:
    """Interpret a decoded 4-slot JSON array."""
    if len(message) != ENVELOPE_LENGTH:
        raise MalformedEnvelopeError(
            f"Envelope must have {ENVELOPE_LENGTH} slots, got {len(message)}"
        )

    reply_to, message_id, status, body = message
    if not _is_int(reply_to) or not _is_int(message_id):
        raise MalformedEnvelopeError(
            f"Envelope ids must be integers, got {reply_to!r} and {message_id!r}"
        )

    if status and isinstance(status, str):
        if not isinstance(body, dict):
            raise MalformedEnvelopeError(
                f"Command parameters must be an object, got {type(body).__name__}"
            )
        return EnvelopeCommand(
            reply_to=reply_to, message_id=message_id, name=status, params=body
        )

    if status and isinstance(status, dict):
        return EnvelopeError(
            reply_to=reply_to,
            message_id=message_id,
            error=ProtocolError.from_dict(status),
        )

    # null, "", false, 0, [] and {} all mean "no error"
    if status:
        raise MalformedEnvelopeError(
            f"Envelope error slot has unexpected type {type(status).__name__}"
        )

    if body is None:
        body = {}
    elif not isinstance(body, dict):
        raise MalformedEnvelopeError(
            f"Envelope result must be an object, got {type(body).__name__}"
        )
    return EnvelopeSuccess(reply_to=reply_to, message_id=message_id, result=body)


def decode_incoming(data: bytes) -> Incoming:
    """Decode one frame payload into a handshake or an envelope.

    Raises:
        InvalidJsonError: The payload is not UTF-8 JSON.
        MalformedEnvelopeError: The JSON has neither accepted shape.
    """
    try:
        message = json.loads(data)
    except ValueError as e:
        raise InvalidJsonError(f"Failed to decode message JSON: {e}") from e

    if isinstance(message, dict):
        if HANDSHAKE_VERSION_KEY in message:
            return parse_handshake(message)
        raise MalformedEnvelopeError(
            f"Object payload is not a handshake: keys {sorted(message)}"
        )

    if not isinstance(message, list):
        raise MalformedEnvelopeError(
            f"Envelope must be an array, got {type(message).__name__}"
        )

    return parse_envelope(message)
