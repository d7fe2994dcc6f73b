"""Protocol layer: length-prefixed framing, command envelopes, and response decoding."""

from .framing import build_frame, read_frame, write_frame
from .commands import Command, LocatorStrategy, build_command, encode_command
from .parser import (
    EnvelopeCommand,
    EnvelopeError,
    EnvelopeSuccess,
    Handshake,
    ProtocolError,
    decode_incoming,
)
