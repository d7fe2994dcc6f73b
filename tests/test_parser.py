"""Tests for incoming payload decoding and remote error rendering."""

import json

import pytest

from marionette_mcp.protocol.commands import Command, encode_command
from marionette_mcp.protocol.errors import InvalidJsonError, MalformedEnvelopeError
from marionette_mcp.protocol.parser import (
    EnvelopeCommand,
    EnvelopeError,
    EnvelopeSuccess,
    Handshake,
    ProtocolError,
    decode_incoming,
    render_protocol_error,
)

INVALID_SESSION = {
    "error": "invalid session id",
    "message": "WebDriver session does not exist, or is not active",
    "stacktrace": "RemoteError@chrome://remote/content/shared/RemoteError.sys.mjs:8:8\n",
}


def _encode(message) -> bytes:
    return json.dumps(message).encode("utf-8")


def test_decode_handshake():
    message = decode_incoming(b'{"applicationType":"gecko","marionetteProtocol":3}')
    assert isinstance(message, Handshake)
    assert message.protocol_version == 3
    assert message.application_type == "gecko"
    assert message.raw == {"applicationType": "gecko", "marionetteProtocol": 3}


def test_decode_handshake_without_application_type():
    message = decode_incoming(b'{"marionetteProtocol":3}')
    assert isinstance(message, Handshake)
    assert message.application_type is None


def test_decode_handshake_non_integer_version():
    with pytest.raises(MalformedEnvelopeError):
        decode_incoming(b'{"marionetteProtocol":"three"}')


def test_decode_object_without_version_is_malformed():
    with pytest.raises(MalformedEnvelopeError):
        decode_incoming(b'{"applicationType":"gecko"}')


def test_decode_success():
    message = decode_incoming(
        _encode([1, 42, None, {"value": {"element-6066-11e4-a52e-4f735466cecf": "0acd"}}])
    )
    assert message == EnvelopeSuccess(
        reply_to=1,
        message_id=42,
        result={"value": {"element-6066-11e4-a52e-4f735466cecf": "0acd"}},
    )


def test_decode_success_null_result_defaults_to_empty():
    message = decode_incoming(b"[1,2,null,null]")
    assert isinstance(message, EnvelopeSuccess)
    assert message.result == {}


def test_decode_success_empty_error_object():
    message = decode_incoming(b'[1,2,{},{"value":null}]')
    assert isinstance(message, EnvelopeSuccess)
    assert message.result == {"value": None}


@pytest.mark.parametrize("status", ["", False, 0, [], {}])
def test_decode_success_with_empty_error_slot(status):
    """Any empty error slot means success, never a command or malformed envelope."""
    message = decode_incoming(_encode([1, 2, status, {"value": 1}]))
    assert message == EnvelopeSuccess(reply_to=1, message_id=2, result={"value": 1})


def test_decode_error():
    message = decode_incoming(_encode([1, 1, INVALID_SESSION, None]))
    assert isinstance(message, EnvelopeError)
    assert message.error == ProtocolError(
        kind="invalid session id",
        detail="WebDriver session does not exist, or is not active",
        trace=INVALID_SESSION["stacktrace"],
    )


def test_decode_error_never_exposes_result():
    """An error envelope carries no result even if slot 3 is filled."""
    message = decode_incoming(
        _encode([1, 1, {"error": "invalid session id", "message": "gone"}, {"value": 5}])
    )
    assert isinstance(message, EnvelopeError)
    assert not hasattr(message, "result")
    text = str(message.error)
    assert "invalid session id" in text
    assert "gone" in text


def test_decode_error_partial_fields():
    message = decode_incoming(_encode([1, 3, {"message": "boom"}, None]))
    assert isinstance(message, EnvelopeError)
    assert message.error.kind == "unknown error"
    assert message.error.detail == "boom"
    assert message.error.trace is None


def test_decode_command_round_trip():
    """Encoded commands decode back to the same name and params."""
    params = {"script": "return arguments[0];", "args": ["ü", 1, None], "scriptTimeout": 10}
    message = decode_incoming(encode_command(Command.EXECUTE_SCRIPT, params, 9))
    assert message == EnvelopeCommand(
        reply_to=0, message_id=9, name="WebDriver:ExecuteScript", params=params
    )


@pytest.mark.parametrize(
    "data",
    [b"", b"not json", b"[1,2,", b"\xff\xfe\x00"],
)
def test_decode_invalid_json(data):
    with pytest.raises(InvalidJsonError):
        decode_incoming(data)


@pytest.mark.parametrize(
    "message",
    [
        [],
        [1, 2, None],
        [1, 2, None, {}, 5],
        ["1", 2, None, {}],
        [1, 2.5, None, {}],
        [True, 2, None, {}],
        [1, 2, None, [1, 2]],
        [1, 2, None, "value"],
        [1, 2, 7, {}],
        [1, 2, ["error"], {}],
        [1, 2, "WebDriver:Navigate", None],
        "text",
        42,
        None,
    ],
)
def test_decode_malformed_envelope(message):
    with pytest.raises(MalformedEnvelopeError):
        decode_incoming(_encode(message))


def test_render_all_fields():
    error = ProtocolError(kind="no such element", detail="Unable to locate", trace="a\nb")
    assert render_protocol_error(error) == (
        "ProtocolError Kind: no such element, Detail: Unable to locate, Trace: a\nb"
    )
    assert str(error) == render_protocol_error(error)


def test_render_omits_absent_fields():
    assert str(ProtocolError(kind="timeout")) == "ProtocolError Kind: timeout"
    assert (
        str(ProtocolError(kind="timeout", detail="", trace="t"))
        == "ProtocolError Kind: timeout, Trace: t"
    )


def test_render_empty_kind_has_no_trailing_space():
    assert str(ProtocolError(kind="")) == "ProtocolError"
    assert str(ProtocolError(kind="", detail="d")) == "ProtocolError Detail: d"


def test_protocol_error_is_immutable():
    error = ProtocolError(kind="timeout")
    with pytest.raises(AttributeError):
        error.kind = "other"
