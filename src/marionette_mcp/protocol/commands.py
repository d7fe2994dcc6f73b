"""Command names, locator strategies, and command envelope builders.

A command envelope is a JSON array ``[0, <message id>, "<name>", {params}]``.
The first slot is always 0 since the client never replies to the remote end.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

from .errors import EncodeError
from .framing import build_frame

DEFAULT_SCRIPT_TIMEOUT = 10
NO_REPLY_TO = 0


class Command(str, Enum):
    """WebDriver command names understood by Marionette."""

    NEW_SESSION = "WebDriver:NewSession"
    DELETE_SESSION = "WebDriver:DeleteSession"
    NAVIGATE = "WebDriver:Navigate"
    GET_CURRENT_URL = "WebDriver:GetCurrentURL"
    GET_TITLE = "WebDriver:GetTitle"
    EXECUTE_SCRIPT = "WebDriver:ExecuteScript"
    FIND_ELEMENT = "WebDriver:FindElement"
    FIND_ELEMENTS = "WebDriver:FindElements"


class LocatorStrategy(str, Enum):
    """Element location strategies for ``FindElement``."""

    ID = "id"
    NAME = "name"
    CLASS_NAME = "class name"
    TAG_NAME = "tag name"
    CSS_SELECTOR = "css selector"
    LINK_TEXT = "link text"
    PARTIAL_LINK_TEXT = "partial link text"
    XPATH = "xpath"
    ANON = "anon"
    ANON_ATTRIBUTE = "anon attribute"


def command_name(command: Command | str) -> str:
    """Return the wire name for a :class:`Command` or a raw name string."""
    return command.value if isinstance(command, Command) else command


def encode_command(
    command: Command | str,
    params: Mapping[str, Any] | None,
    message_id: int,
) -> bytes:
    """Serialize a command envelope to UTF-8 JSON bytes.

    Args:
        command: Command name, e.g. ``WebDriver:Navigate``.
        params: Command parameters; must serialize to a JSON object.
        message_id: Correlation id for this command.

    Raises:
        EncodeError: If ``params`` is not a mapping or not JSON representable.
    """
    name = command_name(command)
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise EncodeError(
            f"Parameters for {name} must be a mapping, got {type(params).__name__}"
        )
    try:
        text = json.dumps(
            [NO_REPLY_TO, message_id, name, dict(params)],
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError) as e:
        raise EncodeError(f"Failed to create command for {name}: {e}") from e
    return text.encode("utf-8")


def build_command(
    command: Command | str,
    params: Mapping[str, Any] | None,
    message_id: int,
) -> bytes:
    """Build the framed bytes for a command, ready to write to the socket."""
    return build_frame(encode_command(command, params, message_id))


def new_session_params() -> dict[str, Any]:
    """Parameters for ``NewSession``: wait for full page loads."""
    return {"capabilities": {"pageLoadStrategy": "normal"}}


def navigate_params(url: str) -> dict[str, Any]:
    return {"url": url}


def execute_script_params(
    script: str,
    args: list[Any] | None = None,
    script_timeout: int = DEFAULT_SCRIPT_TIMEOUT,
) -> dict[str, Any]:
    """Parameters for ``ExecuteScript``.

    Args:
        script: Function body run in the page; ``arguments[i]`` holds ``args[i]``.
        args: Positional script arguments.
        script_timeout: Passed through as ``scriptTimeout``.
    """
    return {
        "script": script,
        "args": list(args) if args is not None else [],
        "scriptTimeout": script_timeout,
    }


def find_element_params(using: LocatorStrategy | str, value: str) -> dict[str, Any]:
    """Parameters for ``FindElement``/``FindElements``.

    Strategy strings outside :class:`LocatorStrategy` are forwarded unchanged;
    the remote end decides whether they are valid.
    """
    strategy = using.value if isinstance(using, LocatorStrategy) else using
    return {"using": strategy, "value": value}
