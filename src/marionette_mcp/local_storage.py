"""Browser ``localStorage`` helpers built on ``execute_script``.

Keys and values are passed to the page as script arguments rather than
spliced into the script text, so any string is safe to store.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Protocol

from .protocol.commands import Command
from .protocol.errors import ProtocolViolation

GET_LOCAL_STORAGE_SCRIPT = (
    "var items = {};"
    "Object.keys(localStorage).forEach(function(key) {"
    "  items[key] = localStorage.getItem(key);"
    "});"
    "return JSON.stringify(items);"
)

CLEAR_LOCAL_STORAGE_SCRIPT = "localStorage.clear();"


class ScriptRunner(Protocol):
    def execute_script(
        self, script: str, args: list[Any] | None = None
    ) -> dict[str, Any]: ...


def _storage_value(value: Any) -> Any:
    # JSON literals are stored under their JavaScript spelling
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    return value


def build_set_local_storage_script(
    items: Mapping[str, Any],
) -> tuple[str, list[Any]]:
    """Build a script that stores every item of ``items``.

    Returns:
        ``(script, args)`` where ``args`` alternates keys and values.
    """
    lines = []
    args: list[Any] = []
    for key, value in items.items():
        lines.append(
            f"localStorage.setItem(arguments[{len(args)}], arguments[{len(args) + 1}]);"
        )
        args.extend([str(key), _storage_value(value)])
    return "\n".join(lines), args


def set_local_storage(client: ScriptRunner, items: Mapping[str, Any]) -> None:
    """Store ``items`` in the current page's local storage."""
    if not items:
        return
    script, args = build_set_local_storage_script(items)
    client.execute_script(script, args)


def get_local_storage(client: ScriptRunner) -> dict[str, str]:
    """Return every key/value pair in the current page's local storage.

    Raises:
        ProtocolViolation: If the script result is missing or not JSON.
    """
    result = client.execute_script(GET_LOCAL_STORAGE_SCRIPT)
    encoded = result.get("value")
    if not isinstance(encoded, str):
        raise ProtocolViolation(
            f"Failed to get local storage parameters: {result!r}",
            command=Command.EXECUTE_SCRIPT.value,
            payload=result,
        )
    try:
        items = json.loads(encoded)
    except ValueError as e:
        raise ProtocolViolation(
            f"Failed to decode local storage JSON: {e}",
            command=Command.EXECUTE_SCRIPT.value,
            payload=result,
        ) from e
    if not isinstance(items, dict):
        raise ProtocolViolation(
            f"Local storage JSON is not an object: {encoded!r}",
            command=Command.EXECUTE_SCRIPT.value,
            payload=result,
        )
    return items


def clear_local_storage(client: ScriptRunner) -> None:
    """Remove all local storage items for the current page's origin."""
    client.execute_script(CLEAR_LOCAL_STORAGE_SCRIPT)
