"""MCP server entry point for driving Firefox over Marionette.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .local_storage import (
    clear_local_storage as _clear_local_storage,
    get_local_storage as _get_local_storage,
    set_local_storage as _set_local_storage,
)
from .protocol.commands import Command, LocatorStrategy
from .protocol.errors import RemoteError
from .protocol.framing import DEFAULT_READ_TIMEOUT
from .transport.tcp_connection import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    MarionetteClient,
)

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "marionette",
    instructions="MCP server for driving a Firefox browser over the Marionette protocol",
)

# Global connection state
_client: MarionetteClient | None = None


def _get_client() -> MarionetteClient:
    """Get the active client, raising if not connected."""
    if _client is None or not _client.connected:
        raise RuntimeError(
            "Not connected to a browser. Use the 'connect' tool first."
        )
    return _client


def _remote_error(e: RemoteError) -> dict[str, Any]:
    result: dict[str, Any] = {"error": e.error.kind}
    if e.error.detail:
        result["message"] = e.error.detail
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    timeout: float = DEFAULT_READ_TIMEOUT,
) -> dict[str, Any]:
    """Connect to a Firefox instance started with ``--marionette``.

    Reads the handshake the browser sends on connect and reports the
    protocol version.

    Args:
        host: Marionette host (default localhost).
        port: Marionette port (default 2828).
        timeout: Seconds to wait for each response, including page loads.
    """
    global _client
    if _client is not None and _client.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "host": _client.host,
            "port": _client.port,
        }

    _client = MarionetteClient(host=host, port=port, timeout=timeout)
    handshake = _client.open()

    return {
        "connected": True,
        "host": host,
        "port": port,
        "application_type": handshake.application_type,
        "protocol_version": handshake.protocol_version,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the browser."""
    global _client
    if _client is None:
        return {"disconnected": True}
    _client.close()
    _client = None
    return {"disconnected": True}


# ─── SESSION & NAVIGATION TOOLS ──────────────────────────────────────

@mcp.tool()
def new_session() -> dict[str, Any]:
    """Start a WebDriver session. Required before any other browser tool."""
    client = _get_client()
    try:
        session_id = client.new_session()
    except RemoteError as e:
        return _remote_error(e)
    return {"session_id": session_id}


@mcp.tool()
def navigate(url: str) -> dict[str, Any]:
    """Load a URL and wait until the page has finished loading.

    Args:
        url: Absolute URL to open.
    """
    client = _get_client()
    try:
        client.navigate(url)
    except RemoteError as e:
        return _remote_error(e)
    return {"navigated": True, "url": url}


@mcp.tool()
def get_page_info() -> dict[str, Any]:
    """Return the current page title and URL."""
    client = _get_client()
    try:
        return {"title": client.get_title(), "url": client.get_current_url()}
    except RemoteError as e:
        return _remote_error(e)


# ─── SCRIPT & ELEMENT TOOLS ──────────────────────────────────────────

@mcp.tool()
def execute_script(script: str, args: list[Any] | None = None) -> dict[str, Any]:
    """Run JavaScript in the current page.

    The script is a function body: use ``return`` to send a value back and
    ``arguments[i]`` to read ``args[i]``.

    Args:
        script: JavaScript function body.
        args: Optional positional arguments.
    """
    client = _get_client()
    try:
        result = client.execute_script(script, args)
    except RemoteError as e:
        return _remote_error(e)
    return {"value": result.get("value")}


@mcp.tool()
def find_element(using: str, value: str) -> dict[str, Any]:
    """Locate the first element matching a selector.

    Args:
        using: Strategy, e.g. "css selector", "xpath", "id", "link text".
        value: Selector for the chosen strategy.
    """
    client = _get_client()
    try:
        result = client.find_element(using, value)
    except RemoteError as e:
        return _remote_error(e)
    return {"element": result.get("value")}


@mcp.tool()
def find_elements(using: str, value: str) -> dict[str, Any]:
    """Locate every element matching a selector.

    Args:
        using: Strategy, e.g. "css selector", "xpath", "id", "link text".
        value: Selector for the chosen strategy.
    """
    client = _get_client()
    try:
        elements = client.find_elements(using, value)
    except RemoteError as e:
        return _remote_error(e)
    return {"elements": elements, "count": len(elements)}


# ─── LOCAL STORAGE TOOLS ─────────────────────────────────────────────

@mcp.tool()
def get_local_storage() -> dict[str, Any]:
    """Read all local storage items of the current page."""
    client = _get_client()
    try:
        items = _get_local_storage(client)
    except RemoteError as e:
        return _remote_error(e)
    return {"items": items, "count": len(items)}


@mcp.tool()
def set_local_storage(items: dict[str, Any]) -> dict[str, Any]:
    """Store key/value pairs in the current page's local storage.

    Args:
        items: Mapping of keys to values. Values are stored as strings.
    """
    client = _get_client()
    try:
        _set_local_storage(client, items)
    except RemoteError as e:
        return _remote_error(e)
    return {"stored": sorted(items)}


@mcp.tool()
def clear_local_storage() -> dict[str, Any]:
    """Delete all local storage items of the current page's origin."""
    client = _get_client()
    try:
        _clear_local_storage(client)
    except RemoteError as e:
        return _remote_error(e)
    return {"cleared": True}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("marionette://connection/status")
def resource_connection_status() -> str:
    """Connection state, protocol version, and session id."""
    if _client is None:
        return json.dumps({"connected": False, "state": "disconnected"})

    return json.dumps({
        "connected": _client.connected,
        "state": _client.state.value,
        "host": _client.host,
        "port": _client.port,
        "application_type": _client.application_type,
        "protocol_version": _client.protocol_version,
        "session_id": _client.session_id,
    })


@mcp.resource("marionette://catalog/commands")
def resource_commands() -> str:
    """WebDriver commands this server sends."""
    commands = [{"id": c.name.lower(), "name": c.value} for c in Command]
    return json.dumps({"commands": commands, "count": len(commands)})


@mcp.resource("marionette://catalog/locators")
def resource_locators() -> str:
    """Element location strategies accepted by find_element."""
    return json.dumps({"locators": [s.value for s in LocatorStrategy]})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def scrape_page(url: str) -> str:
    """Guide the AI through loading a page and extracting its content.

    Args:
        url: Page to scrape.
    """
    return f"""Open {url} and summarize its content.
Steps:
- connect, then new_session if no session is active
- navigate to {url}
- get_page_info for the title
- use execute_script with "return document.body.innerText;" for the text
- use find_elements with "css selector" to collect links or headings

Report errors returned by the tools instead of retrying blindly."""


@mcp.prompt()
def inspect_storage(url: str) -> str:
    """Inspect what a site keeps in local storage.

    Args:
        url: Site to inspect.
    """
    return f"""Navigate to {url} and read its local storage with get_local_storage.
Group the keys by purpose (session, preferences, analytics, cache).
Point out values that look like tokens or personal data.
Do not modify storage unless asked; clear_local_storage is destructive."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
