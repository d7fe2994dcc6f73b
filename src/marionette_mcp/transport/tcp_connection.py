"""TCP connection to a Marionette server (Firefox started with ``--marionette``).

The remote end speaks first: right after the connect it sends a handshake
frame announcing the protocol version. From then on the client writes one
command frame and blocks until the matching response frame has been read.
Only one command is ever in flight.
"""

from __future__ import annotations

import logging
import socket
from enum import Enum
from typing import Any

from ..protocol.commands import (
    DEFAULT_SCRIPT_TIMEOUT,
    Command,
    LocatorStrategy,
    command_name,
    encode_command,
    execute_script_params,
    find_element_params,
    navigate_params,
    new_session_params,
)
from ..protocol.errors import (
    ClientStateError,
    DecodeError,
    FrameError,
    InitError,
    MarionetteConnectionError,
    NotConnectedError,
    ProtocolViolation,
    RemoteError,
)
from ..protocol.framing import DEFAULT_READ_TIMEOUT, read_frame, write_frame
from ..protocol.parser import (
    EnvelopeError,
    EnvelopeSuccess,
    Handshake,
    decode_incoming,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 2828


class ConnectionState(Enum):
    """Lifecycle of a :class:`MarionetteClient`."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"  # socket open, handshake not read yet
    READY = "ready"
    CLOSED = "closed"


class MarionetteClient:
    """Owns the socket to a Marionette server and runs command round-trips.

    Usage::

        with MarionetteClient() as client:
            client.new_session()
            client.navigate("https://example.org")
            title = client.get_title()

    Correlation ids belong to the instance: the first command uses 1 and each
    further command the next integer, across reconnects.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout: float | None = DEFAULT_READ_TIMEOUT,
        script_timeout: int = DEFAULT_SCRIPT_TIMEOUT,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._script_timeout = script_timeout
        self._sock: socket.socket | None = None
        self._state = ConnectionState.DISCONNECTED
        self._handshake: Handshake | None = None
        self._last_message_id = 0
        self._session_id: str | None = None

    def __repr__(self) -> str:
        return (
            f"MarionetteClient(host={self._host!r}, port={self._port}, "
            f"state={self._state.value})"
        )

    def __enter__(self) -> MarionetteClient:
        self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ─── PROPERTIES ─────────────────────────────────────────────────

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def script_timeout(self) -> int:
        return self._script_timeout

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        """True once the handshake has been read and commands may be sent."""
        return self._state is ConnectionState.READY

    @property
    def handshake(self) -> Handshake | None:
        return self._handshake

    @property
    def protocol_version(self) -> int | None:
        return self._handshake.protocol_version if self._handshake else None

    @property
    def application_type(self) -> str | None:
        return self._handshake.application_type if self._handshake else None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def last_message_id(self) -> int:
        """Correlation id of the most recent command, 0 before the first one."""
        return self._last_message_id

    # ─── LIFECYCLE ──────────────────────────────────────────────────

    def open(self) -> Handshake:
        """Connect and read the handshake.

        Returns:
            The parsed handshake frame.

        Raises:
            MarionetteConnectionError: If the socket cannot be opened.
            InitError: If the handshake frame is missing or invalid.
        """
        self.connect()
        return self.read_handshake()

    def connect(self) -> None:
        """Open the TCP socket.

        Raises:
            ClientStateError: If the client is already connected.
            MarionetteConnectionError: If the socket cannot be opened; the
                state is left unchanged.
        """
        if self._state in (ConnectionState.CONNECTED, ConnectionState.READY):
            raise ClientStateError(f"Client is already {self._state.value}")

        try:
            sock = socket.create_connection(
                (self._host, self._port), timeout=self._timeout
            )
        except OSError as e:
            raise MarionetteConnectionError(
                self._host, self._port, e.errno, e.strerror or str(e)
            ) from e

        self._sock = sock
        self._handshake = None
        self._session_id = None
        self._state = ConnectionState.CONNECTED
        logger.info("Connected to Marionette at %s:%d", self._host, self._port)

    def read_handshake(self) -> Handshake:
        """Read the first frame and move to ``READY``.

        Any failure closes the client before :class:`InitError` is raised.
        """
        if self._state is not ConnectionState.CONNECTED:
            raise ClientStateError(
                f"Handshake can only be read right after connecting, "
                f"client is {self._state.value}"
            )

        try:
            message = decode_incoming(read_frame(self._sock, self._timeout))
        except (FrameError, DecodeError) as e:
            self._release()
            raise InitError(f"Failed to read startup message: {e}") from e

        if not isinstance(message, Handshake):
            self._release()
            raise InitError(f"Startup message is not a handshake: {message!r}")

        self._handshake = message
        self._state = ConnectionState.READY
        logger.info(
            "Marionette handshake: application=%s protocol=%d",
            message.application_type,
            message.protocol_version,
        )
        return message

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self._sock is None:
            return
        self._release()
        logger.info("Disconnected from %s:%d", self._host, self._port)

    def _release(self) -> None:
        sock, self._sock = self._sock, None
        self._state = ConnectionState.CLOSED
        self._session_id = None
        if sock is None:
            return
        try:
            sock.close()
        except OSError as e:
            logger.warning("Error closing socket: %s", e)

    # ─── ROUND TRIP ─────────────────────────────────────────────────

    def send_command(
        self,
        command: Command | str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one command and block until its response has been read.

        Args:
            command: Command name.
            params: Command parameters (a JSON object).

        Returns:
            The result payload of the response.

        Raises:
            NotConnectedError: If the handshake has not completed.
            EncodeError: If ``params`` cannot be serialized; nothing is sent.
            FrameError: On any transport failure. The client is closed
                because the stream position is no longer known.
            DecodeError: If the response frame is not a valid envelope.
            RemoteError: If the remote end reports an error.
            ProtocolViolation: If the response is a handshake or a command.
        """
        if self._state is not ConnectionState.READY:
            raise NotConnectedError(
                f"Cannot send {command_name(command)}: client is {self._state.value}"
            )

        name = command_name(command)
        message_id = self._last_message_id + 1
        payload = encode_command(name, params, message_id)
        self._last_message_id = message_id
        logger.debug("-> %s (id=%d)", name, message_id)

        try:
            # read_frame leaves the socket timeout at whatever was left of its deadline
            self._sock.settimeout(self._timeout)
            write_frame(self._sock, payload)
            response = read_frame(self._sock, self._timeout)
        except FrameError:
            self._release()
            raise

        message = decode_incoming(response)
        if isinstance(message, EnvelopeError):
            logger.debug("<- %s (id=%d) error: %s", name, message_id, message.error.kind)
            raise RemoteError(message.error, command=name)
        if not isinstance(message, EnvelopeSuccess):
            raise ProtocolViolation(
                f"Expected a response to {name}, got {type(message).__name__}",
                command=name,
                payload=message,
            )

        logger.debug("<- %s (id=%d) ok", name, message_id)
        return message.result

    # ─── COMMANDS ───────────────────────────────────────────────────

    def new_session(self) -> str:
        """Start a WebDriver session and return its id."""
        result = self.send_command(Command.NEW_SESSION, new_session_params())
        session_id = result.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise ProtocolViolation(
                f"Failed to get sessionId out of message: {result!r}",
                command=Command.NEW_SESSION.value,
                payload=result,
            )
        self._session_id = session_id
        return session_id

    def delete_session(self) -> None:
        self.send_command(Command.DELETE_SESSION)
        self._session_id = None

    def navigate(self, url: str) -> None:
        """Load ``url``; returns once the remote end reports the page loaded."""
        self.send_command(Command.NAVIGATE, navigate_params(url))

    def get_current_url(self) -> str:
        return self._string_value(Command.GET_CURRENT_URL)

    def get_title(self) -> str:
        return self._string_value(Command.GET_TITLE)

    def execute_script(
        self, script: str, args: list[Any] | None = None
    ) -> dict[str, Any]:
        """Run ``script`` in the current page.

        Returns:
            The raw result payload; the script's return value is normally
            under its ``value`` key.
        """
        return self.send_command(
            Command.EXECUTE_SCRIPT,
            execute_script_params(script, args, self._script_timeout),
        )

    def find_element(
        self, using: LocatorStrategy | str, value: str
    ) -> dict[str, Any]:
        """Locate one element; returns the payload holding its reference."""
        return self.send_command(
            Command.FIND_ELEMENT, find_element_params(using, value)
        )

    def find_elements(
        self, using: LocatorStrategy | str, value: str
    ) -> list[Any]:
        result = self.send_command(
            Command.FIND_ELEMENTS, find_element_params(using, value)
        )
        elements = result.get("value")
        if not isinstance(elements, list):
            raise ProtocolViolation(
                f"Expected a list of elements, got {elements!r}",
                command=Command.FIND_ELEMENTS.value,
                payload=result,
            )
        return elements

    def _string_value(self, command: Command) -> str:
        result = self.send_command(command)
        value = result.get("value")
        if not isinstance(value, str):
            raise ProtocolViolation(
                f"Expected a string value, got {value!r}",
                command=command.value,
                payload=result,
            )
        return value
