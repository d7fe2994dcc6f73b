"""Transport layer: the TCP client that owns the Marionette socket."""

from .tcp_connection import ConnectionState, MarionetteClient
