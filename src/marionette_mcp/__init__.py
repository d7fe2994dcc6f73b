"""Marionette protocol client and MCP server for driving Firefox."""

__version__ = "0.1.0"
