"""
Exception hierarchy for tool-server communication.

Transport-level failures (connect, closed, timeout, malformed frames) sit
under TransportError. RemoteError carries a JSON-RPC error object returned
by the server. Connection lifecycle failures are ServerInitializationError.
"""

from __future__ import annotations

from typing import Any


class ToolServerError(Exception):
    """Base class for all tool-server errors."""


class TransportError(ToolServerError):
    """The channel to a tool server failed."""


class TransportConnectError(TransportError):
    """The transport could not be opened (process spawn, HTTP stream)."""


class TransportClosedError(TransportError):
    """The transport was torn down while a request was outstanding."""


class ProtocolTimeout(TransportError):
    """No response arrived for a request within the timeout bound."""

    def __init__(self, method: str, request_id: int, timeout: float):
        self.method = method
        self.request_id = request_id
        self.timeout = timeout
        super().__init__(
            f"Request timeout: {method} (id={request_id}) got no response in {timeout:g}s"
        )


class ProtocolError(ToolServerError):
    """An inbound payload is not a valid JSON-RPC envelope or MCP shape."""


class RemoteError(ToolServerError):
    """The server answered a request with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"[{code}] {message}")


class ServerInitializationError(ToolServerError):
    """Connect, handshake or capability discovery failed for one server."""

    def __init__(self, server: str, stage: str, reason: str):
        self.server = server
        self.stage = stage
        super().__init__(f"Server '{server}' failed during {stage}: {reason}")


class ServerNotConnectedError(ToolServerError):
    """An operation was attempted on a connection that is not connected."""

    def __init__(self, server: str):
        self.server = server
        super().__init__(f"MCP server {server} is not connected")
