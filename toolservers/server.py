"""
Minimal MCP tool server over stdio.

A tool server is a standalone process that:
1. Reads JSON-RPC messages from stdin, one per line
2. Answers the MCP handshake and dispatches tool calls to ToolHandlers
3. Writes JSON-RPC responses to stdout

To create a tool server:

    from toolservers.server import StdioToolServer, ToolHandler

    class MyTool(ToolHandler):
        name = "my_tool"
        description = "Does something useful"
        parameters = {
            "input": {"type": "string", "description": "The input"},
        }
        required = ["input"]

        def handle(self, params: dict) -> str:
            return f"processed: {params['input']}"

    if __name__ == "__main__":
        server = StdioToolServer("my-server")
        server.register(MyTool())
        server.run()
"""

from __future__ import annotations

import json
import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, TextIO

from toolservers.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    PROTOCOL_VERSION,
)

logger = logging.getLogger(__name__)


class ToolHandler(ABC):
    """
    Base class for a tool implementation.

    Subclasses define what a tool does. The server handles transport.
    """

    # Subclasses must set these
    name: str = ""
    description: str = ""
    parameters: dict[str, dict] = {}
    required: list[str] = []

    @abstractmethod
    def handle(self, params: dict[str, Any]) -> Any:
        """
        Execute the tool with the given parameters.

        Args:
            params: Dict of parameter name → value

        Returns:
            The tool result. Strings are sent as text content; anything
            else is JSON-encoded first.
        """
        ...

    def get_schema(self) -> dict:
        """Return the tool descriptor for tools/list."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {
                "type": "object",
                "properties": self.parameters,
                "required": self.required,
            },
        }


class MethodNotFound(Exception):
    pass


class StdioToolServer:
    """
    JSON-RPC tool server that communicates via stdin/stdout.

    Protocol:
    - One JSON-RPC message per line
    - Supports methods:
        - "initialize" → protocol version, capabilities, server info
        - "ping"       → health check
        - "tools/list" → registered tool descriptors
        - "tools/call" → calls a tool by name with arguments
    - Notifications (no id) are accepted and never answered
    """

    def __init__(self, name: str = "stdio-tool-server", version: str = "0.1.0"):
        self.name = name
        self.version = version
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, handler: ToolHandler) -> None:
        """Register a tool handler."""
        if not handler.name:
            raise ValueError(f"ToolHandler {handler.__class__.__name__} has no name")
        self._handlers[handler.name] = handler
        logger.info(f"Registered tool: {handler.name}")

    def run(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        """
        Main loop: read messages from stdin, dispatch, write responses to stdout.

        This blocks until stdin is closed (parent process terminates).
        """
        stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        logger.info(f"Tool server starting with {len(self._handlers)} tools: "
                    f"{list(self._handlers.keys())}")

        for line in stdin:
            line = line.strip()
            if not line:
                continue

            try:
                message = json.loads(line)
            except json.JSONDecodeError as e:
                self._write_error(None, PARSE_ERROR, f"Parse error: {e}")
                continue
            if not isinstance(message, dict):
                self._write_error(None, PARSE_ERROR, "Message must be a JSON object")
                continue

            request_id = message.get("id")
            method = message.get("method", "")
            params = message.get("params") or {}

            if request_id is None:
                # Notification (e.g. notifications/initialized)
                logger.debug(f"Notification: {method}")
                continue

            try:
                result = self._dispatch(method, params)
                self._write_result(request_id, result)
            except MethodNotFound as e:
                self._write_error(request_id, METHOD_NOT_FOUND, str(e))
            except (KeyError, TypeError) as e:
                self._write_error(request_id, INVALID_PARAMS, str(e))
            except Exception as e:
                self._write_error(request_id, INTERNAL_ERROR, str(e))

    def _dispatch(self, method: str, params: dict) -> Any:
        """Route a method call to the appropriate handler."""

        if method == "initialize":
            return {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": self.name, "version": self.version},
            }

        if method == "ping":
            return {}

        if method == "tools/list":
            return {"tools": [h.get_schema() for h in self._handlers.values()]}

        if method == "tools/call":
            return self._call_tool(params["name"], params.get("arguments") or {})

        raise MethodNotFound(f"Method not found: '{method}'")

    def _call_tool(self, tool_name: str, arguments: dict) -> dict:
        handler = self._handlers.get(tool_name)
        if not handler:
            return _content(
                f"Unknown tool: '{tool_name}'. Available: {list(self._handlers.keys())}",
                is_error=True,
            )
        try:
            output = handler.handle(arguments)
        except Exception as e:
            return _content(f"{tool_name} failed: {e}", is_error=True)
        text = output if isinstance(output, str) else json.dumps(output)
        return _content(text)

    def _write_result(self, request_id: Any, result: Any) -> None:
        """Write a JSON-RPC success response to stdout."""
        self._write({"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result})

    def _write_error(self, request_id: Any, code: int, message: str) -> None:
        """Write a JSON-RPC error response to stdout."""
        self._write({
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "error": {"code": code, "message": message},
        })

    def _write(self, payload: dict) -> None:
        self._stdout.write(json.dumps(payload) + "\n")
        self._stdout.flush()


def _content(text: str, is_error: bool = False) -> dict:
    return {"content": [{"type": "text", "text": text}], "isError": is_error}
