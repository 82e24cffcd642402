"""
JSON-RPC 2.0 envelopes and MCP payload shapes.

Outbound messages are built from the dataclasses below and serialized with
to_json(). Inbound payloads go through parse_message(), which classifies a
decoded dict into exactly one envelope variant and rejects anything else
before a field is read:

    {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}       → JsonRpcRequest
    {"jsonrpc": "2.0", "method": "notifications/progress"}    → JsonRpcNotification
    {"jsonrpc": "2.0", "id": 1, "result": {...}}              → JsonRpcResponse
    {"jsonrpc": "2.0", "id": 1, "error": {"code": ..., ...}}  → JsonRpcErrorResponse
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from toolservers.errors import ProtocolError

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request."""
    method: str
    params: dict[str, Any] | None
    id: int | str

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": self.id, "method": self.method}
        if self.params is not None:
            data["params"] = self.params
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class JsonRpcNotification:
    """JSON-RPC 2.0 notification (no id, no reply expected)."""
    method: str
    params: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": self.method}
        if self.params is not None:
            data["params"] = self.params
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class JsonRpcError:
    code: int
    message: str
    data: Any = None

    @classmethod
    def from_dict(cls, raw: Any) -> "JsonRpcError":
        if not isinstance(raw, dict):
            raise ProtocolError(f"Error member must be an object, got {type(raw).__name__}")
        code = raw.get("code")
        message = raw.get("message")
        if not isinstance(code, int) or isinstance(code, bool):
            raise ProtocolError(f"Error code must be an integer, got {code!r}")
        if not isinstance(message, str):
            raise ProtocolError(f"Error message must be a string, got {message!r}")
        return cls(code=code, message=message, data=raw.get("data"))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            data["data"] = self.data
        return data


@dataclass
class JsonRpcResponse:
    """JSON-RPC 2.0 success response."""
    id: int | str
    result: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"jsonrpc": JSONRPC_VERSION, "id": self.id, "result": self.result}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class JsonRpcErrorResponse:
    """JSON-RPC 2.0 error response."""
    id: int | str | None
    error: JsonRpcError

    def to_dict(self) -> dict[str, Any]:
        return {"jsonrpc": JSONRPC_VERSION, "id": self.id, "error": self.error.to_dict()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


InboundMessage = Union[JsonRpcRequest, JsonRpcNotification, JsonRpcResponse, JsonRpcErrorResponse]
OutboundMessage = Union[JsonRpcRequest, JsonRpcNotification, JsonRpcResponse, JsonRpcErrorResponse]


def _valid_id(value: Any) -> bool:
    return isinstance(value, (int, str)) and not isinstance(value, bool)


def parse_message(payload: Any) -> InboundMessage:
    """Classify a decoded JSON value into one envelope variant.

    Raises ProtocolError if the payload matches none of them.
    """
    if not isinstance(payload, dict):
        raise ProtocolError(f"Envelope must be a JSON object, got {type(payload).__name__}")
    if payload.get("jsonrpc") != JSONRPC_VERSION:
        raise ProtocolError(f"Unsupported jsonrpc version: {payload.get('jsonrpc')!r}")

    params = payload.get("params")
    if params is not None and not isinstance(params, dict):
        raise ProtocolError("params must be an object when present")

    if "method" in payload:
        method = payload["method"]
        if not isinstance(method, str) or not method:
            raise ProtocolError(f"method must be a non-empty string, got {method!r}")
        if "id" in payload and payload["id"] is not None:
            if not _valid_id(payload["id"]):
                raise ProtocolError(f"Invalid request id: {payload['id']!r}")
            return JsonRpcRequest(method=method, params=params, id=payload["id"])
        return JsonRpcNotification(method=method, params=params)

    if "id" not in payload:
        raise ProtocolError("Envelope has neither method nor id")

    msg_id = payload["id"]
    if "error" in payload:
        if msg_id is not None and not _valid_id(msg_id):
            raise ProtocolError(f"Invalid response id: {msg_id!r}")
        return JsonRpcErrorResponse(id=msg_id, error=JsonRpcError.from_dict(payload["error"]))

    if not _valid_id(msg_id):
        raise ProtocolError(f"Invalid response id: {msg_id!r}")
    if "result" not in payload:
        raise ProtocolError("Response carries neither result nor error")
    return JsonRpcResponse(id=msg_id, result=payload["result"])


# ── MCP shapes ────────────────────────────────────────────


@dataclass
class McpTool:
    """A tool descriptor as advertised by a server in tools/list."""
    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    @classmethod
    def from_dict(cls, raw: Any) -> "McpTool":
        if not isinstance(raw, dict):
            raise ProtocolError(f"Tool descriptor must be an object, got {type(raw).__name__}")
        name = raw.get("name")
        if not isinstance(name, str) or not name:
            raise ProtocolError(f"Tool descriptor has no valid name: {raw!r}")
        schema = raw.get("inputSchema")
        if schema is None:
            schema = {"type": "object", "properties": {}}
        elif not isinstance(schema, dict):
            raise ProtocolError(f"inputSchema of tool '{name}' must be an object")
        return cls(
            name=name,
            description=raw.get("description") or "",
            input_schema=schema,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass
class McpResource:
    uri: str
    name: str
    description: str = ""
    mime_type: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "McpResource":
        if not isinstance(raw, dict) or not isinstance(raw.get("uri"), str):
            raise ProtocolError(f"Invalid resource descriptor: {raw!r}")
        return cls(
            uri=raw["uri"],
            name=raw.get("name") or raw["uri"],
            description=raw.get("description") or "",
            mime_type=raw.get("mimeType"),
        )


@dataclass
class McpPrompt:
    name: str
    description: str = ""
    arguments: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> "McpPrompt":
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
            raise ProtocolError(f"Invalid prompt descriptor: {raw!r}")
        return cls(
            name=raw["name"],
            description=raw.get("description") or "",
            arguments=list(raw.get("arguments") or []),
        )


@dataclass
class ServerInfo:
    """What the server reported in its initialize response."""
    name: str
    version: str
    protocol_version: str
    capabilities: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_initialize_result(cls, result: Any) -> "ServerInfo":
        if not isinstance(result, dict):
            raise ProtocolError(f"initialize result must be an object, got {result!r}")
        server_info = result.get("serverInfo") or {}
        capabilities = result.get("capabilities") or {}
        if not isinstance(server_info, dict) or not isinstance(capabilities, dict):
            raise ProtocolError("initialize result has malformed serverInfo/capabilities")
        return cls(
            name=str(server_info.get("name", "unknown")),
            version=str(server_info.get("version", "")),
            protocol_version=str(result.get("protocolVersion", "")),
            capabilities=capabilities,
        )

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities


@dataclass
class ToolCallResult:
    """Result of tools/call: a list of content items plus an error flag."""
    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def from_dict(cls, raw: Any) -> "ToolCallResult":
        if not isinstance(raw, dict):
            raise ProtocolError(f"tools/call result must be an object, got {raw!r}")
        content = raw.get("content") or []
        if not isinstance(content, list):
            raise ProtocolError("tools/call content must be a list")
        return cls(
            content=[item for item in content if isinstance(item, dict)],
            is_error=bool(raw.get("isError", False)),
        )
