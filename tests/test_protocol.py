"""Tests for JSON-RPC envelopes and MCP shapes."""

import json

import pytest

from toolservers.errors import ProtocolError
from toolservers.protocol import (
    JsonRpcErrorResponse,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    McpTool,
    ServerInfo,
    ToolCallResult,
    parse_message,
)


class TestOutbound:
    def test_request_omits_missing_params(self):
        assert JsonRpcRequest("tools/list", None, 1).to_dict() == {
            "jsonrpc": "2.0", "id": 1, "method": "tools/list",
        }

    def test_request_json(self):
        payload = json.loads(JsonRpcRequest("tools/call", {"name": "echo"}, 3).to_json())
        assert payload == {"jsonrpc": "2.0", "id": 3, "method": "tools/call", "params": {"name": "echo"}}

    def test_notification_has_no_id(self):
        assert JsonRpcNotification("notifications/initialized").to_dict() == {
            "jsonrpc": "2.0", "method": "notifications/initialized",
        }


class TestParseMessage:
    def test_classifies_each_variant(self):
        assert isinstance(parse_message({"jsonrpc": "2.0", "id": 1, "method": "ping"}), JsonRpcRequest)
        assert isinstance(parse_message({"jsonrpc": "2.0", "method": "note"}), JsonRpcNotification)
        assert isinstance(parse_message({"jsonrpc": "2.0", "id": 1, "result": None}), JsonRpcResponse)

        error = parse_message({"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "nope"}})
        assert isinstance(error, JsonRpcErrorResponse)
        assert error.error.code == -32601

    def test_error_with_null_id(self):
        error = parse_message({"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "parse"}})
        assert error.id is None

    @pytest.mark.parametrize("payload", [
        [],
        "text",
        {"id": 1, "result": {}},
        {"jsonrpc": "1.0", "id": 1, "result": {}},
        {"jsonrpc": "2.0"},
        {"jsonrpc": "2.0", "id": 1},
        {"jsonrpc": "2.0", "id": True, "result": {}},
        {"jsonrpc": "2.0", "id": 1, "method": ""},
        {"jsonrpc": "2.0", "method": "x", "params": [1, 2]},
        {"jsonrpc": "2.0", "id": 1, "error": {"code": "bad", "message": "x"}},
    ])
    def test_rejects_invalid_envelopes(self, payload):
        with pytest.raises(ProtocolError):
            parse_message(payload)


class TestMcpShapes:
    def test_tool_schema_defaults(self):
        tool = McpTool.from_dict({"name": "echo"})
        assert tool.input_schema == {"type": "object", "properties": {}}
        assert tool.description == ""

    @pytest.mark.parametrize("raw", [{"name": ""}, {"description": "x"}, {"name": "a", "inputSchema": []}, "echo"])
    def test_invalid_tool_descriptors(self, raw):
        with pytest.raises(ProtocolError):
            McpTool.from_dict(raw)

    def test_server_info(self):
        info = ServerInfo.from_initialize_result({
            "protocolVersion": "2024-11-05",
            "capabilities": {"tools": {}, "resources": {"subscribe": True}},
            "serverInfo": {"name": "files", "version": "2.1"},
        })
        assert (info.name, info.version, info.protocol_version) == ("files", "2.1", "2024-11-05")
        assert info.supports("resources")
        assert not info.supports("prompts")

    def test_tool_call_result(self):
        result = ToolCallResult.from_dict({"content": [{"type": "text", "text": "x"}], "isError": True})
        assert result.is_error is True
        assert ToolCallResult.from_dict({}).content == []

        with pytest.raises(ProtocolError):
            ToolCallResult.from_dict({"content": "x"})
