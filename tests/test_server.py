"""Tests for the reference StdioToolServer, driven in-process."""

import io
import json

from toolservers.protocol import INVALID_PARAMS, METHOD_NOT_FOUND, PARSE_ERROR
from toolservers.servers.echo import EchoTool, ReverseTool
from toolservers.server import StdioToolServer


def run_server(*lines: str) -> list[dict]:
    server = StdioToolServer("echo", "1.0.0")
    server.register(EchoTool())
    server.register(ReverseTool())
    stdout = io.StringIO()
    server.run(stdin=io.StringIO("\n".join(lines) + "\n"), stdout=stdout)
    return [json.loads(line) for line in stdout.getvalue().splitlines()]


def request(method: str, params: dict | None = None, msg_id: int = 1) -> str:
    payload = {"jsonrpc": "2.0", "id": msg_id, "method": method}
    if params is not None:
        payload["params"] = params
    return json.dumps(payload)


class TestStdioToolServer:
    def test_initialize(self):
        [reply] = run_server(request("initialize", {"protocolVersion": "2024-11-05"}))
        assert reply["id"] == 1
        assert reply["result"]["protocolVersion"] == "2024-11-05"
        assert reply["result"]["serverInfo"] == {"name": "echo", "version": "1.0.0"}
        assert "tools" in reply["result"]["capabilities"]

    def test_tools_list_uses_input_schema(self):
        [reply] = run_server(request("tools/list"))
        tools = {tool["name"]: tool for tool in reply["result"]["tools"]}
        assert set(tools) == {"echo", "reverse"}
        assert tools["echo"]["inputSchema"]["required"] == ["message"]

    def test_tools_call(self):
        replies = run_server(
            request("tools/call", {"name": "echo", "arguments": {"message": "hi"}}, 1),
            request("tools/call", {"name": "reverse", "arguments": {"message": 3}}, 2),
            request("tools/call", {"name": "missing", "arguments": {}}, 3),
        )
        assert replies[0]["result"] == {"content": [{"type": "text", "text": "hi"}], "isError": False}
        assert replies[1]["result"]["isError"] is True
        assert replies[2]["result"]["isError"] is True
        assert "Unknown tool" in replies[2]["result"]["content"][0]["text"]

    def test_notifications_get_no_reply(self):
        replies = run_server(
            json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
            request("ping", msg_id=9),
        )
        assert replies == [{"jsonrpc": "2.0", "id": 9, "result": {}}]

    def test_protocol_errors(self):
        replies = run_server(
            "not json at all",
            request("resources/list", msg_id=2),
            request("tools/call", {"arguments": {}}, 3),
        )
        assert replies[0]["error"]["code"] == PARSE_ERROR
        assert replies[0]["id"] is None
        assert replies[1]["error"]["code"] == METHOD_NOT_FOUND
        assert replies[2]["error"]["code"] == INVALID_PARAMS
