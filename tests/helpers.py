"""In-memory doubles shared by the test modules."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Callable

from agent_runtime.messages import ContentBlock, TextBlock, ToolInvocation
from agent_runtime.model import ModelResponse, StopReason
from agent_runtime.tools.base import BaseTool, ToolResult
from toolservers.config import ServerConfig
from toolservers.errors import RemoteError
from toolservers.protocol import JsonRpcRequest
from toolservers.transport import Transport

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def echo_server_config(name: str = "echo") -> ServerConfig:
    """Config that launches the reference echo server as a subprocess."""
    return ServerConfig(
        name=name,
        command=sys.executable,
        args=["-m", "toolservers.servers.echo"],
        cwd=str(PROJECT_ROOT),
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class ManualTransport(Transport):
    """Records outbound envelopes; the test feeds inbound frames by hand."""

    def __init__(self, request_timeout: float = 1.0):
        super().__init__(request_timeout)
        self.sent: list[Any] = []
        self.alive = False

    async def _open(self) -> None:
        self.alive = True

    async def _close(self) -> None:
        self.alive = False

    def is_alive(self) -> bool:
        return self.alive

    async def send(self, message) -> None:
        self.sent.append(message)

    def feed(self, payload: dict[str, Any]) -> None:
        self._deliver(json.dumps(payload))

    def reply(self, request_id: int | str, result: Any) -> None:
        self.feed({"jsonrpc": "2.0", "id": request_id, "result": result})


class ScriptedTransport(ManualTransport):
    """
    Answers requests from a method → handler table.

    A handler is either a plain result or a callable taking params. A
    callable may raise RemoteError to produce an error response. Methods
    missing from the table get METHOD_NOT_FOUND.
    """

    def __init__(self, handlers: dict[str, Any], request_timeout: float = 1.0):
        super().__init__(request_timeout)
        self.handlers = handlers

    async def send(self, message) -> None:
        self.sent.append(message)
        if not isinstance(message, JsonRpcRequest):
            return
        handler = self.handlers.get(message.method)
        if handler is None:
            self.feed({
                "jsonrpc": "2.0",
                "id": message.id,
                "error": {"code": -32601, "message": f"Method not found: {message.method}"},
            })
            return
        try:
            result = handler(message.params or {}) if callable(handler) else handler
        except RemoteError as e:
            self.feed({"jsonrpc": "2.0", "id": message.id, "error": {"code": e.code, "message": e.message}})
            return
        self.reply(message.id, result)

    @property
    def methods(self) -> list[str]:
        return [m.method for m in self.sent if hasattr(m, "method")]


def initialize_result(name: str = "fake", capabilities: dict | None = None) -> dict:
    return {
        "protocolVersion": "2024-11-05",
        "capabilities": {"tools": {}} if capabilities is None else capabilities,
        "serverInfo": {"name": name, "version": "1.0.0"},
    }


def tool_server_handlers(tools: list[dict], call: Callable[[dict], Any] | None = None) -> dict[str, Any]:
    """Handler table for a minimal MCP server exposing the given tools."""
    return {
        "initialize": initialize_result(),
        "tools/list": {"tools": tools},
        "tools/call": call or (lambda params: {
            "content": [{"type": "text", "text": f"{params['name']}: {json.dumps(params['arguments'])}"}],
        }),
    }


class ScriptedModelClient:
    """ModelClient that replays canned responses and records each transcript."""

    def __init__(self, responses: list[ModelResponse | Exception | Callable[[], ModelResponse]]):
        self.responses = list(responses)
        self.calls: list[tuple[list, list]] = []

    async def send_message(self, messages, tools) -> ModelResponse:
        self.calls.append((list(messages), list(tools)))
        if not self.responses:
            raise AssertionError("model called more times than scripted")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response()
        return response


def text_reply(text: str, stop: StopReason = StopReason.COMPLETED) -> ModelResponse:
    return ModelResponse(content=[TextBlock(text)], stop_reason=stop)


def tool_reply(*invocations: ToolInvocation, text: str = "") -> ModelResponse:
    content: list[ContentBlock] = [TextBlock(text)] if text else []
    content.extend(invocations)
    return ModelResponse(content=content, stop_reason=StopReason.TOOL_USE)


class StaticTool(BaseTool):
    """Tool that returns a fixed answer after an optional delay."""

    def __init__(self, name: str, answer: str = "ok", delay: float = 0.0, is_error: bool = False):
        self.name = name
        self.description = f"{name} test tool"
        self.answer = answer
        self.delay = delay
        self.is_error = is_error
        self.calls: list[dict[str, Any]] = []
        self.finished_at: float | None = None

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        self.calls.append(arguments)
        if self.delay:
            await asyncio.sleep(self.delay)
        self.finished_at = asyncio.get_running_loop().time()
        return ToolResult(self.answer, self.is_error)
