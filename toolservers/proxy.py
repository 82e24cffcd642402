"""
Proxy that makes a remote MCP tool callable like a built-in tool.

The exposed name is "<server>__<tool>", so two servers that both offer a
"search" tool end up as "alpha__search" and "beta__search" in the registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from agent_runtime.tools.base import BaseTool, ToolResult
from toolservers.protocol import McpTool, ToolCallResult

if TYPE_CHECKING:
    from toolservers.connection import ServerConnection

SEPARATOR = "__"


def proxied_name(server_name: str, tool_name: str) -> str:
    return f"{server_name}{SEPARATOR}{tool_name}"


def render_content(result: ToolCallResult) -> str:
    """Flatten MCP content items into one string.

    Text items are joined by newlines; images and resources become short
    placeholders; the three groups are separated by a blank line.
    """
    text = "\n".join(
        item.get("text") or "" for item in result.content if item.get("type") == "text"
    )
    images = "\n".join(
        f"[Image: {item.get('mimeType', 'unknown')}]"
        for item in result.content if item.get("type") == "image"
    )
    resources = "\n".join(
        _resource_text(item) for item in result.content if item.get("type") == "resource"
    )
    return "\n\n".join(part for part in (text, images, resources) if part)


def _resource_text(item: dict[str, Any]) -> str:
    resource = item.get("resource")
    if isinstance(resource, dict) and resource.get("text"):
        return resource["text"]
    return item.get("text") or "[Resource]"


class ToolProxy(BaseTool):
    """A remote tool exposed through the local tool contract."""

    def __init__(self, tool: McpTool, connection: "ServerConnection"):
        self.remote_tool = tool
        self.connection = connection
        self.server_name = connection.name
        self.name = proxied_name(connection.name, tool.name)
        self.description = tool.description or f"Tool from MCP server: {connection.name}"
        self.input_schema = tool.input_schema

    @property
    def remote_name(self) -> str:
        return self.remote_tool.name

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            result = await self.connection.call_tool(self.remote_name, arguments)
        except Exception as e:
            return self.error(f"MCP tool error: {e}")

        content = render_content(result)
        if result.is_error:
            return self.error(content or f"{self.name} reported an error")
        return self.success(content or "Tool executed successfully")
