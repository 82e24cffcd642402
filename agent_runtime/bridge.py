"""
Bridge between the ToolRegistry and LangChain.

Converts registry tools, built-in or proxied from a tool server, into
LangChain StructuredTools so the same catalog can be handed to
LangChain/LangGraph agents.

Usage:
    from agent_runtime.bridge import registry_to_langchain_tools, to_langchain_tool

    # Single tool
    lc_tool = to_langchain_tool(registry.get("echo__echo"), registry)

    # Every tool in the registry
    lc_tools = registry_to_langchain_tools(registry)
    agent = create_react_agent(model, lc_tools)
"""

from __future__ import annotations

from typing import Any

from langchain_core.tools import StructuredTool, ToolException

from agent_runtime.tools.base import BaseTool, ToolRegistry


def to_langchain_tool(
    tool: BaseTool,
    registry: ToolRegistry,
    description_override: str | None = None,
) -> StructuredTool:
    """
    Create a LangChain StructuredTool that runs a registry tool.

    Calls go through registry.execute(), so unknown names and tool
    failures come back the same way they do for the orchestrator. Error
    results are raised as ToolException; with handle_tool_error=True the
    agent sees the error text as the tool output.

    Args:
        tool: The registry tool to wrap
        registry: The registry the tool lives in
        description_override: Optional override for the tool description

    Returns:
        An async LangChain StructuredTool.
    """
    tool_name = tool.name

    async def _call_tool(**kwargs: Any) -> str:
        result = await registry.execute(tool_name, kwargs)
        if result.is_error:
            raise ToolException(result.content)
        return result.content

    return StructuredTool(
        name=tool_name,
        description=description_override or tool.description or f"Tool: {tool_name}",
        args_schema=dict(tool.input_schema),
        coroutine=_call_tool,
        handle_tool_error=True,
    )


def registry_to_langchain_tools(registry: ToolRegistry) -> list[StructuredTool]:
    """Wrap every tool currently in the registry."""
    return [to_langchain_tool(tool, registry) for tool in registry.get_all()]
