"""
Tool contract and registry.

Every tool the model can call, built-in or proxied from a tool server,
subclasses BaseTool and lives in a ToolRegistry keyed by name. The
registry is the only thing the conversation loop talks to, and
ToolRegistry.execute() never raises: unknown names and failing tools
come back as error results the model can read.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from agent_runtime.errors import ToolExecutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
    content: str
    is_error: bool = False


class BaseTool(ABC):
    """
    Base class for a tool implementation.

    Subclasses set name, description and input_schema (a JSON schema
    object) and implement execute().
    """

    name: str = ""
    description: str = ""
    input_schema: dict[str, Any] = {"type": "object", "properties": {}}

    def get_definition(self) -> dict[str, Any]:
        """Return the definition handed to the model."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    @abstractmethod
    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        """
        Run the tool.

        Args:
            arguments: Parameter name → value, as produced by the model.

        Returns:
            A ToolResult. Raise ToolExecutionError for failures the model
            should see verbatim.
        """
        ...

    def success(self, content: str) -> ToolResult:
        return ToolResult(content=content, is_error=False)

    def error(self, message: str) -> ToolResult:
        return ToolResult(content=message, is_error=True)


class ToolRegistry:
    """Name → tool catalog shared by the server manager and the orchestrator."""

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        if not tool.name:
            raise ValueError(f"Tool {tool.__class__.__name__} has no name")
        if tool.name in self._tools:
            logger.debug(f"Replacing tool: {tool.name}")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def unregister(self, name: str) -> BaseTool | None:
        return self._tools.pop(name, None)

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def get_all(self) -> list[BaseTool]:
        return list(self._tools.values())

    def get_definitions(self) -> list[dict[str, Any]]:
        return [tool.get_definition() for tool in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        tool = self.get(name)
        if tool is None:
            return ToolResult(content=f'Tool "{name}" not found', is_error=True)

        try:
            return await tool.execute(arguments or {})
        except ToolExecutionError as e:
            return ToolResult(content=str(e), is_error=True)
        except Exception as e:
            logger.error(f"Tool {name} raised: {e}")
            return ToolResult(content=f'Error executing tool "{name}": {e}', is_error=True)
