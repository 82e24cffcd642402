"""
Built-in tools and the tool registry.

    registry = create_tool_registry()
    result = await registry.execute("Read", {"file_path": "/etc/hostname"})
"""

from agent_runtime.tools.base import BaseTool, ToolRegistry, ToolResult
from agent_runtime.tools.bash import BashTool
from agent_runtime.tools.edit import EditTool
from agent_runtime.tools.glob import GlobTool
from agent_runtime.tools.grep import GrepTool
from agent_runtime.tools.read import ReadTool
from agent_runtime.tools.write import WriteTool


def create_tool_registry() -> ToolRegistry:
    """Registry pre-loaded with the built-in file and shell tools."""
    registry = ToolRegistry()
    for tool in (ReadTool(), WriteTool(), EditTool(), GlobTool(), GrepTool(), BashTool()):
        registry.register(tool)
    return registry


__all__ = [
    "BaseTool",
    "BashTool",
    "EditTool",
    "GlobTool",
    "GrepTool",
    "ReadTool",
    "ToolRegistry",
    "ToolResult",
    "WriteTool",
    "create_tool_registry",
]
