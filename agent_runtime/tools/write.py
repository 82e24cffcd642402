"""Write tool: create or overwrite a file."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from agent_runtime.errors import ToolExecutionError
from agent_runtime.tools.base import BaseTool, ToolResult


class WriteTool(BaseTool):
    name = "Write"
    description = """Writes a file to the local filesystem.

Usage:
- This tool will overwrite the existing file if there is one at the provided path
- Parent directories are created as needed
- ALWAYS prefer editing existing files in the codebase"""
    input_schema = {
        "type": "object",
        "properties": {
            "file_path": {
                "type": "string",
                "description": "The absolute path to the file to write (must be absolute, not relative)",
            },
            "content": {"type": "string", "description": "The content to write to the file"},
        },
        "required": ["file_path", "content"],
    }

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        file_path = arguments.get("file_path")
        content = arguments.get("content")
        if not file_path:
            raise ToolExecutionError("file_path is required")
        if not isinstance(content, str):
            raise ToolExecutionError("content must be a string")

        try:
            await asyncio.to_thread(_write, Path(file_path), content)
        except OSError as e:
            raise ToolExecutionError(f"Error writing file: {e}") from e
        return self.success(f"File created successfully at: {file_path}")


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
