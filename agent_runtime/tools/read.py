"""Read tool: line-numbered file contents."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from agent_runtime.errors import ToolExecutionError
from agent_runtime.tools.base import BaseTool, ToolResult

DEFAULT_LINE_LIMIT = 2000
MAX_LINE_LENGTH = 2000


class ReadTool(BaseTool):
    name = "Read"
    description = """Reads a file from the local filesystem.

Usage:
- The file_path parameter must be an absolute path
- By default, reads up to 2000 lines starting from the beginning
- Optionally specify a line offset and limit for long files
- Lines longer than 2000 characters will be truncated
- Results are returned using cat -n format, with line numbers starting at 1
- Cannot read directories (use Bash ls instead)"""
    input_schema = {
        "type": "object",
        "properties": {
            "file_path": {"type": "string", "description": "The absolute path to the file to read"},
            "offset": {"type": "number", "description": "The line number to start reading from"},
            "limit": {"type": "number", "description": "The number of lines to read"},
        },
        "required": ["file_path"],
    }

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        file_path = arguments.get("file_path")
        if not file_path:
            raise ToolExecutionError("file_path is required")
        offset = max(int(arguments.get("offset") or 0), 0)
        limit = int(arguments.get("limit") or DEFAULT_LINE_LIMIT)

        path = Path(file_path)
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except FileNotFoundError:
            raise ToolExecutionError("File does not exist.") from None
        except IsADirectoryError:
            raise ToolExecutionError("Path is a directory, not a file.") from None
        except OSError as e:
            raise ToolExecutionError(f"Error reading file: {e}") from e

        lines = content.split("\n")[offset:offset + limit]
        formatted = "\n".join(
            f"{offset + index + 1}\t{_truncate(line)}" for index, line in enumerate(lines)
        )
        if not "".join(lines).strip():
            return self.success("[File is empty]")
        return self.success(formatted)


def _truncate(line: str) -> str:
    if len(line) > MAX_LINE_LENGTH:
        return line[:MAX_LINE_LENGTH] + "..."
    return line
