"""Edit tool: exact string replacement in a file."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from agent_runtime.errors import ToolExecutionError
from agent_runtime.tools.base import BaseTool, ToolResult


class EditTool(BaseTool):
    name = "Edit"
    description = """Performs exact string replacements in files.

Usage:
- Preserve exact indentation as it appears in the file
- The edit will FAIL if old_string is not unique in the file
- Use replace_all for replacing all instances or renaming variables"""
    input_schema = {
        "type": "object",
        "properties": {
            "file_path": {"type": "string", "description": "The absolute path to the file to modify"},
            "old_string": {"type": "string", "description": "The text to replace"},
            "new_string": {
                "type": "string",
                "description": "The text to replace it with (must be different from old_string)",
            },
            "replace_all": {
                "type": "boolean",
                "description": "Replace all occurrences of old_string (default false)",
                "default": False,
            },
        },
        "required": ["file_path", "old_string", "new_string"],
    }

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        file_path = arguments.get("file_path")
        old_string = arguments.get("old_string")
        new_string = arguments.get("new_string")
        replace_all = bool(arguments.get("replace_all", False))

        if not file_path:
            raise ToolExecutionError("file_path is required")
        if not isinstance(old_string, str) or not isinstance(new_string, str):
            raise ToolExecutionError("old_string and new_string must be strings")
        if not old_string:
            raise ToolExecutionError("old_string must not be empty")
        if old_string == new_string:
            raise ToolExecutionError("old_string and new_string must be different")

        path = Path(file_path)
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            raise ToolExecutionError("File does not exist.") from None
        except OSError as e:
            raise ToolExecutionError(f"Error editing file: {e}") from e

        occurrences = content.count(old_string)
        if occurrences == 0:
            raise ToolExecutionError("old_string not found in file")
        if occurrences > 1 and not replace_all:
            raise ToolExecutionError(
                f"old_string appears {occurrences} times in the file. "
                f"Either provide a larger unique string or use replace_all=true"
            )

        updated = content.replace(old_string, new_string, -1 if replace_all else 1)
        try:
            await asyncio.to_thread(path.write_text, updated, encoding="utf-8")
        except OSError as e:
            raise ToolExecutionError(f"Error editing file: {e}") from e
        return self.success(f"File edited successfully: {file_path}")
