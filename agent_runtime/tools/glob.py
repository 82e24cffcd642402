"""Glob tool: find files by pattern, newest first."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from agent_runtime.errors import ToolExecutionError
from agent_runtime.tools.base import BaseTool, ToolResult


class GlobTool(BaseTool):
    name = "Glob"
    description = """Fast file pattern matching tool that works with any codebase size.

Usage:
- Supports glob patterns like "**/*.js" or "src/**/*.ts"
- Returns matching file paths sorted by modification time (newest first)
- Use this tool when you need to find files by name patterns"""
    input_schema = {
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "description": "The glob pattern to match files against"},
            "path": {
                "type": "string",
                "description": "The directory to search in. If not specified, the current working directory will be used.",
            },
        },
        "required": ["pattern"],
    }

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        pattern = arguments.get("pattern")
        if not pattern:
            raise ToolExecutionError("pattern is required")
        root = Path(arguments.get("path") or Path.cwd())
        if not root.is_dir():
            raise ToolExecutionError(f"Directory does not exist: {root}")

        try:
            files = await asyncio.to_thread(_match, root, pattern)
        except (OSError, ValueError) as e:
            raise ToolExecutionError(f"Error globbing files: {e}") from e

        if not files:
            return self.success("No files matched the pattern")
        listing = "\n".join(str(f) for f in files)
        return self.success(f"Found {len(files)} files:\n{listing}")


def _match(root: Path, pattern: str) -> list[Path]:
    files = [p.resolve() for p in root.glob(pattern) if p.is_file()]
    return sorted(files, key=lambda p: p.stat().st_mtime, reverse=True)
