"""Bash tool: run a shell command with a timeout."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from agent_runtime.errors import ToolExecutionError
from agent_runtime.tools.base import BaseTool, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 120_000
MAX_TIMEOUT_MS = 600_000


class BashTool(BaseTool):
    name = "Bash"
    description = """Executes a given bash command with optional timeout.

Usage notes:
- This tool is for terminal operations like git, npm, docker, etc.
- Always quote file paths that contain spaces with double quotes
- Optional timeout in milliseconds (up to 600000ms / 10 minutes). Default: 120000ms (2 minutes)"""
    input_schema = {
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "The command to execute"},
            "description": {
                "type": "string",
                "description": "Clear, concise description of what this command does in 5-10 words",
            },
            "timeout": {"type": "number", "description": "Optional timeout in milliseconds (max 600000)"},
        },
        "required": ["command"],
    }

    def __init__(self, cwd: str | None = None):
        self.cwd = cwd

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        command = arguments.get("command")
        if not command:
            raise ToolExecutionError("command is required")
        timeout_ms = min(int(arguments.get("timeout") or DEFAULT_TIMEOUT_MS), MAX_TIMEOUT_MS)

        logger.debug(f"Running: {command}")
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
            )
        except OSError as e:
            raise ToolExecutionError(f"Failed to start command: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout_ms / 1000)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise ToolExecutionError(f"Command timed out after {timeout_ms}ms") from None

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        output = out + (f"\n{err}" if err else "")
        if process.returncode != 0:
            raise ToolExecutionError(f"Exit code {process.returncode}\n{output}".rstrip())
        return self.success(output or "Tool ran without output or errors")
