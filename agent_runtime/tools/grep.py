"""Grep tool: regex search over file contents."""

from __future__ import annotations

import asyncio
import re
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Iterator

from agent_runtime.errors import ToolExecutionError
from agent_runtime.tools.base import BaseTool, ToolResult

OUTPUT_MODES = ("content", "files_with_matches", "count")

NO_MATCHES = "No matches found"


class GrepTool(BaseTool):
    name = "Grep"
    description = """A powerful regex search tool over file contents.

Usage:
- ALWAYS use Grep for search tasks. NEVER invoke grep or rg as a Bash command
- Supports full regex syntax (e.g., "log.*Error", "function\\s+\\w+")
- Filter files with glob parameter (e.g., "*.js", "**/*.tsx")
- Output modes: "content" shows matching lines, "files_with_matches" shows only file paths (default), "count" shows match counts
- Hidden files and directories are skipped"""
    input_schema = {
        "type": "object",
        "properties": {
            "pattern": {
                "type": "string",
                "description": "The regular expression pattern to search for in file contents",
            },
            "path": {
                "type": "string",
                "description": "File or directory to search in. Defaults to current working directory.",
            },
            "glob": {
                "type": "string",
                "description": 'Glob pattern to filter files (e.g. "*.js", "*.{ts,tsx}")',
            },
            "output_mode": {
                "type": "string",
                "enum": list(OUTPUT_MODES),
                "description": 'Output mode: "content" shows matching lines, "files_with_matches" shows file paths, '
                               '"count" shows match counts. Defaults to "files_with_matches".',
            },
            "-i": {"type": "boolean", "description": "Case insensitive search"},
            "-n": {
                "type": "boolean",
                "description": "Show line numbers in output (for content mode). Defaults to true.",
            },
            "-A": {"type": "number", "description": "Number of lines to show after each match (content mode only)"},
            "-B": {"type": "number", "description": "Number of lines to show before each match (content mode only)"},
            "-C": {
                "type": "number",
                "description": "Number of lines to show before and after each match (content mode only)",
            },
            "multiline": {
                "type": "boolean",
                "description": "Enable multiline mode where . matches newlines. Default: false.",
            },
            "head_limit": {"type": "number", "description": "Limit output to first N lines/entries"},
        },
        "required": ["pattern"],
    }

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        pattern = arguments.get("pattern")
        if not pattern:
            raise ToolExecutionError("pattern is required")
        output_mode = arguments.get("output_mode") or "files_with_matches"
        if output_mode not in OUTPUT_MODES:
            raise ToolExecutionError(f"output_mode must be one of {', '.join(OUTPUT_MODES)}")

        flags = 0
        if arguments.get("-i"):
            flags |= re.IGNORECASE
        multiline = bool(arguments.get("multiline"))
        if multiline:
            flags |= re.DOTALL | re.MULTILINE
        try:
            regex = re.compile(pattern, flags)
        except re.error as e:
            raise ToolExecutionError(f"Invalid regex pattern: {e}") from e

        root = Path(arguments.get("path") or Path.cwd())
        if not root.exists():
            raise ToolExecutionError(f"Path does not exist: {root}")

        context = arguments.get("-C")
        search = _Search(
            regex=regex,
            multiline=multiline,
            output_mode=output_mode,
            line_numbers=arguments.get("-n", True) is not False,
            before=int(context if context is not None else arguments.get("-B") or 0),
            after=int(context if context is not None else arguments.get("-A") or 0),
        )
        try:
            lines = await asyncio.to_thread(search.run, root, arguments.get("glob"))
        except OSError as e:
            raise ToolExecutionError(f"Error searching: {e}") from e

        head_limit = arguments.get("head_limit")
        if head_limit:
            lines = lines[:int(head_limit)]
        if not lines:
            return self.success(NO_MATCHES)
        return self.success("\n".join(lines))


class _Search:
    def __init__(
        self,
        regex: re.Pattern[str],
        multiline: bool,
        output_mode: str,
        line_numbers: bool,
        before: int,
        after: int,
    ):
        self.regex = regex
        self.multiline = multiline
        self.output_mode = output_mode
        self.line_numbers = line_numbers
        self.before = before
        self.after = after

    def run(self, root: Path, glob: str | None) -> list[str]:
        output: list[str] = []
        for path in _candidate_files(root, glob):
            try:
                text = path.read_text(encoding="utf-8")
            except (UnicodeDecodeError, PermissionError):
                continue
            matched = self._matched_lines(text)
            if not matched:
                continue
            if self.output_mode == "files_with_matches":
                output.append(str(path))
            elif self.output_mode == "count":
                output.append(f"{path}:{len(matched)}")
            else:
                output.extend(self._render(path, text.splitlines(), matched))
        return output

    def _matched_lines(self, text: str) -> list[int]:
        """Zero-based indexes of lines holding a match."""
        if not self.multiline:
            return [i for i, line in enumerate(text.splitlines()) if self.regex.search(line)]
        matched: set[int] = set()
        for match in self.regex.finditer(text):
            first = text.count("\n", 0, match.start())
            last = text.count("\n", 0, max(match.end() - 1, match.start()))
            matched.update(range(first, last + 1))
        return sorted(matched)

    def _render(self, path: Path, lines: list[str], matched: list[int]) -> Iterator[str]:
        matched_set = set(matched)
        shown: list[int] = []
        for index in matched:
            start = max(index - self.before, 0)
            end = min(index + self.after, len(lines) - 1)
            for i in range(start, end + 1):
                if not shown or i > shown[-1]:
                    shown.append(i)

        previous = None
        for index in shown:
            if previous is not None and index > previous + 1:
                yield "--"
            separator = ":" if index in matched_set else "-"
            if self.line_numbers:
                yield f"{path}{separator}{index + 1}{separator}{lines[index]}"
            else:
                yield f"{path}{separator}{lines[index]}"
            previous = index


def _candidate_files(root: Path, glob: str | None) -> Iterator[Path]:
    if root.is_file():
        yield root
        return
    patterns = _expand_braces(glob) if glob else None
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if not path.is_file():
            continue
        if patterns and not any(_glob_matches(relative, p) for p in patterns):
            continue
        yield path


def _glob_matches(relative: Path, pattern: str) -> bool:
    if "/" not in pattern:
        return fnmatch(relative.name, pattern)
    if pattern.startswith("**/") and fnmatch(relative.as_posix(), pattern[3:]):
        return True
    return fnmatch(relative.as_posix(), pattern)


def _expand_braces(pattern: str) -> list[str]:
    """Expand one level of {a,b} alternatives: "*.{ts,tsx}" -> ["*.ts", "*.tsx"]."""
    match = re.search(r"\{([^{}]*)\}", pattern)
    if not match:
        return [pattern]
    head, tail = pattern[:match.start()], pattern[match.end():]
    expanded = []
    for option in match.group(1).split(","):
        expanded.extend(_expand_braces(head + option + tail))
    return expanded
