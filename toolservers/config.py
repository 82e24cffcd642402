"""Tool server definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

TRANSPORTS = ("stdio", "http")


@dataclass
class ServerConfig:
    """
    How to reach one tool server.

    stdio servers are launched as a subprocess (command + args, optional
    env overlay and working directory). http servers are reached at a base
    URL exposing /sse and /message.
    """
    name: str
    transport: str = "stdio"
    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Server config requires a name")
        if self.transport not in TRANSPORTS:
            raise ValueError(
                f"Unsupported transport '{self.transport}' for server {self.name}. "
                f"Expected one of {TRANSPORTS}"
            )
        if self.transport == "stdio" and not self.command:
            raise ValueError(f"Stdio transport requires command (server {self.name})")
        if self.transport == "http" and not self.url:
            raise ValueError(f"HTTP transport requires url (server {self.name})")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerConfig":
        return cls(
            name=data.get("name", ""),
            transport=data.get("transport", "stdio"),
            command=data.get("command"),
            args=list(data.get("args") or []),
            env=dict(data.get("env") or {}),
            url=data.get("url"),
            headers=dict(data.get("headers") or {}),
            cwd=data.get("cwd"),
        )

    def describe(self) -> str:
        if self.transport == "stdio":
            return " ".join([self.command or "", *self.args]).strip()
        return self.url or ""
