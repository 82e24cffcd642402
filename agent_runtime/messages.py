"""
Conversation messages and their content blocks.

A transcript is an append-only list of Message values. Each message holds
an ordered tuple of blocks:

    TextBlock         plain text from the user or the model
    ToolInvocation    the model asking for a tool call ("tool_use")
    ToolResultBlock   the outcome of one invocation ("tool_result")

Every ToolInvocation in an assistant message is answered by exactly one
ToolResultBlock, keyed by the invocation id, in the next user message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: Literal["text"] = field(default="text", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class ToolInvocation:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = field(default="tool_use", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "id": self.id, "name": self.name, "input": dict(self.arguments)}


@dataclass(frozen=True)
class ToolResultBlock:
    tool_use_id: str
    content: str
    is_error: bool = False
    type: Literal["tool_result"] = field(default="tool_result", init=False)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "tool_use_id": self.tool_use_id,
            "content": self.content,
        }
        if self.is_error:
            data["is_error"] = True
        return data


ContentBlock = Union[TextBlock, ToolInvocation, ToolResultBlock]


@dataclass(frozen=True)
class Message:
    role: Role
    content: tuple[ContentBlock, ...] = ()

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls("user", (TextBlock(text),))

    @classmethod
    def assistant(cls, blocks: list[ContentBlock] | tuple[ContentBlock, ...]) -> "Message":
        return cls("assistant", tuple(blocks))

    @classmethod
    def tool_results(cls, results: list[ToolResultBlock]) -> "Message":
        return cls("user", tuple(results))

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    @property
    def tool_invocations(self) -> list[ToolInvocation]:
        return [block for block in self.content if isinstance(block, ToolInvocation)]

    @property
    def tool_results_blocks(self) -> list[ToolResultBlock]:
        return [block for block in self.content if isinstance(block, ToolResultBlock)]

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": [block.to_dict() for block in self.content]}
