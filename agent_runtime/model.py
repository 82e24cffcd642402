"""
Model client contract and a LangChain adapter.

The orchestrator only needs one call: send the transcript plus the tool
definitions, get back content blocks and a stop signal. Any object with
that method is a ModelClient. LangChainModelClient adapts any
langchain_core chat model (ChatAnthropic, ChatOpenAI, a fake model in
tests) to that contract.

Usage:
    from langchain_anthropic import ChatAnthropic

    client = LangChainModelClient(
        ChatAnthropic(model="claude-sonnet-4-5", max_tokens=8192),
        system_prompt="You are a coding assistant.",
    )
    response = await client.send_message(messages, registry.get_definitions())
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from agent_runtime.errors import ModelCallError
from agent_runtime.messages import ContentBlock, Message, TextBlock, ToolInvocation

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    COMPLETED = "completed"
    TOOL_USE = "tool_use"
    LENGTH_LIMIT = "length_limit"


# Provider stop signals → StopReason
_STOP_REASONS = {
    "end_turn": StopReason.COMPLETED,
    "stop": StopReason.COMPLETED,
    "stop_sequence": StopReason.COMPLETED,
    "tool_use": StopReason.TOOL_USE,
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "max_tokens": StopReason.LENGTH_LIMIT,
    "length": StopReason.LENGTH_LIMIT,
}


@dataclass
class ModelResponse:
    content: list[ContentBlock] = field(default_factory=list)
    stop_reason: StopReason = StopReason.COMPLETED

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    @property
    def tool_invocations(self) -> list[ToolInvocation]:
        return [block for block in self.content if isinstance(block, ToolInvocation)]


class ModelClient(Protocol):
    async def send_message(
        self,
        messages: Sequence[Message],
        tools: list[dict[str, Any]],
    ) -> ModelResponse:
        """Send the transcript and tool definitions; return the model's reply."""
        ...


class LangChainModelClient:
    """ModelClient backed by a langchain_core chat model."""

    def __init__(self, chat_model: BaseChatModel, system_prompt: str | None = None):
        self.chat_model = chat_model
        self.system_prompt = system_prompt

    async def send_message(
        self,
        messages: Sequence[Message],
        tools: list[dict[str, Any]],
    ) -> ModelResponse:
        model = self.chat_model
        try:
            if tools:
                model = model.bind_tools(tools)
            reply = await model.ainvoke(self.to_langchain_messages(messages))
        except Exception as e:
            logger.error(f"Model call failed: {e}")
            raise ModelCallError(f"Model call failed: {e}") from e

        if not isinstance(reply, AIMessage):
            raise ModelCallError(f"Unexpected model reply type: {type(reply).__name__}")
        return self.from_ai_message(reply)

    # ── Transcript → LangChain ──

    def to_langchain_messages(self, messages: Sequence[Message]) -> list[BaseMessage]:
        converted: list[BaseMessage] = []
        if self.system_prompt:
            converted.append(SystemMessage(content=self.system_prompt))
        for message in messages:
            if message.role == "assistant":
                converted.append(_assistant_message(message))
            else:
                converted.extend(_user_messages(message))
        return converted

    # ── LangChain → ModelResponse ──

    @staticmethod
    def from_ai_message(reply: AIMessage) -> ModelResponse:
        blocks: list[ContentBlock] = []
        text = _reply_text(reply.content)
        if text:
            blocks.append(TextBlock(text))
        for call in reply.tool_calls:
            blocks.append(ToolInvocation(
                id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                name=call["name"],
                arguments=dict(call.get("args") or {}),
            ))
        return ModelResponse(content=blocks, stop_reason=_stop_reason(reply))


def _assistant_message(message: Message) -> AIMessage:
    return AIMessage(
        content=message.text,
        tool_calls=[
            {"name": call.name, "args": dict(call.arguments), "id": call.id, "type": "tool_call"}
            for call in message.tool_invocations
        ],
    )


def _user_messages(message: Message) -> list[BaseMessage]:
    # Tool results go first so they directly follow the assistant's tool calls
    converted: list[BaseMessage] = [
        ToolMessage(
            content=block.content,
            tool_call_id=block.tool_use_id,
            status="error" if block.is_error else "success",
        )
        for block in message.tool_results_blocks
    ]
    if message.text:
        converted.append(HumanMessage(content=message.text))
    return converted


def _reply_text(content: str | list) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for item in content:
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, dict) and item.get("type") == "text":
            parts.append(item.get("text", ""))
    return "".join(parts)


def _stop_reason(reply: AIMessage) -> StopReason:
    metadata = reply.response_metadata or {}
    raw = metadata.get("stop_reason") or metadata.get("finish_reason")
    if raw in _STOP_REASONS:
        return _STOP_REASONS[raw]
    if raw:
        logger.debug(f"Unknown stop reason {raw!r}, inferring from tool calls")
    return StopReason.TOOL_USE if reply.tool_calls else StopReason.COMPLETED
