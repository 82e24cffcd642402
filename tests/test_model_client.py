"""Tests for LangChainModelClient against an in-process chat model."""

from __future__ import annotations

from typing import Any

import pytest
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from pydantic import Field

from agent_runtime.errors import ModelCallError
from agent_runtime.messages import Message, TextBlock, ToolInvocation, ToolResultBlock
from agent_runtime.model import LangChainModelClient, StopReason


class RecordingChatModel(BaseChatModel):
    """Replays queued AIMessages and records what it was sent."""

    replies: list = Field(default_factory=list)
    received: list = Field(default_factory=list)
    bound_tools: list = Field(default_factory=list)
    failure: str | None = None

    @property
    def _llm_type(self) -> str:
        return "recording-fake"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs: Any) -> ChatResult:
        self.received.append(list(messages))
        if self.failure:
            raise RuntimeError(self.failure)
        return ChatResult(generations=[ChatGeneration(message=self.replies.pop(0))])

    def bind_tools(self, tools, **kwargs: Any):
        self.bound_tools.append(list(tools))
        return self


TOOLS = [{"name": "Read", "description": "Read a file", "input_schema": {"type": "object"}}]


class TestTranscriptConversion:
    def test_roles_and_tool_round_trip(self):
        client = LangChainModelClient(RecordingChatModel(), system_prompt="Be brief.")
        transcript = [
            Message.user("read it"),
            Message.assistant([TextBlock("Reading."), ToolInvocation("call_1", "Read", {"file_path": "/a"})]),
            Message.tool_results([
                ToolResultBlock("call_1", "contents"),
                ToolResultBlock("call_2", "missing", is_error=True),
            ]),
        ]

        converted = client.to_langchain_messages(transcript)

        assert [type(m) for m in converted] == [SystemMessage, HumanMessage, AIMessage, ToolMessage, ToolMessage]
        assert converted[0].content == "Be brief."
        ai = converted[2]
        assert ai.content == "Reading."
        assert ai.tool_calls[0]["name"] == "Read"
        assert ai.tool_calls[0]["args"] == {"file_path": "/a"}
        assert ai.tool_calls[0]["id"] == "call_1"
        assert converted[3].tool_call_id == "call_1"
        assert converted[3].status == "success"
        assert converted[4].status == "error"

    def test_no_system_prompt(self):
        client = LangChainModelClient(RecordingChatModel())
        converted = client.to_langchain_messages([Message.user("hi")])
        assert [type(m) for m in converted] == [HumanMessage]


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_tool_calls_become_invocations(self):
        model = RecordingChatModel(replies=[AIMessage(
            content="Let me look.",
            tool_calls=[{"name": "Read", "args": {"file_path": "/a"}, "id": "toolu_1"}],
            response_metadata={"stop_reason": "tool_use"},
        )])
        client = LangChainModelClient(model)

        response = await client.send_message([Message.user("read /a")], TOOLS)

        assert response.stop_reason is StopReason.TOOL_USE
        assert response.text == "Let me look."
        assert response.tool_invocations == [ToolInvocation("toolu_1", "Read", {"file_path": "/a"})]
        assert model.bound_tools == [TOOLS]
        assert isinstance(model.received[0][0], HumanMessage)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("metadata, expected", [
        ({"stop_reason": "end_turn"}, StopReason.COMPLETED),
        ({"finish_reason": "stop"}, StopReason.COMPLETED),
        ({"stop_reason": "max_tokens"}, StopReason.LENGTH_LIMIT),
        ({"finish_reason": "length"}, StopReason.LENGTH_LIMIT),
        ({}, StopReason.COMPLETED),
    ])
    async def test_stop_reason_mapping(self, metadata, expected):
        model = RecordingChatModel(replies=[AIMessage(content="text", response_metadata=metadata)])
        response = await LangChainModelClient(model).send_message([Message.user("hi")], [])
        assert response.stop_reason is expected

    @pytest.mark.asyncio
    async def test_tool_calls_without_stop_metadata_mean_tool_use(self):
        model = RecordingChatModel(replies=[AIMessage(
            content="",
            tool_calls=[{"name": "Read", "args": {}, "id": "c1"}],
        )])
        response = await LangChainModelClient(model).send_message([Message.user("hi")], TOOLS)
        assert response.stop_reason is StopReason.TOOL_USE
        assert response.content == [ToolInvocation("c1", "Read", {})]

    @pytest.mark.asyncio
    async def test_content_block_list_is_flattened(self):
        model = RecordingChatModel(replies=[AIMessage(
            content=[{"type": "text", "text": "part one, "}, {"type": "text", "text": "part two"}],
            response_metadata={"stop_reason": "end_turn"},
        )])
        response = await LangChainModelClient(model).send_message([Message.user("hi")], [])
        assert response.text == "part one, part two"

    @pytest.mark.asyncio
    async def test_no_tools_skips_binding(self):
        model = RecordingChatModel(replies=[AIMessage(content="ok")])
        await LangChainModelClient(model).send_message([Message.user("hi")], [])
        assert model.bound_tools == []

    @pytest.mark.asyncio
    async def test_failure_raises_model_call_error(self):
        model = RecordingChatModel(failure="rate limited")
        with pytest.raises(ModelCallError, match="rate limited"):
            await LangChainModelClient(model).send_message([Message.user("hi")], [])
