"""Tests for messages, the hooks manager and the in-memory session."""

import pytest

from agent_runtime.hooks import HookEvent, HooksManager
from agent_runtime.messages import Message, TextBlock, ToolInvocation, ToolResultBlock
from agent_runtime.session import InMemorySession


class TestMessages:
    def test_block_dicts(self):
        assert TextBlock("hi").to_dict() == {"type": "text", "text": "hi"}
        assert ToolInvocation("c1", "Read", {"file_path": "/a"}).to_dict() == {
            "type": "tool_use", "id": "c1", "name": "Read", "input": {"file_path": "/a"},
        }
        assert ToolResultBlock("c1", "ok").to_dict() == {"type": "tool_result", "tool_use_id": "c1", "content": "ok"}
        assert ToolResultBlock("c1", "bad", is_error=True).to_dict()["is_error"] is True

    def test_message_helpers(self):
        message = Message.assistant([
            TextBlock("Looking "),
            ToolInvocation("c1", "Read", {}),
            TextBlock("now."),
        ])
        assert message.role == "assistant"
        assert message.text == "Looking now."
        assert [call.id for call in message.tool_invocations] == ["c1"]
        assert message.to_dict()["content"][1]["type"] == "tool_use"

    def test_messages_are_immutable(self):
        message = Message.user("hi")
        with pytest.raises(AttributeError):
            message.role = "assistant"


class TestHooksManager:
    @pytest.mark.asyncio
    async def test_sync_and_async_callbacks_run_in_order(self):
        calls = []

        async def async_hook(payload):
            calls.append(("async", payload["tool"]))

        hooks = HooksManager()
        hooks.register("before-tool-call", lambda payload: calls.append(("sync", payload["tool"])))
        hooks.register(HookEvent.BEFORE_TOOL_CALL, async_hook)

        await hooks.trigger(HookEvent.BEFORE_TOOL_CALL, {"tool": "Read"})

        assert calls == [("sync", "Read"), ("async", "Read")]
        assert len(hooks.get_hooks("before-tool-call")) == 2

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_other_callbacks(self):
        calls = []

        def broken(payload):
            raise RuntimeError("nope")

        hooks = HooksManager()
        hooks.register(HookEvent.SESSION_START, broken)
        hooks.register(HookEvent.SESSION_START, lambda payload: calls.append("ran"))

        await hooks.trigger(HookEvent.SESSION_START, {})

        assert calls == ["ran"]

    @pytest.mark.asyncio
    async def test_disabled_manager_skips_callbacks(self):
        calls = []
        hooks = HooksManager()
        hooks.register(HookEvent.SESSION_END, lambda payload: calls.append(payload))
        hooks.set_enabled(False)

        await hooks.trigger(HookEvent.SESSION_END, {"session_id": "s"})

        assert calls == []

    def test_unknown_event_is_rejected(self):
        with pytest.raises(ValueError):
            HooksManager().register("on-coffee-break", lambda payload: None)


class TestInMemorySession:
    @pytest.mark.asyncio
    async def test_append_and_persist(self):
        session = InMemorySession()
        session.append(Message.user("hi"))
        await session.persist()

        assert session.id.startswith("session_")
        assert len(session) == 1
        assert session.messages == (Message.user("hi"),)
        assert session.persisted_count == 1
        assert session.updated_at >= session.created_at

    def test_messages_snapshot_is_read_only(self):
        session = InMemorySession("fixed-id")
        snapshot = session.messages
        session.append(Message.user("later"))
        assert snapshot == ()
        assert session.id == "fixed-id"
