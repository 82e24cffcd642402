"""
Lifecycle hooks.

The orchestrator announces lifecycle events through a HookDispatcher:

    session-start        initialize()
    user-prompt-submit   each user message, before the loop runs
    before-tool-call     before each tool invocation
    after-tool-call      after each tool invocation (with success flag)
    session-end          shutdown()

HooksManager is the in-process dispatcher: callbacks (sync or async) are
registered per event and run in registration order. A failing callback is
logged and the remaining callbacks still run.
"""

from __future__ import annotations

import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, Union

logger = logging.getLogger(__name__)


class HookEvent(str, Enum):
    SESSION_START = "session-start"
    SESSION_END = "session-end"
    USER_PROMPT_SUBMIT = "user-prompt-submit"
    BEFORE_TOOL_CALL = "before-tool-call"
    AFTER_TOOL_CALL = "after-tool-call"


HookCallback = Callable[[dict[str, Any]], Union[None, Awaitable[None]]]


class HookDispatcher(Protocol):
    async def trigger(self, event: HookEvent, payload: dict[str, Any]) -> None:
        ...


class HooksManager:
    """In-process hook dispatcher."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._hooks: dict[HookEvent, list[HookCallback]] = {}

    def register(self, event: HookEvent | str, callback: HookCallback) -> None:
        event = HookEvent(event)
        self._hooks.setdefault(event, []).append(callback)
        logger.debug(f"Registered hook for {event.value}: {getattr(callback, '__name__', callback)}")

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    def get_hooks(self, event: HookEvent | str) -> list[HookCallback]:
        return list(self._hooks.get(HookEvent(event), []))

    async def trigger(self, event: HookEvent | str, payload: dict[str, Any] | None = None) -> None:
        if not self.enabled:
            return
        event = HookEvent(event)
        callbacks = self._hooks.get(event, [])
        if not callbacks:
            return

        logger.debug(f"Triggering {len(callbacks)} hook(s) for event: {event.value}")
        for callback in list(callbacks):
            try:
                outcome = callback(dict(payload or {}))
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                name = getattr(callback, "__name__", repr(callback))
                logger.error(f'Hook "{name}" failed for {event.value}: {e}')
