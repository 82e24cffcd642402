"""Conversation session store."""

from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Protocol, Sequence

from agent_runtime.messages import Message

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    @property
    def messages(self) -> Sequence[Message]:
        ...

    def append(self, message: Message) -> None:
        ...

    async def persist(self) -> None:
        ...


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class InMemorySession:
    """
    Append-only transcript kept in memory.

    persist() only records that a save point was reached; storing the
    transcript somewhere durable is left to other SessionStore
    implementations.
    """

    def __init__(self, session_id: str | None = None):
        self.id = session_id or new_session_id()
        self.created_at = datetime.now(timezone.utc)
        self.updated_at = self.created_at
        self.persisted_count = 0
        self._messages: list[Message] = []
        logger.debug(f"Created session: {self.id}")

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)
        self.updated_at = datetime.now(timezone.utc)

    async def persist(self) -> None:
        self.persisted_count += 1
        self.updated_at = datetime.now(timezone.utc)
        logger.debug(f"Saved session: {self.id} ({len(self._messages)} messages)")

    def __len__(self) -> int:
        return len(self._messages)
