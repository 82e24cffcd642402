"""
Runtime assembly: turns an AgentConfig into a wired-up orchestrator.

create_runtime() builds the built-in tool registry, the tool server manager,
the hooks manager and the model client, then hands them to an Orchestrator.

Usage:
    config = AgentConfig.from_dict(settings)
    runtime = create_runtime(
        config,
        lambda cfg: ChatAnthropic(model=cfg.model, max_tokens=cfg.max_tokens, temperature=cfg.temperature),
    )

    connected = await runtime.start()        # tool servers + session-start hook
    result = await runtime.orchestrator.process_user_message("List the Python files")
    await runtime.stop()                     # session-end hook + server shutdown

A ready-made BaseChatModel may be passed instead of a factory; the config's
model, max_tokens and temperature are then copied onto whichever of those
fields the chat model declares.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from langchain_core.language_models import BaseChatModel

from agent_runtime.config import AgentConfig
from agent_runtime.hooks import HooksManager
from agent_runtime.model import LangChainModelClient
from agent_runtime.orchestrator import Orchestrator, TextRenderer
from agent_runtime.session import SessionStore
from agent_runtime.tools import ToolRegistry, create_tool_registry
from toolservers import manager as toolserver_manager

if TYPE_CHECKING:
    from toolservers.manager import ToolServerManager

logger = logging.getLogger(__name__)

ChatModelFactory = Callable[[AgentConfig], BaseChatModel]

MODEL_SETTINGS = ("model", "max_tokens", "temperature")


@dataclass
class AgentRuntime:
    """Everything create_runtime() built, sharing one tool registry."""
    config: AgentConfig
    tool_registry: ToolRegistry
    server_manager: ToolServerManager
    hooks: HooksManager
    orchestrator: Orchestrator

    async def start(self) -> list[str]:
        """Connect the configured tool servers and open the session."""
        connected = await self.server_manager.initialize()
        await self.orchestrator.initialize()
        return connected

    async def stop(self) -> None:
        try:
            await self.orchestrator.shutdown()
        finally:
            await self.server_manager.shutdown()


def create_runtime(
    config: AgentConfig,
    chat_model: BaseChatModel | ChatModelFactory,
    session: SessionStore | None = None,
    on_text: TextRenderer | None = None,
) -> AgentRuntime:
    if isinstance(chat_model, BaseChatModel):
        chat_model = configure_chat_model(chat_model, config)
    else:
        chat_model = chat_model(config)

    registry = create_tool_registry()
    manager = toolserver_manager.ToolServerManager(
        list(config.mcp_servers),
        registry,
        request_timeout=config.request_timeout,
    )
    hooks = HooksManager(enabled=config.hooks_enabled)
    orchestrator = Orchestrator(
        LangChainModelClient(chat_model, system_prompt=config.system_prompt or None),
        registry,
        session=session,
        hooks=hooks,
        max_iterations=config.max_iterations,
        on_text=on_text,
    )
    logger.info(
        f"Runtime ready: model={config.model}, servers={[s.name for s in config.mcp_servers]}, "
        f"max_iterations={config.max_iterations}"
    )
    return AgentRuntime(config, registry, manager, hooks, orchestrator)


def configure_chat_model(chat_model: BaseChatModel, config: AgentConfig) -> BaseChatModel:
    """Copy the config's model settings onto the fields chat_model declares."""
    fields = type(chat_model).model_fields
    updates = {name: getattr(config, name) for name in MODEL_SETTINGS if name in fields}
    if not updates:
        return chat_model
    return chat_model.model_copy(update=updates)
