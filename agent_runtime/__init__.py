"""
Agent Runtime: the conversation loop of a coding agent.

Architecture:
    ┌─────────────┐  send_message   ┌──────────────┐
    │ Orchestrator │ ─────────────▶ │ Model Client  │
    │             │ ◀───────────── │ (LangChain)   │
    └─────────────┘  blocks + stop  └──────────────┘
          │ execute (concurrent)
          ▼
    ┌─────────────┐     ┌────────────────────────────┐
    │ ToolRegistry │ ──▶ │ built-ins │ MCP ToolProxies │
    └─────────────┘     └────────────────────────────┘

The orchestrator owns the loop; the registry is the only thing it calls
for tools, whether they run in-process or on a tool server.
"""

from agent_runtime.config import AgentConfig
from agent_runtime.errors import (
    AgentRuntimeError,
    IterationLimitExceeded,
    ModelCallError,
    ToolExecutionError,
)
from agent_runtime.hooks import HookEvent, HooksManager
from agent_runtime.logger import setup_logging
from agent_runtime.messages import Message, TextBlock, ToolInvocation, ToolResultBlock
from agent_runtime.model import LangChainModelClient, ModelClient, ModelResponse, StopReason
from agent_runtime.orchestrator import Orchestrator, TurnOutcome, TurnResult
from agent_runtime.runtime import AgentRuntime, create_runtime
from agent_runtime.session import InMemorySession
from agent_runtime.tools import BaseTool, ToolRegistry, ToolResult, create_tool_registry

__all__ = [
    "AgentConfig",
    "AgentRuntime",
    "AgentRuntimeError",
    "BaseTool",
    "HookEvent",
    "HooksManager",
    "InMemorySession",
    "IterationLimitExceeded",
    "LangChainModelClient",
    "Message",
    "ModelCallError",
    "ModelClient",
    "ModelResponse",
    "Orchestrator",
    "StopReason",
    "TextBlock",
    "ToolExecutionError",
    "ToolInvocation",
    "ToolRegistry",
    "ToolResult",
    "ToolResultBlock",
    "TurnOutcome",
    "TurnResult",
    "create_runtime",
    "create_tool_registry",
    "setup_logging",
]
