"""
Tool Servers: MCP client infrastructure for the agent runtime.

Architecture:
    ┌──────────────┐   stdio pipes    ┌──────────────┐
    │ Agent Runtime │ ─────────────── │  Tool Server  │
    │ (ToolRegistry)│   JSON-RPC 2.0   │  (subprocess) │
    └──────────────┘   or HTTP + SSE  └──────────────┘

Each tool server is a separate process (or HTTP service) speaking
JSON-RPC 2.0 messages (the MCP protocol).

The Transport classes move envelopes and correlate responses.
ServerConnection runs the handshake and discovers tools.
The ToolServerManager connects every configured server and registers
a ToolProxy per remote tool in the runtime's ToolRegistry, named
"<server>__<tool>".

StdioToolServer is a minimal server implementation for writing local
tool servers (see servers/echo.py).
"""

from toolservers.config import ServerConfig
from toolservers.connection import ConnectionState, ServerConnection
from toolservers.manager import ToolServerManager
from toolservers.proxy import ToolProxy
from toolservers.server import StdioToolServer, ToolHandler
from toolservers.transport import SseTransport, StdioTransport, Transport, create_transport

__all__ = [
    "ConnectionState",
    "ServerConfig",
    "ServerConnection",
    "SseTransport",
    "StdioToolServer",
    "StdioTransport",
    "ToolHandler",
    "ToolProxy",
    "ToolServerManager",
    "Transport",
    "create_transport",
]
