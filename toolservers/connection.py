"""
Client-side connection to one MCP tool server.

Lifecycle:

    disconnected ──connect()──▶ connecting ──▶ connected
                                    │
                                    └──(any stage fails)──▶ error

connect() runs three stages in order: open the transport, handshake
(initialize + notifications/initialized), then capability discovery
(tools always, resources/prompts when the server advertises them). A
connection is only usable once every stage has succeeded.

While connected, a notifications/tools/list_changed from the server
re-fetches the tool list and fires the on_tools_changed() listeners.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable

from toolservers.config import ServerConfig
from toolservers.errors import (
    ProtocolError,
    ServerInitializationError,
    ServerNotConnectedError,
    ToolServerError,
    TransportError,
)
from toolservers.protocol import (
    PROTOCOL_VERSION,
    JsonRpcNotification,
    McpPrompt,
    McpResource,
    McpTool,
    ServerInfo,
    ToolCallResult,
)
from toolservers.transport import DEFAULT_REQUEST_TIMEOUT, Transport, create_transport

logger = logging.getLogger(__name__)

CLIENT_INFO = {"name": "agent-runtime", "version": "0.1.0"}
MAX_LIST_PAGES = 100
TOOLS_LIST_CHANGED = "notifications/tools/list_changed"

TransportFactory = Callable[[ServerConfig, float], Transport]
DisconnectListener = Callable[["ServerConnection", TransportError], None]
ToolsChangedListener = Callable[["ServerConnection"], None]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ServerConnection:
    """
    One tool server: its transport, handshake result and discovered
    capabilities.
    """

    def __init__(
        self,
        config: ServerConfig,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport_factory: TransportFactory = create_transport,
    ):
        self.config = config
        self.request_timeout = request_timeout
        self._transport_factory = transport_factory
        self._transport: Transport | None = None
        self._state = ConnectionState.DISCONNECTED
        self._info: ServerInfo | None = None
        self.tools: list[McpTool] = []
        self.resources: list[McpResource] = []
        self.prompts: list[McpPrompt] = []
        self._disconnect_listeners: list[DisconnectListener] = []
        self._tools_changed_listeners: list[ToolsChangedListener] = []
        self._refresh_task: asyncio.Task | None = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def info(self) -> ServerInfo | None:
        return self._info

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def on_disconnect(self, listener: DisconnectListener) -> None:
        """Register a listener for an unexpected loss of the server."""
        self._disconnect_listeners.append(listener)

    def on_tools_changed(self, listener: ToolsChangedListener) -> None:
        """Register a listener fired after the server's tool list has been re-fetched."""
        self._tools_changed_listeners.append(listener)

    # ── Lifecycle ──

    async def connect(self) -> None:
        if self._state is ConnectionState.CONNECTED:
            return
        if self._transport is not None:
            await self._teardown_transport()

        self._state = ConnectionState.CONNECTING
        logger.debug(f"Connecting to MCP server: {self.name} ({self.config.describe()})")

        stage = "transport"
        try:
            transport = self._transport_factory(self.config, self.request_timeout)
            self._transport = transport
            await transport.connect()

            stage = "handshake"
            result = await transport.request("initialize", {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}, "resources": {}, "prompts": {}},
                "clientInfo": CLIENT_INFO,
            })
            info = ServerInfo.from_initialize_result(result)
            await transport.notify("notifications/initialized")

            stage = "discovery"
            tools = await self._fetch_list("tools/list", "tools", McpTool.from_dict)
            resources = (
                await self._fetch_list("resources/list", "resources", McpResource.from_dict)
                if info.supports("resources") else []
            )
            prompts = (
                await self._fetch_list("prompts/list", "prompts", McpPrompt.from_dict)
                if info.supports("prompts") else []
            )
        except asyncio.CancelledError:
            self._state = ConnectionState.DISCONNECTED
            await self._teardown_transport()
            logger.warning(f"Connection to MCP server {self.name} cancelled during {stage}")
            raise
        except Exception as e:
            self._state = ConnectionState.ERROR
            await self._teardown_transport()
            logger.error(f"Failed to connect to MCP server {self.name} during {stage}: {e}")
            raise ServerInitializationError(self.name, stage, str(e)) from e

        self._info = info
        self.tools = tools
        self.resources = resources
        self.prompts = prompts
        transport.on_disconnect(self._on_transport_lost)
        transport.on_notification(self._on_notification)
        self._state = ConnectionState.CONNECTED
        logger.info(
            f"Connected to MCP server: {self.name} ({info.name} {info.version}), "
            f"tools={[t.name for t in tools]}"
        )

    async def disconnect(self) -> None:
        await self._teardown_transport()
        self._state = ConnectionState.DISCONNECTED
        self._info = None
        self.tools, self.resources, self.prompts = [], [], []
        logger.debug(f"Disconnected from MCP server: {self.name}")

    async def _teardown_transport(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            await transport.disconnect()
        except Exception as e:
            logger.warning(f"Error while closing transport for {self.name}: {e}")

    def _on_transport_lost(self, error: TransportError) -> None:
        if self._state is not ConnectionState.CONNECTED:
            return
        self._state = ConnectionState.DISCONNECTED
        logger.warning(f"MCP server {self.name} disconnected unexpectedly: {error}")
        for listener in list(self._disconnect_listeners):
            try:
                listener(self, error)
            except Exception as e:
                logger.error(f"Disconnect listener for {self.name} failed: {e}")

    def _on_notification(self, notification: JsonRpcNotification) -> None:
        if notification.method != TOOLS_LIST_CHANGED or not self.is_connected:
            return
        # Runs outside the dispatcher, which must stay free to deliver the tools/list reply.
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_tools())

    async def _refresh_tools(self) -> None:
        try:
            tools = await self.list_tools()
        except ToolServerError as e:
            logger.error(f"Failed to refresh tools for MCP server {self.name}: {e}")
            return
        logger.info(f"MCP server {self.name} tools changed: {[t.name for t in tools]}")
        for listener in list(self._tools_changed_listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Tools-changed listener for {self.name} failed: {e}")

    # ── Operations ──

    async def list_tools(self) -> list[McpTool]:
        self._ensure_connected()
        self.tools = await self._fetch_list("tools/list", "tools", McpTool.from_dict)
        return self.tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> ToolCallResult:
        transport = self._ensure_connected()
        result = await transport.request("tools/call", {"name": name, "arguments": arguments or {}})
        return ToolCallResult.from_dict(result)

    async def list_resources(self) -> list[McpResource]:
        self._ensure_connected()
        self.resources = await self._fetch_list("resources/list", "resources", McpResource.from_dict)
        return self.resources

    async def read_resource(self, uri: str) -> list[dict[str, Any]]:
        transport = self._ensure_connected()
        result = await transport.request("resources/read", {"uri": uri})
        contents = (result or {}).get("contents") if isinstance(result, dict) else None
        return list(contents or [])

    async def list_prompts(self) -> list[McpPrompt]:
        self._ensure_connected()
        self.prompts = await self._fetch_list("prompts/list", "prompts", McpPrompt.from_dict)
        return self.prompts

    async def get_prompt(self, name: str, arguments: dict[str, str] | None = None) -> list[dict[str, Any]]:
        transport = self._ensure_connected()
        params: dict[str, Any] = {"name": name}
        if arguments:
            params["arguments"] = arguments
        result = await transport.request("prompts/get", params)
        messages = result.get("messages") if isinstance(result, dict) else None
        return list(messages or [])

    def _ensure_connected(self) -> Transport:
        if self._state is not ConnectionState.CONNECTED or self._transport is None:
            raise ServerNotConnectedError(self.name)
        return self._transport

    async def _fetch_list(self, method: str, key: str, parse: Callable[[Any], Any]) -> list:
        """Collect every page of a */list method, following nextCursor."""
        items: list = []
        cursor = None
        for _ in range(MAX_LIST_PAGES):
            result = await self._transport.request(method, {"cursor": cursor} if cursor else None)
            if not isinstance(result, dict):
                raise ProtocolError(f"{method} result must be an object, got {result!r}")
            entries = result.get(key) or []
            if not isinstance(entries, list):
                raise ProtocolError(f"{method} '{key}' must be a list")
            items.extend(parse(entry) for entry in entries)
            cursor = result.get("nextCursor")
            if not cursor:
                return items
        logger.warning(f"{method} on {self.name} exceeded {MAX_LIST_PAGES} pages, truncating")
        return items
