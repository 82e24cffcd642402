"""
Tool Server Manager: connects MCP tool servers and registers their tools.

The manager is the bridge between the runtime's ToolRegistry and the
running tool servers.

Usage:
    registry = create_tool_registry()
    manager = ToolServerManager(
        [ServerConfig(name="echo", command=sys.executable, args=["-m", "toolservers.servers.echo"])],
        registry,
    )

    # Connect everything; failures are logged, not raised
    await manager.initialize()

    # Proxied tools are now in the registry as "<server>__<tool>"
    result = await registry.execute("echo__echo", {"message": "hi"})

    # Disconnect everything and drop the proxied tools
    await manager.shutdown()
"""

from __future__ import annotations

import logging
from typing import Callable

from agent_runtime.tools.base import ToolRegistry
from toolservers.config import ServerConfig
from toolservers.connection import ServerConnection
from toolservers.errors import ToolServerError, TransportError
from toolservers.proxy import ToolProxy
from toolservers.transport import DEFAULT_REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[ServerConfig], ServerConnection]


class ToolServerManager:
    """
    Manages the lifecycle of MCP tool server connections.

    Responsibilities:
    - Connect every configured server, tolerating per-server failures
    - Register a ToolProxy for each discovered tool
    - Drop a server's proxies when it disconnects
    - Graceful shutdown
    """

    def __init__(
        self,
        configs: list[ServerConfig],
        tool_registry: ToolRegistry,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        connection_factory: ConnectionFactory | None = None,
    ):
        self.configs = list(configs)
        self.tool_registry = tool_registry
        self._connection_factory = connection_factory or (
            lambda config: ServerConnection(config, request_timeout=request_timeout)
        )
        self._servers: dict[str, ServerConnection] = {}
        self._proxies: dict[str, list[ToolProxy]] = {}

    async def initialize(self) -> list[str]:
        """
        Connect all configured servers.

        Returns:
            Names of the servers that connected.
        """
        logger.info(f"Initializing {len(self.configs)} MCP server(s)...")

        seen: set[str] = set()
        for config in self.configs:
            if config.name in seen:
                logger.warning(f"Duplicate MCP server name '{config.name}', skipping")
                continue
            seen.add(config.name)
            try:
                await self.connect_server(config)
            except ToolServerError as e:
                logger.error(f"Failed to initialize MCP server {config.name}: {e}")
            except Exception as e:
                logger.exception(f"Unexpected error initializing MCP server {config.name}: {e}")

        connected = [name for name, server in self._servers.items() if server.is_connected]
        logger.info(f"MCP: {len(connected)}/{len(self.configs)} servers connected")
        return connected

    async def connect_server(self, config: ServerConfig) -> ServerConnection:
        """
        Connect one server and register its tools.

        Nothing is stored or registered unless the connection completes.
        """
        if config.name in self._servers:
            await self.disconnect_server(config.name)

        server = self._connection_factory(config)
        await server.connect()

        self._servers[config.name] = server
        proxies = self._register_proxies(server)
        server.on_disconnect(self._on_server_lost)
        server.on_tools_changed(self._on_tools_changed)

        logger.info(f"Started {config.name}: tools={[p.name for p in proxies]}")
        return server

    async def disconnect_server(self, name: str) -> None:
        server = self._servers.pop(name, None)
        self._unregister_proxies(name)
        if server is not None:
            await server.disconnect()
            logger.info(f"Stopped {name}")

    async def shutdown(self) -> None:
        """Disconnect every server and remove all proxied tools."""
        logger.debug("Shutting down MCP servers...")
        for name in list(self._servers):
            try:
                await self.disconnect_server(name)
            except Exception as e:
                logger.error(f"Error disconnecting {name}: {e}")
        self._servers.clear()
        self._proxies.clear()
        logger.debug("All MCP servers disconnected")

    def _on_server_lost(self, server: ServerConnection, error: TransportError) -> None:
        if self._servers.get(server.name) is not server:
            return
        removed = self._unregister_proxies(server.name)
        logger.warning(
            f"MCP server {server.name} went away ({error}); removed {removed} tool(s). "
            f"Call connect_server() to reconnect."
        )

    def _on_tools_changed(self, server: ServerConnection) -> None:
        if self._servers.get(server.name) is not server:
            return
        self._unregister_proxies(server.name)
        proxies = self._register_proxies(server)
        logger.info(f"Re-registered {server.name} tools: {[p.name for p in proxies]}")

    def _register_proxies(self, server: ServerConnection) -> list[ToolProxy]:
        proxies = [ToolProxy(tool, server) for tool in server.tools]
        for proxy in proxies:
            self.tool_registry.register(proxy)
            logger.debug(f"Registered MCP tool: {proxy.name}")
        self._proxies[server.name] = proxies
        return proxies

    def _unregister_proxies(self, name: str) -> int:
        proxies = self._proxies.pop(name, [])
        for proxy in proxies:
            if self.tool_registry.get(proxy.name) is proxy:
                self.tool_registry.unregister(proxy.name)
        return len(proxies)

    # ── Lookup ──

    def get_server(self, name: str) -> ServerConnection | None:
        return self._servers.get(name)

    def get_all_servers(self) -> list[ServerConnection]:
        return list(self._servers.values())

    def get_server_tools(self, name: str) -> list[ToolProxy]:
        return list(self._proxies.get(name, []))

    def get_all_tools(self) -> list[ToolProxy]:
        return [proxy for proxies in self._proxies.values() for proxy in proxies]

    def list_servers(self) -> dict[str, bool]:
        """List all servers and their connection status."""
        return {name: server.is_connected for name, server in self._servers.items()}

    def is_running(self, name: str) -> bool:
        server = self._servers.get(name)
        return server is not None and server.is_connected
