"""Registry that owns one MCP client per configured tool server."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

import httpx

from agent_swarm.mcp.client import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_INIT_TIMEOUT_SECONDS,
    MCPClient,
)
from agent_swarm.models.mcp import ServerConfig, ServerStatus
from agent_swarm.tools.tool import Tool

logger = logging.getLogger(__name__)

type ClientFactory = Callable[[ServerConfig], MCPClient]


class MCPRegistry:
    """Initialize MCP servers concurrently and index their tools by name."""

    def __init__(
        self,
        configs: Iterable[ServerConfig] = (),
        *,
        call_timeout: float = DEFAULT_CALL_TIMEOUT_SECONDS,
        init_timeout: float = DEFAULT_INIT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._configs = _unique_configs(configs)
        self._call_timeout = call_timeout
        self._init_timeout = init_timeout
        self._http_client = http_client
        self._client_factory = client_factory or self._default_client
        self._clients: dict[str, MCPClient] = {}
        self._all_tools: dict[str, Tool] = {}
        self._tools_by_server: dict[str, dict[str, Tool]] = {}
        self._initialized = False

    @property
    def configs(self) -> list[ServerConfig]:
        return list(self._configs)

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self, configs: Iterable[ServerConfig] | None = None) -> None:
        """Start every enabled server; one server failing never fails the batch.

        Tools are registered after all servers settle, in configuration order,
        so a later server wins a name collision.
        """
        if self._initialized:
            logger.info("MCP registry already initialized; skipping")
            return
        if configs is not None:
            self._configs = _unique_configs(configs)

        enabled: list[tuple[ServerConfig, MCPClient]] = []
        for config in self._configs:
            if not config.enabled:
                logger.info("Skipping disabled MCP server: %s", config.name)
                continue
            enabled.append((config, self._client_factory(config)))

        outcomes = await asyncio.gather(
            *(client.initialize() for _, client in enabled),
            return_exceptions=True,
        )

        for (config, client), outcome in zip(enabled, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(
                    "Failed to initialize MCP client for %s: %s",
                    config.name,
                    outcome,
                    exc_info=outcome,
                )
                continue
            self._register_client(config, client)

        self._initialized = True
        logger.info(
            "MCP registry initialized with %d active clients and %d total tools",
            len(self._clients),
            len(self._all_tools),
        )

    def get_tools(self) -> dict[str, Tool]:
        return dict(self._all_tools)

    def get_tools_by_server_map(self) -> dict[str, dict[str, Tool]]:
        return {server: dict(tools) for server, tools in self._tools_by_server.items()}

    def get_server_tools(self, server_name: str) -> dict[str, Tool]:
        return dict(self._tools_by_server.get(server_name, {}))

    def get_server_tool_names(self, server_name: str) -> list[str]:
        return list(self._tools_by_server.get(server_name, {}))

    def get_tool(self, name: str) -> Tool | None:
        return self._all_tools.get(name)

    def get_server_tool(self, server_name: str, tool_name: str) -> Tool | None:
        return self._tools_by_server.get(server_name, {}).get(tool_name)

    def has_tool(self, name: str) -> bool:
        return name in self._all_tools

    def has_server_tool(self, server_name: str, tool_name: str) -> bool:
        return tool_name in self._tools_by_server.get(server_name, {})

    def get_tool_names(self) -> list[str]:
        return list(self._all_tools)

    def get_server_names(self) -> list[str]:
        """Names of servers that initialized successfully."""
        return list(self._tools_by_server)

    def get_status(self) -> dict[str, ServerStatus]:
        """Connection summary for every configured server, enabled or not."""
        return {
            config.name: ServerStatus(
                connected=config.name in self._clients,
                tool_count=len(self._tools_by_server.get(config.name, {})),
            )
            for config in self._configs
        }

    def get_client(self, server_name: str) -> MCPClient | None:
        return self._clients.get(server_name)

    def set_access_token_for_all(self, access_token: str | None) -> None:
        """Set the token on every client whose server requires authentication."""
        for client in self._clients.values():
            if client.config.requires_auth:
                client.set_access_token(access_token)

    def set_access_token_for_server(self, server_name: str, access_token: str | None) -> None:
        client = self._clients.get(server_name)
        if client is None:
            logger.debug("No MCP client for %s; token not set", server_name)
            return
        client.set_access_token(access_token)

    def _register_client(self, config: ServerConfig, client: MCPClient) -> None:
        self._clients[config.name] = client
        server_tools: dict[str, Tool] = {}
        for tool in client.get_available_tools():
            if tool.id in self._all_tools:
                logger.warning(
                    "Tool name collision: tool '%s' from server '%s' is overwriting "
                    "a previously registered tool",
                    tool.id,
                    config.name,
                )
            self._all_tools[tool.id] = tool
            server_tools[tool.id] = tool
        self._tools_by_server[config.name] = server_tools
        logger.info("Registered %d tools from %s", len(server_tools), config.name)

    def _default_client(self, config: ServerConfig) -> MCPClient:
        return MCPClient(
            config,
            call_timeout=self._call_timeout,
            init_timeout=self._init_timeout,
            http_client=self._http_client,
        )


def _unique_configs(configs: Iterable[ServerConfig]) -> list[ServerConfig]:
    ordered: list[ServerConfig] = list(configs)
    seen: set[str] = set()
    for config in ordered:
        if config.name in seen:
            msg = f"Duplicate MCP server name in configuration: {config.name}"
            raise ValueError(msg)
        seen.add(config.name)
    return ordered

