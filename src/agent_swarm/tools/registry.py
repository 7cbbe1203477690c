"""Single lookup surface over local tools and MCP-discovered tools."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Final

from agent_swarm.mcp.client import MCPClient
from agent_swarm.mcp.registry import MCPRegistry
from agent_swarm.models.mcp import JSONObject, ServerStatus
from agent_swarm.tools.tool import Tool

logger = logging.getLogger(__name__)

LOCAL_SERVER: Final = "local"


class ToolRegistry:
    """Merge in-process tools with remote ones; local tools shadow remote names."""

    def __init__(self, mcp_registry: MCPRegistry, local_tools: Iterable[Tool] = ()) -> None:
        self._mcp_registry = mcp_registry
        self._local_tools: dict[str, Tool] = {}
        for tool in local_tools:
            if tool.id in self._local_tools:
                logger.warning(
                    "Local tool with id '%s' is already registered; it will be overwritten",
                    tool.id,
                )
            self._local_tools[tool.id] = tool

    @property
    def mcp_registry(self) -> MCPRegistry:
        return self._mcp_registry

    async def initialize(self) -> None:
        """Bring up every MCP server and log what became available."""
        await self._mcp_registry.initialize()
        logger.info(
            "Tool registry initialized with %d tools from %s",
            len(self.get_tool_names()),
            ", ".join(self.get_server_names()) or "no servers",
        )

    def get_tools(self) -> dict[str, Tool]:
        remote = self._mcp_registry.get_tools()
        for name in self._local_tools:
            if name in remote:
                logger.warning("Local tool '%s' is hiding a remote tool with the same name", name)
        return {**remote, **self._local_tools}

    def get_tools_by_server_map(self) -> dict[str, dict[str, Tool]]:
        server_map = self._mcp_registry.get_tools_by_server_map()
        if self._local_tools:
            server_map[LOCAL_SERVER] = dict(self._local_tools)
        return server_map

    def get_server_tools(self, server_name: str) -> dict[str, Tool]:
        if server_name == LOCAL_SERVER:
            return dict(self._local_tools)
        return self._mcp_registry.get_server_tools(server_name)

    def get_server_tool_names(self, server_name: str) -> list[str]:
        if server_name == LOCAL_SERVER:
            return list(self._local_tools)
        return self._mcp_registry.get_server_tool_names(server_name)

    def get_server_names(self) -> list[str]:
        names = self._mcp_registry.get_server_names()
        if self._local_tools:
            names.append(LOCAL_SERVER)
        return names

    def get_tool(self, name: str) -> Tool | None:
        local = self._local_tools.get(name)
        if local is not None:
            return local
        return self._mcp_registry.get_tool(name)

    def get_server_tool(self, server_name: str, tool_name: str) -> Tool | None:
        if server_name == LOCAL_SERVER:
            return self._local_tools.get(tool_name)
        return self._mcp_registry.get_server_tool(server_name, tool_name)

    def has_tool(self, name: str) -> bool:
        return name in self._local_tools or self._mcp_registry.has_tool(name)

    def has_server_tool(self, server_name: str, tool_name: str) -> bool:
        if server_name == LOCAL_SERVER:
            return tool_name in self._local_tools
        return self._mcp_registry.has_server_tool(server_name, tool_name)

    def get_tool_names(self) -> list[str]:
        return list(self.get_tools())

    def get_status(self) -> dict[str, ServerStatus]:
        status = self._mcp_registry.get_status()
        if self._local_tools:
            status[LOCAL_SERVER] = ServerStatus(connected=True, tool_count=len(self._local_tools))
        return status

    def set_access_token_for_all(self, access_token: str | None) -> None:
        self._mcp_registry.set_access_token_for_all(access_token)

    def set_access_token_for_server(self, server_name: str, access_token: str | None) -> None:
        self._mcp_registry.set_access_token_for_server(server_name, access_token)

    def get_client(self, server_name: str) -> MCPClient | None:
        return self._mcp_registry.get_client(server_name)

    def describe_tools(self) -> dict[str, list[JSONObject]]:
        """Per-server tool summaries with JSON-schema parameters, for LLM context."""
        return {
            server: [
                {
                    "name": name,
                    "description": tool.description,
                    "parameters": tool.parameters_schema(),
                }
                for name, tool in tools.items()
            ]
            for server, tools in self.get_tools_by_server_map().items()
        }
