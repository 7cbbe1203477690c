"""Process wiring: settings in, initialized tool registry out."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

import httpx

from agent_swarm.core.settings import Settings, get_settings
from agent_swarm.mcp.registry import MCPRegistry
from agent_swarm.tools.registry import ToolRegistry
from agent_swarm.tools.tool import Tool

logger = logging.getLogger(__name__)


async def build_tool_registry(
    settings: Settings | None = None,
    local_tools: Iterable[Tool] = (),
    *,
    http_client: httpx.AsyncClient | None = None,
    environ: Mapping[str, str] | None = None,
) -> ToolRegistry:
    """Create the MCP and tool registries from `settings` and initialize them."""
    settings = settings or get_settings()
    configs = settings.server_configs(environ)
    logger.debug("Configured MCP servers: %s", ", ".join(config.name for config in configs))

    mcp_registry = MCPRegistry(
        configs,
        call_timeout=settings.call_timeout_seconds,
        init_timeout=settings.init_timeout_seconds,
        http_client=http_client,
    )
    registry = ToolRegistry(mcp_registry, local_tools)
    await registry.initialize()
    return registry
