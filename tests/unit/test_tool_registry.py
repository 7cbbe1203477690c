from __future__ import annotations

import logging
from typing import Any

import pytest

from agent_swarm.mcp.registry import MCPRegistry
from agent_swarm.models.mcp import ServerStatus
from agent_swarm.tools.registry import ToolRegistry
from agent_swarm.tools.tool import Tool, create_tool
from tests.support.mcp_helpers import FakeMCPNetwork, FakeMCPServer, tool_schema


def _local(tool_id: str, result: Any = "local") -> Tool:
    return create_tool(id=tool_id, description=f"local {tool_id}", execute=lambda _: result)


async def _registry(
    local_tools: list[Tool],
    *servers: FakeMCPServer,
) -> ToolRegistry:
    network = FakeMCPNetwork(servers)
    mcp = MCPRegistry([server.config() for server in servers], http_client=network.client())
    registry = ToolRegistry(mcp, local_tools)
    await registry.initialize()
    return registry


@pytest.mark.asyncio
async def test_local_tool_shadows_remote_tool(caplog: pytest.LogCaptureFixture) -> None:
    remote = FakeMCPServer("a", tools=[tool_schema("x"), tool_schema("y")])
    local = _local("x")
    registry = await _registry([local], remote)

    with caplog.at_level(logging.WARNING, logger="agent_swarm.tools.registry"):
        tools = registry.get_tools()

    assert tools["x"] is local
    assert tools["y"].server == "a"
    assert registry.get_tool("x") is local
    assert "hiding a remote tool" in caplog.text


@pytest.mark.asyncio
async def test_local_server_name_present_only_with_local_tools() -> None:
    remote = FakeMCPServer("a", tools=[tool_schema("y")])

    without_local = await _registry([], remote)
    with_local = await _registry([_local("x")], FakeMCPServer("a", tools=[tool_schema("y")]))

    assert without_local.get_server_names() == ["a"]
    assert with_local.get_server_names() == ["a", "local"]
    assert "local" not in without_local.get_status()
    assert "local" not in without_local.get_tools_by_server_map()


@pytest.mark.asyncio
async def test_local_namespace_lookups() -> None:
    local = _local("x")
    registry = await _registry([local], FakeMCPServer("a", tools=[tool_schema("y")]))

    assert registry.get_server_tool("local", "x") is local
    assert registry.get_server_tool("local", "y") is None
    assert registry.get_server_tools("local") == {"x": local}
    assert registry.get_server_tool_names("local") == ["x"]
    assert registry.has_server_tool("local", "x")
    assert not registry.has_server_tool("a", "x")
    assert registry.has_server_tool("a", "y")
    assert registry.get_tools_by_server_map()["local"] == {"x": local}


@pytest.mark.asyncio
async def test_status_includes_local_entry() -> None:
    registry = await _registry(
        [_local("x"), _local("z")],
        FakeMCPServer("a", tools=[tool_schema("y")]),
        FakeMCPServer("b", health_status=503),
    )

    assert registry.get_status() == {
        "a": ServerStatus(connected=True, tool_count=1),
        "b": ServerStatus(connected=False, tool_count=0),
        "local": ServerStatus(connected=True, tool_count=2),
    }


@pytest.mark.asyncio
async def test_duplicate_local_ids_overwrite_with_warning(
    caplog: pytest.LogCaptureFixture,
) -> None:
    first = _local("x", result=1)
    second = _local("x", result=2)

    with caplog.at_level(logging.WARNING, logger="agent_swarm.tools.registry"):
        registry = await _registry([first, second])

    assert registry.get_tool("x") is second
    assert "already registered" in caplog.text


@pytest.mark.asyncio
async def test_tool_names_and_has_tool_cover_both_sources() -> None:
    registry = await _registry([_local("x")], FakeMCPServer("a", tools=[tool_schema("y")]))

    assert registry.get_tool_names() == ["y", "x"]
    assert registry.has_tool("x")
    assert registry.has_tool("y")
    assert not registry.has_tool("z")


@pytest.mark.asyncio
async def test_token_setters_and_client_access_delegate() -> None:
    server = FakeMCPServer("google", tools=[tool_schema("list_events")])
    network = FakeMCPNetwork([server])
    mcp = MCPRegistry([server.config(requires_auth="google")], http_client=network.client())
    registry = ToolRegistry(mcp)
    await registry.initialize()

    registry.set_access_token_for_all("token-a")
    assert registry.get_client("google").access_token == "token-a"  # type: ignore[union-attr]

    registry.set_access_token_for_server("google", "token-b")
    assert registry.get_client("google").access_token == "token-b"  # type: ignore[union-attr]

    await registry.get_tool("list_events").run({})  # type: ignore[union-attr]
    assert server.requests_for("tools/call")[0].headers["authorization"] == "Bearer token-b"


@pytest.mark.asyncio
async def test_describe_tools_groups_by_server() -> None:
    remote = FakeMCPServer(
        "a",
        tools=[
            tool_schema(
                "search",
                description="Search the web",
                properties={"q": {"type": "string", "description": "Query"}},
                required=["q"],
            )
        ],
    )
    registry = await _registry([_local("x")], remote)

    described = registry.describe_tools()

    assert [entry["name"] for entry in described["a"]] == ["search"]
    assert described["a"][0]["description"] == "Search the web"
    assert described["a"][0]["parameters"]["properties"]["q"]["description"] == "Query"
    assert described["local"][0]["name"] == "x"
