"""Operator CLI for inspecting and invoking MCP tools."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError

from agent_swarm.core.bootstrap import build_tool_registry
from agent_swarm.core.log_config import configure_logging
from agent_swarm.core.settings import Settings, get_settings
from agent_swarm.mcp.client import AuthRequiredError, SessionNotEstablishedError, ToolCallError
from agent_swarm.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and call agent-swarm MCP tools")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Print connection status per server as JSON")

    tools = subparsers.add_parser("tools", help="Print tool names grouped by server")
    tools.add_argument(
        "--schemas",
        action="store_true",
        help="Include descriptions and parameter schemas",
    )

    call = subparsers.add_parser("call", help="Invoke one tool and print its result")
    call.add_argument("tool", help="Tool name")
    call.add_argument("--server", default=None, help="Resolve the tool on this server only")
    call.add_argument("--args", default="{}", help="Tool arguments as a JSON object")
    call.add_argument("--token", default=None, help="Bearer token for auth-requiring servers")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, fmt=settings.log_format)
    return asyncio.run(_run(args, settings))


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "call":
        try:
            arguments = json.loads(args.args)
        except json.JSONDecodeError as exc:
            sys.stderr.write(f"Invalid --args JSON: {exc}\n")
            return 2
        if not isinstance(arguments, dict):
            sys.stderr.write("--args must be a JSON object\n")
            return 2

    registry = await build_tool_registry(settings)

    if args.command == "status":
        status = {
            name: entry.model_dump(by_alias=True) for name, entry in registry.get_status().items()
        }
        _write_json(status)
        return 0

    if args.command == "tools":
        if args.schemas:
            _write_json(registry.describe_tools())
        else:
            _write_json(
                {server: list(tools) for server, tools in registry.get_tools_by_server_map().items()}
            )
        return 0

    if args.command == "call":
        return await _call(registry, args.tool, arguments, server=args.server, token=args.token)

    raise ValueError(f"Unsupported command: {args.command}")


async def _call(
    registry: ToolRegistry,
    name: str,
    arguments: dict[str, Any],
    *,
    server: str | None,
    token: str | None,
) -> int:
    tool = registry.get_server_tool(server, name) if server else registry.get_tool(name)
    if tool is None:
        where = f" on server '{server}'" if server else ""
        sys.stderr.write(f"Unknown tool '{name}'{where}\n")
        return 1

    if token is not None:
        if tool.server is not None:
            registry.set_access_token_for_server(tool.server, token)
        else:
            registry.set_access_token_for_all(token)

    try:
        result = await tool.run(arguments)
    except ValidationError as exc:
        sys.stderr.write(f"Invalid arguments for '{name}':\n{exc}\n")
        return 1
    except (AuthRequiredError, SessionNotEstablishedError, ToolCallError) as exc:
        logger.error("Tool %s failed: %s", name, exc)
        sys.stderr.write(f"{exc}\n")
        return 1

    _write_json(result)
    return 0


def _write_json(value: Any) -> None:
    sys.stdout.write(json.dumps(value, indent=2, default=str) + "\n")


if __name__ == "__main__":
    raise SystemExit(main())
