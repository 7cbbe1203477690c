"""MCP client for one HTTP tool server.

Protocol flow for one client instance:
    1. GET the health URL (when configured)
    2. POST ``initialize`` and capture the session id
    3. POST ``notifications/initialized`` (best effort)
    4. POST ``tools/list`` to discover tools
    5. POST ``tools/call`` for each invocation
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from enum import StrEnum
from typing import Any, Final, Literal
from uuid import uuid4

import httpx
from pydantic import ValidationError

from agent_swarm.mcp.schema import dump_arguments, input_type_for
from agent_swarm.models.mcp import JSONObject, JSONValue, ServerConfig, ToolDescriptor
from agent_swarm.tools.tool import Tool

logger = logging.getLogger(__name__)

PROTOCOL_VERSION: Final = "2024-11-05"
CLIENT_INFO: Final[JSONObject] = {"name": "agent-swarm", "version": "0.1.0"}
SESSION_HEADER: Final = "mcp-session-id"
DEFAULT_SESSION_ID: Final = "default"
HEALTH_CHECK_TIMEOUT_SECONDS: Final = 5.0
DEFAULT_INIT_TIMEOUT_SECONDS: Final = 5.0
DEFAULT_CALL_TIMEOUT_SECONDS: Final = 30.0
PARSE_ERROR_CODE: Final = -32700

_BASE_HEADERS: Final[dict[str, str]] = {
    "Content-Type": "application/json",
    "Accept": "application/json, text/event-stream",
}
_SENSITIVE_HEADERS: Final = frozenset({"authorization", "cookie", "x-api-key", "api-key"})
_SESSION_PATTERN: Final = re.compile(r"mcp-session-id:\s*([^\s\r\n]+)")
_FRAME_PREFIX: Final = "data:"

type InitStage = Literal["health_check", "handshake", "discovery"]
type ErrorCategory = Literal["http_status", "rpc_error", "transport_error"]


class ClientState(StrEnum):
    """Lifecycle position of one MCP client."""

    UNINITIALIZED = "uninitialized"
    DISABLED = "disabled"
    HEALTH_CHECKED = "health_checked"
    SESSION_ESTABLISHED = "session_established"
    READY = "ready"
    FAILED = "failed"


class MCPInitializationError(RuntimeError):
    """Raised when one server fails a startup stage."""

    def __init__(self, message: str, *, server: str, stage: InitStage) -> None:
        super().__init__(message)
        self.server = server
        self.stage = stage


class HealthCheckError(MCPInitializationError):
    """Health endpoint unreachable or not 2xx."""

    def __init__(self, message: str, *, server: str) -> None:
        super().__init__(message, server=server, stage="health_check")


class HandshakeError(MCPInitializationError):
    """``initialize`` request failed."""

    def __init__(self, message: str, *, server: str) -> None:
        super().__init__(message, server=server, stage="handshake")


class DiscoveryError(MCPInitializationError):
    """``tools/list`` request failed."""

    def __init__(self, message: str, *, server: str) -> None:
        super().__init__(message, server=server, stage="discovery")


class SessionNotEstablishedError(RuntimeError):
    """Raised when a tool is called before the handshake completed."""

    def __init__(self, message: str, *, server: str) -> None:
        super().__init__(message)
        self.server = server


class AuthRequiredError(RuntimeError):
    """Raised before any request when a tool needs a token and none is set."""

    def __init__(self, message: str, *, server: str, tool: str) -> None:
        super().__init__(message)
        self.server = server
        self.tool = tool


class ToolCallError(RuntimeError):
    """Tool invocation failure with explicit category."""

    def __init__(
        self,
        message: str,
        *,
        server: str,
        tool: str,
        category: ErrorCategory,
    ) -> None:
        super().__init__(message)
        self.server = server
        self.tool = tool
        self.category = category


def parse_response(text: str) -> JSONObject:
    """Decode a JSON-RPC response body.

    Accepts either one JSON object or event-stream framing (``data: {...}``
    lines), in which case only the last frame counts. Malformed bodies become
    a synthetic JSON-RPC parse error instead of raising.
    """
    try:
        return _decode_response(text)
    except (ValueError, RecursionError) as exc:
        logger.error("Failed to parse MCP response: %s (body=%r)", exc, text[:500])
        return {
            "jsonrpc": "2.0",
            "id": None,
            "error": {
                "code": PARSE_ERROR_CODE,
                "message": "Failed to parse response",
                "data": text,
            },
        }


def mask_sensitive_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of `headers` safe to log."""
    masked = dict(headers)
    for key, value in masked.items():
        if key.lower() not in _SENSITIVE_HEADERS or not value:
            continue
        if len(value) > 10:
            masked[key] = f"{value[:6]}...{value[-4:]}"
        else:
            masked[key] = "***[MASKED]***"
    return masked


class MCPClient:
    """Own one session with one MCP tool server."""

    def __init__(
        self,
        config: ServerConfig,
        *,
        call_timeout: float = DEFAULT_CALL_TIMEOUT_SECONDS,
        init_timeout: float = DEFAULT_INIT_TIMEOUT_SECONDS,
        health_timeout: float = HEALTH_CHECK_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._call_timeout = call_timeout
        self._init_timeout = init_timeout
        self._health_timeout = health_timeout
        self._http_client = http_client
        self._state = ClientState.UNINITIALIZED
        self._session_id: str | None = None
        self._access_token: str | None = None
        self._tools: list[ToolDescriptor] = []
        self.protocol_version: str | None = None
        self.server_info: JSONObject | None = None

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def call_timeout(self) -> float:
        return self._call_timeout

    @property
    def init_timeout(self) -> float:
        return self._init_timeout

    @property
    def health_timeout(self) -> float:
        return self._health_timeout

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @property
    def tools(self) -> list[ToolDescriptor]:
        """Discovered tool descriptors, in server order."""
        return list(self._tools)

    def set_access_token(self, access_token: str | None) -> None:
        """Replace the bearer token used by subsequent calls."""
        self._access_token = access_token

    async def initialize(self) -> None:
        """Run health check, handshake and discovery; raise on the first failure."""
        if not self._config.enabled:
            self._state = ClientState.DISABLED
            logger.info("MCP server %s is disabled", self.name)
            return

        self._session_id = None
        self._tools = []
        try:
            await self._health_check()
            self._state = ClientState.HEALTH_CHECKED
            await self._initialize_session()
            self._state = ClientState.SESSION_ESTABLISHED
            await self._load_tools()
        except MCPInitializationError as exc:
            self._state = ClientState.FAILED
            logger.debug("MCP client for %s failed during %s: %s", self.name, exc.stage, exc)
            raise
        self._state = ClientState.READY
        logger.info("MCP client for %s initialized with %d tools", self.name, len(self._tools))

    async def call_tool(
        self,
        name: str,
        arguments: Mapping[str, Any] | JSONValue = None,
        requires_auth: bool | str | None = False,
        *,
        access_token: str | None = None,
    ) -> JSONValue:
        """Invoke one tool.

        Authentication is required when the call, the server config, or the
        discovered tool asks for it. A timeout returns ``{"error": ...}``;
        other failures raise.
        """
        session_id = self._session_id
        if session_id is None:
            msg = f"MCP session not initialized for {self.name}"
            raise SessionNotEstablishedError(msg, server=self.name)

        descriptor = self._find_descriptor(name)
        needs_auth = (
            bool(requires_auth)
            or bool(self._config.requires_auth)
            or (descriptor is not None and bool(descriptor.requires_auth))
        )
        token = access_token or self._access_token
        if needs_auth and not token:
            msg = f"Tool '{name}' requires authentication but no access token provided"
            raise AuthRequiredError(msg, server=self.name, tool=name)

        headers = self._headers(session_id)
        if needs_auth:
            headers["Authorization"] = f"Bearer {token}"

        if isinstance(arguments, Mapping):
            wire_arguments: JSONValue = dict(arguments)
        else:
            wire_arguments = arguments if arguments is not None else {}
        payload = _build_request(
            "tools/call",
            request_id=str(uuid4()),
            params={"name": name, "arguments": wire_arguments},
        )
        logger.info(
            "Calling tool %s on %s with parameters: %s, headers: %s",
            name,
            self.name,
            json.dumps(payload, default=str),
            json.dumps(mask_sensitive_headers(headers)),
        )

        started = time.perf_counter()
        try:
            async with asyncio.timeout(self._call_timeout), self._http() as client:
                response = await client.post(
                    self._config.url,
                    json=payload,
                    headers=headers,
                    timeout=self._call_timeout,
                )
        except (httpx.TimeoutException, TimeoutError):
            message = (
                f"The tool call to '{name}' timed out after {self._call_timeout:g} seconds. "
                "Please try again later."
            )
            logger.error(message)
            return {"error": message}
        except httpx.HTTPError as exc:
            raise ToolCallError(
                f"Tool call failed: {exc}",
                server=self.name,
                tool=name,
                category="transport_error",
            ) from exc

        if not response.is_success:
            raise ToolCallError(
                f"Tool call failed: {response.status_code} {response.reason_phrase} - {response.text}",
                server=self.name,
                tool=name,
                category="http_status",
            )

        result = parse_response(response.text)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("Tool call %s on %s responded in %.0fms", name, self.name, elapsed_ms)

        rpc_error = _extract_error(result)
        if rpc_error is not None:
            raise ToolCallError(
                f"Tool execution error: {rpc_error}",
                server=self.name,
                tool=name,
                category="rpc_error",
            )
        return _unwrap_result(result.get("result"))

    def get_available_tools(self) -> list[Tool]:
        """Build callable tools bound to this client from discovered descriptors."""
        return [self._build_tool(descriptor) for descriptor in self._tools]

    def get_tool_names(self) -> list[str]:
        return [descriptor.name for descriptor in self._tools]

    async def _health_check(self) -> None:
        health_url = self._config.health_url
        if not health_url:
            return
        try:
            async with asyncio.timeout(self._health_timeout), self._http() as client:
                response = await client.get(health_url, timeout=self._health_timeout)
        except (httpx.TimeoutException, TimeoutError) as exc:
            msg = f"Health check for {self.name} timed out after {self._health_timeout:g} seconds"
            raise HealthCheckError(msg, server=self.name) from exc
        except httpx.HTTPError as exc:
            raise HealthCheckError(
                f"Health check for {self.name} failed: {exc}", server=self.name
            ) from exc
        if not response.is_success:
            raise HealthCheckError(
                f"Health check for {self.name} failed: {response.status_code}",
                server=self.name,
            )

    async def _initialize_session(self) -> None:
        request = _build_request(
            "initialize",
            request_id="init",
            params={
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "clientInfo": CLIENT_INFO,
            },
        )
        logger.info("Session initialization request: %s", self._config.url)
        response = await self._post_during_init(
            request,
            headers=self._headers(),
            error_type=HandshakeError,
            action="session initialization",
        )

        body = response.text
        session_id = response.headers.get(SESSION_HEADER)
        if not session_id:
            match = _SESSION_PATTERN.search(body)
            session_id = match.group(1).strip() if match else DEFAULT_SESSION_ID
        self._session_id = session_id
        self._capture_server_info(body)
        logger.info("MCP session initialized for %s: %s", self.name, session_id)

        await self._send_initialized_notification(session_id)

    async def _send_initialized_notification(self, session_id: str) -> None:
        notification: JSONObject = {
            "jsonrpc": "2.0",
            "method": "notifications/initialized",
            "params": {},
        }
        try:
            async with asyncio.timeout(self._init_timeout), self._http() as client:
                await client.post(
                    self._config.url,
                    json=notification,
                    headers=self._headers(session_id),
                    timeout=self._init_timeout,
                )
        except (httpx.TimeoutException, TimeoutError) as exc:
            logger.warning(
                "Initialized notification to %s timed out after %gs: %s",
                self.name,
                self._init_timeout,
                exc,
            )
        except httpx.HTTPError as exc:
            logger.warning("Failed to send initialized notification to %s: %s", self.name, exc)

    async def _load_tools(self) -> None:
        request = _build_request("tools/list", request_id="list-tools")
        response = await self._post_during_init(
            request,
            headers=self._headers(self._session_id),
            error_type=DiscoveryError,
            action="tools loading",
        )

        payload = parse_response(response.text)
        rpc_error = _extract_error(payload)
        if rpc_error is not None:
            raise DiscoveryError(f"Tools list error for {self.name}: {rpc_error}", server=self.name)

        result = payload.get("result")
        raw_tools = result.get("tools") if isinstance(result, dict) else None
        self._tools = self._parse_descriptors(raw_tools if isinstance(raw_tools, list) else [])
        logger.info(
            "Loaded %d tools from %s: %s",
            len(self._tools),
            self.name,
            ", ".join(self.get_tool_names()),
        )

    async def _post_during_init(
        self,
        payload: JSONObject,
        *,
        headers: dict[str, str],
        error_type: type[HandshakeError] | type[DiscoveryError],
        action: str,
    ) -> httpx.Response:
        try:
            async with asyncio.timeout(self._init_timeout), self._http() as client:
                response = await client.post(
                    self._config.url,
                    json=payload,
                    headers=headers,
                    timeout=self._init_timeout,
                )
        except (httpx.TimeoutException, TimeoutError) as exc:
            msg = f"MCP {action} timed out after {self._init_timeout:g} seconds for {self.name}"
            raise error_type(msg, server=self.name) from exc
        except httpx.HTTPError as exc:
            raise error_type(f"MCP {action} failed for {self.name}: {exc}", server=self.name) from exc

        if not response.is_success:
            msg = f"MCP {action} failed for {self.name}: {response.status_code} - {response.text}"
            raise error_type(msg, server=self.name)
        return response

    def _parse_descriptors(self, raw_tools: list[Any]) -> list[ToolDescriptor]:
        descriptors: list[ToolDescriptor] = []
        for entry in raw_tools:
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
                logger.warning("Skipping malformed tool entry from %s: %r", self.name, entry)
                continue
            data = dict(entry)
            if not isinstance(data.get("inputSchema"), dict):
                data["inputSchema"] = {}
            if not isinstance(data.get("description"), str):
                data["description"] = ""
            data["server"] = self.name
            try:
                descriptors.append(ToolDescriptor.model_validate(data))
            except ValidationError as exc:
                logger.warning("Skipping tool %s from %s: %s", data["name"], self.name, exc)
        return descriptors

    def _build_tool(self, descriptor: ToolDescriptor) -> Tool:
        async def execute(arguments: Any) -> JSONValue:
            return await self.call_tool(descriptor.name, dump_arguments(tool.adapter, arguments))

        tool = Tool(
            id=descriptor.name,
            description=descriptor.description,
            input_type=input_type_for(descriptor.name, descriptor.input_schema),
            execute=execute,
            server=self.name,
            requires_auth=descriptor.requires_auth,
            input_schema=descriptor.input_schema,
        )
        return tool

    def _find_descriptor(self, name: str) -> ToolDescriptor | None:
        return next((descriptor for descriptor in self._tools if descriptor.name == name), None)

    def _capture_server_info(self, body: str) -> None:
        try:
            payload = _decode_response(body)
        except (ValueError, RecursionError):
            logger.debug("Initialize response from %s was not JSON-RPC", self.name)
            return
        result = payload.get("result")
        if not isinstance(result, dict):
            return
        protocol = result.get("protocolVersion")
        self.protocol_version = protocol if isinstance(protocol, str) else None
        server_info = result.get("serverInfo")
        self.server_info = server_info if isinstance(server_info, dict) else None

    def _headers(self, session_id: str | None = None) -> dict[str, str]:
        headers = dict(_BASE_HEADERS)
        if session_id is not None:
            headers[SESSION_HEADER] = session_id
        return headers

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient() as client:
            yield client


def _decode_response(text: str) -> JSONObject:
    stripped = text.strip()
    if stripped.startswith("{"):
        payload = json.loads(stripped)
    else:
        frames = [
            line.strip()
            for line in stripped.splitlines()
            if line.strip().startswith(_FRAME_PREFIX)
        ]
        if not frames:
            msg = "Invalid response format"
            raise ValueError(msg)
        payload = json.loads(frames[-1][len(_FRAME_PREFIX) :].strip())
    if not isinstance(payload, dict):
        msg = "JSON-RPC response is not an object"
        raise ValueError(msg)
    return payload


def _build_request(
    method: str,
    *,
    request_id: str,
    params: JSONObject | None = None,
) -> JSONObject:
    request: JSONObject = {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": method,
    }
    if params is not None:
        request["params"] = params
    return request


def _extract_error(response: JSONObject) -> str | None:
    error_payload = response.get("error")
    if error_payload is None:
        return None
    if isinstance(error_payload, dict):
        message = error_payload.get("message")
        if isinstance(message, str):
            return message
        code = error_payload.get("code")
        return f"code={code}"
    return str(error_payload)


def _unwrap_result(result: JSONValue) -> JSONValue:
    if isinstance(result, dict):
        content = result.get("content")
        if isinstance(content, list) and content:
            first = content[0]
            if isinstance(first, dict) and first.get("type") == "text":
                text = first.get("text")
                if isinstance(text, str):
                    try:
                        return json.loads(text)
                    except (ValueError, RecursionError):
                        return text
    return result
