"""MCP server and tool domain models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

type JSONValue = None | bool | int | float | str | list[JSONValue] | dict[str, JSONValue]
type JSONObject = dict[str, JSONValue]
type AuthKind = Literal["google", "whatsapp", "github"]


class ServerConfig(BaseModel):
    """Connection settings for one externally hosted tool server."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    url: str
    health_url: str | None = Field(default=None, alias="healthUrl")
    enabled: bool = True
    requires_auth: AuthKind | None = Field(default=None, alias="requiresAuth")


class ToolDescriptor(BaseModel):
    """Wire-level metadata for one tool discovered on a server."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")
    requires_auth: str | bool | None = Field(default=None, alias="requiresAuth")
    server: str | None = None


class ServerStatus(BaseModel):
    """Connection summary for one tool source."""

    model_config = ConfigDict(populate_by_name=True)

    connected: bool
    tool_count: int = Field(default=0, alias="toolCount")
