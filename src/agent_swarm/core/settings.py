"""Process configuration loaded once from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Final, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from agent_swarm.models.mcp import AuthKind, ServerConfig

type LogFormat = Literal["console", "json"]


@dataclass(frozen=True, slots=True)
class DefaultServer:
    name: str
    env_prefix: str
    port: int
    requires_auth: AuthKind | None = None


DEFAULT_SERVERS: Final[tuple[DefaultServer, ...]] = (
    DefaultServer("restaurant-booking", "RESTAURANT_BOOKING", 3001),
    DefaultServer("time", "TIME", 3002),
    DefaultServer("google-assistant", "GOOGLE_ASSISTANT", 3003, requires_auth="google"),
    DefaultServer("web-search", "WEB_SEARCH", 3004),
    DefaultServer("atlassian", "ATLASSIAN", 3005),
    DefaultServer("reddit", "REDDIT", 3006),
)


class Settings(BaseSettings):
    """Environment settings with validation.

    Timeouts are given in milliseconds, matching the deployment environment
    files. ``MCP_SERVERS`` (a JSON list of server configs) replaces the
    built-in server table when set.
    """

    mcp_timeout: int = Field(default=30_000, gt=0, description="Tool call timeout (ms)")
    mcp_init_timeout: int = Field(
        default=5_000, gt=0, description="Handshake and discovery timeout (ms)"
    )
    log_level: str = Field(default="INFO", description="Root level for agent_swarm loggers")
    log_format: LogFormat = Field(default="console", description="'console' or 'json'")
    mcp_servers: list[ServerConfig] | None = Field(
        default=None, description="Explicit server table overriding the defaults"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        value = v.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return value

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_log_format(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v

    @property
    def call_timeout_seconds(self) -> float:
        return self.mcp_timeout / 1000

    @property
    def init_timeout_seconds(self) -> float:
        return self.mcp_init_timeout / 1000

    def server_configs(self, environ: Mapping[str, str] | None = None) -> list[ServerConfig]:
        """Resolve the server table: explicit ``MCP_SERVERS`` or the defaults."""
        if self.mcp_servers is not None:
            return list(self.mcp_servers)
        return load_server_configs(os.environ if environ is None else environ)


def load_server_configs(environ: Mapping[str, str]) -> list[ServerConfig]:
    """Build the default server table, honouring ``<PREFIX>_MCP_*`` overrides.

    A server is disabled only by the literal string ``"false"``.
    """
    configs: list[ServerConfig] = []
    for server in DEFAULT_SERVERS:
        base = f"http://127.0.0.1:{server.port}"
        configs.append(
            ServerConfig(
                name=server.name,
                url=environ.get(f"{server.env_prefix}_MCP_URL") or f"{base}/mcp",
                health_url=environ.get(f"{server.env_prefix}_MCP_HEALTH_URL") or f"{base}/health",
                enabled=environ.get(f"{server.env_prefix}_MCP_ENABLED") != "false",
                requires_auth=server.requires_auth,
            )
        )
    return configs


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance; validation errors surface at startup."""
    return Settings()
