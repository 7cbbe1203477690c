"""Callable tool records shared by local and remote tool sources."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, TypeAdapter

from agent_swarm.mcp.schema import input_type_for
from agent_swarm.models.mcp import JSONObject

type ToolExecutor = Callable[[Any], Any | Awaitable[Any]]


@dataclass(slots=True)
class Tool:
    """One invocable capability, resolved by name through a registry."""

    id: str
    description: str
    input_type: Any
    execute: ToolExecutor
    server: str | None = None
    requires_auth: str | bool | None = None
    input_schema: JSONObject = field(default_factory=dict)
    adapter: TypeAdapter[Any] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.adapter = TypeAdapter(self.input_type)

    @property
    def is_local(self) -> bool:
        return self.server is None

    def validate(self, arguments: Mapping[str, Any] | None = None) -> Any:
        """Validate raw arguments against the tool's input type."""
        return self.adapter.validate_python(dict(arguments or {}))

    async def run(self, arguments: Mapping[str, Any] | None = None) -> Any:
        """Validate `arguments` and invoke the executor (sync or async)."""
        validated = self.validate(arguments)
        result = self.execute(validated)
        if inspect.isawaitable(result):
            result = await result
        return result

    def parameters_schema(self) -> JSONObject:
        """JSON schema of the validated input, suitable for LLM tool binding."""
        return self.adapter.json_schema()


def create_tool(
    *,
    id: str,
    description: str,
    execute: ToolExecutor,
    input_schema: type[BaseModel] | JSONObject | None = None,
) -> Tool:
    """Build a local tool from a pydantic model or a wire JSON schema."""
    if isinstance(input_schema, type) and issubclass(input_schema, BaseModel):
        return Tool(
            id=id,
            description=description,
            input_type=input_schema,
            execute=execute,
            input_schema=input_schema.model_json_schema(),
        )
    wire_schema: JSONObject = input_schema if isinstance(input_schema, dict) else {}
    return Tool(
        id=id,
        description=description,
        input_type=input_type_for(id, wire_schema),
        execute=execute,
        input_schema=wire_schema,
    )
