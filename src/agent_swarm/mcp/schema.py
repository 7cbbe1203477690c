"""Translate wire JSON schemas into pydantic-validated input types.

Translation is lenient: unknown or malformed schema fragments degrade to
``Any`` instead of raising.
"""

from __future__ import annotations

import keyword
import re
from typing import Annotated, Any, Final

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    create_model,
)

from agent_swarm.models.mcp import JSONValue

# Scalars are strict: "3.5" is not a number and "yes" is not a boolean.
_SCALAR_TYPES: Final[dict[str, Any]] = {
    "string": StrictStr,
    "number": StrictInt | StrictFloat,
    "integer": StrictInt,
    "boolean": StrictBool,
}

_MODEL_CONFIG: Final = ConfigDict(populate_by_name=True, protected_namespaces=())


def translate_schema(schema: Any, *, name: str = "Arguments") -> Any:
    """Return a type annotation that validates values matching `schema`.

    - ``object`` becomes a generated pydantic model; properties not listed in
      ``required`` are optional and default to ``None``.
    - ``string``/``number``/``integer``/``boolean`` become strict ``str``,
      ``int | float``, ``int`` and ``bool`` annotated with the schema
      description. Strings are never coerced to numbers or booleans.
    - ``array`` becomes ``list[...]`` of the translated ``items`` or
      ``list[Any]`` when ``items`` is missing.
    - Anything else, including non-dict input, becomes ``Any``.
    """
    return _translate(schema, name=name, describe=True)


def _translate(schema: Any, *, name: str, describe: bool) -> Any:
    # Nested values carry their description on the enclosing model field.
    if not isinstance(schema, dict):
        return Any

    schema_type = schema.get("type")
    if not isinstance(schema_type, str):
        return Any

    description = _description(schema)
    if schema_type == "object":
        return _object_model(schema, name=name, description=description)

    scalar = _SCALAR_TYPES.get(schema_type)
    if scalar is not None:
        return _described(scalar, description) if describe else scalar

    if schema_type == "array":
        items = schema.get("items")
        item_type = (
            _translate(items, name=f"{name}Item", describe=False) if items is not None else Any
        )
        array_type = list[item_type]
        return _described(array_type, description) if describe else array_type

    return Any


def input_type_for(tool_name: str, schema: Any) -> Any:
    """Translate a tool's input schema, naming generated models after the tool."""
    return translate_schema(schema, name=f"{_camel(tool_name) or 'Tool'}Input")


def dump_arguments(adapter: TypeAdapter[Any], value: Any) -> JSONValue:
    """Convert validated input back into wire JSON using the schema's property names."""
    return adapter.dump_python(value, mode="json", by_alias=True, exclude_unset=True)


def _object_model(
    schema: dict[str, Any],
    *,
    name: str,
    description: str | None,
) -> type[BaseModel]:
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    required = schema.get("required")
    required_names = (
        {item for item in required if isinstance(item, str)} if isinstance(required, list) else set()
    )

    fields: dict[str, Any] = {}
    for index, (raw_key, prop) in enumerate(properties.items()):
        key = str(raw_key)
        field_type = _translate(prop, name=f"{name}{_camel(key)}", describe=False)
        field_description = _description(prop) if isinstance(prop, dict) else None
        field_name = _field_name(key, index, taken=fields)
        alias = None if field_name == key else key
        if key in required_names:
            fields[field_name] = (
                field_type,
                Field(description=field_description, alias=alias),
            )
        else:
            fields[field_name] = (
                field_type | None,
                Field(default=None, description=field_description, alias=alias),
            )

    return create_model(
        _model_name(name),
        __config__=_MODEL_CONFIG,
        __doc__=description,
        **fields,
    )


def _field_name(key: str, index: int, *, taken: dict[str, Any]) -> str:
    if (
        key.isidentifier()
        and not keyword.iskeyword(key)
        and not key.startswith("_")
        and not hasattr(BaseModel, key)
        and key not in taken
    ):
        return key
    candidate = f"field_{index}"
    while candidate in taken:
        candidate = f"{candidate}_"
    return candidate


def _described(annotation: Any, description: str | None) -> Any:
    if description:
        return Annotated[annotation, Field(description=description)]
    return annotation


def _description(schema: dict[str, Any]) -> str | None:
    value = schema.get("description")
    if isinstance(value, str) and value:
        return value
    return None


def _camel(value: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[^0-9A-Za-z]+", value) if part)


def _model_name(name: str) -> str:
    cleaned = re.sub(r"\W", "_", name)
    return cleaned or "Arguments"
