from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel, TypeAdapter, ValidationError

from agent_swarm.mcp.schema import dump_arguments, input_type_for, translate_schema


def _adapter(schema: Any) -> TypeAdapter[Any]:
    return TypeAdapter(translate_schema(schema))


def test_required_string_property_accepts_value_and_rejects_missing() -> None:
    adapter = _adapter(
        {"type": "object", "properties": {"a": {"type": "string"}}, "required": ["a"]}
    )

    assert adapter.validate_python({"a": "hi"}).a == "hi"
    with pytest.raises(ValidationError):
        adapter.validate_python({})


def test_properties_not_in_required_are_optional() -> None:
    adapter = _adapter(
        {
            "type": "object",
            "properties": {"city": {"type": "string"}, "limit": {"type": "integer"}},
            "required": ["city"],
        }
    )

    value = adapter.validate_python({"city": "Oslo"})

    assert value.city == "Oslo"
    assert value.limit is None


def test_scalar_types_map_to_python_validators() -> None:
    adapter = _adapter(
        {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "ratio": {"type": "number"},
                "count": {"type": "integer"},
                "flag": {"type": "boolean"},
            },
            "required": ["name", "ratio", "count", "flag"],
        }
    )

    value = adapter.validate_python({"name": "x", "ratio": 1.5, "count": 3, "flag": True})

    assert (value.name, value.ratio, value.count, value.flag) == ("x", 1.5, 3, True)
    with pytest.raises(ValidationError):
        adapter.validate_python({"name": "x", "ratio": 1.5, "count": "many", "flag": True})


@pytest.mark.parametrize(
    ("schema_type", "value"),
    [
        ("number", "3.5"),
        ("integer", "3"),
        ("integer", 3.0),
        ("boolean", "yes"),
        ("boolean", 1),
        ("string", 5),
    ],
)
def test_scalars_reject_values_of_another_json_type(schema_type: str, value: Any) -> None:
    adapter = _adapter(
        {"type": "object", "properties": {"v": {"type": schema_type}}, "required": ["v"]}
    )

    with pytest.raises(ValidationError):
        adapter.validate_python({"v": value})


def test_number_accepts_integers_and_keeps_them_integral() -> None:
    adapter = _adapter(
        {"type": "object", "properties": {"v": {"type": "number"}}, "required": ["v"]}
    )

    value = adapter.validate_python({"v": 3})

    assert value.v == 3
    assert dump_arguments(adapter, value) == {"v": 3}
    assert adapter.validate_python({"v": 2.5}).v == 2.5


def test_missing_properties_yields_empty_object_model() -> None:
    model = translate_schema({"type": "object"})

    assert isinstance(model, type)
    assert issubclass(model, BaseModel)
    assert model.model_fields == {}
    TypeAdapter(model).validate_python({"anything": 1})


def test_array_items_are_translated_recursively() -> None:
    adapter = _adapter({"type": "array", "items": {"type": "integer"}})

    assert adapter.validate_python([1, 2, 3]) == [1, 2, 3]
    with pytest.raises(ValidationError):
        adapter.validate_python(["one"])


def test_array_without_items_accepts_any_elements() -> None:
    adapter = _adapter({"type": "array"})

    assert adapter.validate_python([1, "two", {"three": 3}]) == [1, "two", {"three": 3}]


@pytest.mark.parametrize(
    "schema",
    [
        {"type": "null"},
        {"description": "no type at all"},
        {"type": ["string", "null"]},
        "not-a-schema",
        None,
    ],
)
def test_unknown_or_missing_type_accepts_anything(schema: Any) -> None:
    adapter = _adapter(schema)

    assert adapter.validate_python({"free": "form"}) == {"free": "form"}
    assert adapter.validate_python(42) == 42


def test_nested_objects_become_nested_models() -> None:
    adapter = _adapter(
        {
            "type": "object",
            "properties": {
                "booking": {
                    "type": "object",
                    "properties": {"guests": {"type": "integer"}},
                    "required": ["guests"],
                }
            },
            "required": ["booking"],
        }
    )

    value = adapter.validate_python({"booking": {"guests": 4}})

    assert value.booking.guests == 4
    with pytest.raises(ValidationError):
        adapter.validate_python({"booking": {}})


def test_descriptions_are_carried_into_json_schema() -> None:
    model = translate_schema(
        {
            "type": "object",
            "description": "Search the web",
            "properties": {"query": {"type": "string", "description": "Search terms"}},
            "required": ["query"],
        }
    )

    schema = model.model_json_schema()

    assert schema["description"] == "Search the web"
    assert schema["properties"]["query"]["description"] == "Search terms"


def test_awkward_property_names_keep_wire_names_on_dump() -> None:
    input_type = input_type_for(
        "create-event",
        {
            "type": "object",
            "properties": {
                "start-time": {"type": "string"},
                "from": {"type": "string"},
                "model_config": {"type": "string"},
            },
            "required": ["start-time"],
        },
    )
    adapter = TypeAdapter(input_type)

    value = adapter.validate_python(
        {"start-time": "09:00", "from": "alice", "model_config": "raw"}
    )

    assert dump_arguments(adapter, value) == {
        "start-time": "09:00",
        "from": "alice",
        "model_config": "raw",
    }


def test_dump_omits_unset_optional_arguments() -> None:
    adapter = TypeAdapter(
        input_type_for(
            "search",
            {
                "type": "object",
                "properties": {"q": {"type": "string"}, "page": {"type": "integer"}},
                "required": ["q"],
            },
        )
    )

    assert dump_arguments(adapter, adapter.validate_python({"q": "mcp"})) == {"q": "mcp"}


def test_unknown_keys_are_dropped_by_object_models() -> None:
    adapter = TypeAdapter(
        input_type_for("time", {"type": "object", "properties": {"tz": {"type": "string"}}})
    )

    value = adapter.validate_python({"tz": "UTC", "extra": True})

    assert dump_arguments(adapter, value) == {"tz": "UTC"}


def test_input_type_is_named_after_tool() -> None:
    model = input_type_for("get-current-time", {"type": "object"})

    assert model.__name__ == "GetCurrentTimeInput"
