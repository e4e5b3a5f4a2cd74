"""Schema-aware traversal of JSON schema documents.

Only positions that hold subschemas are visited, so property names, ``enum``
values and defaults are never mistaken for schemas.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from .dialects import DEFINITIONS_KEYS, escape_pointer

_SCHEMA_MAPS = ("properties", "patternProperties", *DEFINITIONS_KEYS)
_SCHEMA_LISTS = ("anyOf", "oneOf", "allOf", "prefixItems")
_SCHEMA_VALUES = ("additionalProperties", "items", "not", "contains", "if", "then", "else")


def iter_schemas(schema: Any, pointer: str = "#") -> Iterator[tuple[dict[str, Any], str]]:
    """Yield ``(subschema, json pointer)`` for ``schema`` and every nested subschema."""
    if not isinstance(schema, dict):
        return
    yield schema, pointer
    for key in _SCHEMA_MAPS:
        children = schema.get(key)
        if isinstance(children, dict):
            for name, child in children.items():
                yield from iter_schemas(child, f"{pointer}/{key}/{escape_pointer(str(name))}")
    for key in _SCHEMA_LISTS:
        children = schema.get(key)
        if isinstance(children, list):
            for index, child in enumerate(children):
                yield from iter_schemas(child, f"{pointer}/{key}/{index}")
    for key in _SCHEMA_VALUES:
        child = schema.get(key)
        if isinstance(child, dict):
            yield from iter_schemas(child, f"{pointer}/{key}")
        elif key == "items" and isinstance(child, list):
            for index, item in enumerate(child):
                yield from iter_schemas(item, f"{pointer}/items/{index}")


def transform(schema: Any, func: Callable[[dict[str, Any], str], None]) -> None:
    """Apply ``func(node, pointer)`` in place to every subschema, parents first."""
    for node, pointer in list(iter_schemas(schema)):
        func(node, pointer)


def is_object_schema(node: dict[str, Any]) -> bool:
    return node.get("type") == "object" or "properties" in node


def is_typed_map(node: dict[str, Any]) -> bool:
    return isinstance(node.get("additionalProperties"), dict) and not node.get("properties")
