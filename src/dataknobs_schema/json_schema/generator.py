"""JSON schema generation from schema descriptors.

Example:
    ```python
    from dataknobs_schema import SchemaBuilder, SchemaRegistry, types as t
    from dataknobs_schema.json_schema import generate

    registry = SchemaRegistry()
    node = registry.register_schema(
        SchemaBuilder("Node")
        .field("value", t.integer())
        .field("children", t.array(t.ref("Node")), default=[])
        .build()
    )
    document = generate(node, registry)
    document["properties"]["children"]
    # {'type': 'array', 'items': {'$ref': '#/definitions/Node'}, 'default': []}
    ```
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from ..constraints import Constraint
from ..descriptor import ComputedField, FieldSpec, SchemaDescriptor, value_category
from ..exceptions import SchemaConfigurationError
from ..registry import CustomType, SchemaRegistry, TypeRegistry
from ..types import (
    ArrayOf,
    Custom,
    MapOf,
    Primitive,
    PrimitiveKind,
    Ref,
    TypeExpr,
    UnionOf,
)
from .dialects import DEFINITIONS_KEYS, Dialect, get_dialect

logger = logging.getLogger(__name__)

COMPUTED_FIELD_KEY = "x-computed-field"

CustomTypeHook = Callable[[str, "CustomType | None"], "dict[str, Any] | None"]

_PRIMITIVES: dict[PrimitiveKind, dict[str, Any]] = {
    PrimitiveKind.STRING: {"type": "string"},
    PrimitiveKind.INTEGER: {"type": "integer"},
    PrimitiveKind.FLOAT: {"type": "number"},
    PrimitiveKind.BOOLEAN: {"type": "boolean"},
    PrimitiveKind.NULL: {"type": "null"},
    PrimitiveKind.ANY: {},
}


@dataclass(frozen=True)
class GenerationOptions:
    """Options for document generation.

    Attributes:
        dialect: ``draft-07`` (``definitions``) or ``2020-12`` (``$defs``)
        include_computed: List computed fields as ``readOnly`` properties
        include_schema_uri: Emit the ``$schema`` keyword
        custom_type_hook: Called with ``(name, custom_type)``; a returned
            fragment overrides the custom type's own representation
    """

    dialect: str = "draft-07"
    include_computed: bool = True
    include_schema_uri: bool = True
    custom_type_hook: CustomTypeHook | None = None


class _Generator:
    """Per-call generation state: pending references and collected problems."""

    def __init__(
        self,
        registry: SchemaRegistry | None,
        types: TypeRegistry | None,
        options: GenerationOptions,
    ):
        self.registry = registry
        self.types = types
        self.options = options
        self.dialect: Dialect = get_dialect(options.dialect)
        self.local: dict[str, SchemaDescriptor] = {}
        self.pending: list[str] = []
        self.problems: list[str] = []

    def document(self, body: dict[str, Any]) -> dict[str, Any]:
        definitions: dict[str, Any] = {}
        while self.pending:
            schema_id = self.pending.pop(0)
            if schema_id in definitions:
                continue
            descriptor = self._descriptor(schema_id)
            definitions[schema_id] = {}
            if descriptor is not None:
                definitions[schema_id] = self.object_schema(descriptor)

        if self.problems:
            raise SchemaConfigurationError(self.problems)

        document: dict[str, Any] = {}
        if self.options.include_schema_uri:
            document["$schema"] = self.dialect.uri
        document.update(body)
        if definitions:
            document[self.dialect.definitions_key] = definitions
        return document

    def _descriptor(self, schema_id: str) -> SchemaDescriptor | None:
        descriptor = self.local.get(schema_id)
        if descriptor is None and self.registry is not None:
            descriptor = self.registry.get_optional(schema_id)
        if descriptor is None:
            self.problems.append(f"unresolved schema reference '{schema_id}'")
        return descriptor

    def object_schema(self, descriptor: SchemaDescriptor) -> dict[str, Any]:
        config = descriptor.config
        schema: dict[str, Any] = {"title": config.title or descriptor.schema_id}
        if config.description:
            schema["description"] = config.description
        schema["type"] = "object"

        properties: dict[str, Any] = {}
        for spec in descriptor.fields:
            properties[spec.name] = self.field_schema(spec)
        if self.options.include_computed:
            for computed in descriptor.computed_fields:
                properties[computed.name] = self.computed_schema(computed)
        schema["properties"] = properties

        required = [spec.name for spec in descriptor.fields if spec.required]
        if required:
            schema["required"] = required
        schema["additionalProperties"] = not config.forbids_extra
        return schema

    def field_schema(self, spec: FieldSpec) -> dict[str, Any]:
        schema = self.type_schema(spec.type)
        schema.update(self.constraint_keywords(spec.type, spec.constraints))
        if spec.description:
            schema["description"] = spec.description
        if spec.has_default:
            schema["default"] = copy.deepcopy(spec.default)
        if spec.examples:
            schema["examples"] = list(spec.examples)
        return schema

    def computed_schema(self, computed: ComputedField) -> dict[str, Any]:
        schema = self.type_schema(computed.type)
        if computed.description:
            schema["description"] = computed.description
        schema["readOnly"] = True
        schema[COMPUTED_FIELD_KEY] = {"function": computed.label}
        return schema

    def constraint_keywords(self, type_expr: TypeExpr, constraints: Iterable[Constraint]) -> dict[str, Any]:
        category = self._category(type_expr)
        keywords: dict[str, Any] = {}
        for constraint in constraints:
            keywords.update(constraint.json_schema(category))
        return keywords

    def _category(self, type_expr: TypeExpr) -> str | None:
        if isinstance(type_expr, UnionOf):
            for variant in type_expr.variants:
                category = self._category(variant)
                if category is not None:
                    return category
            return None
        if isinstance(type_expr, Custom) and self.types is not None:
            custom_type = self.types.get_optional(type_expr.name)
            if custom_type is not None and custom_type.base is not None:
                return self._category(custom_type.base)
        return value_category(type_expr)

    def type_schema(self, type_expr: TypeExpr) -> dict[str, Any]:
        if isinstance(type_expr, Primitive):
            return dict(_PRIMITIVES[type_expr.kind])
        if isinstance(type_expr, ArrayOf):
            return {"type": "array", "items": self.type_schema(type_expr.items)}
        if isinstance(type_expr, MapOf):
            if not self._string_like(type_expr.keys):
                self.problems.append(
                    f"map key type {type_expr.keys.describe()} cannot be expressed in JSON schema"
                )
            return {"type": "object", "additionalProperties": self.type_schema(type_expr.values)}
        if isinstance(type_expr, UnionOf):
            return {"anyOf": [self.type_schema(variant) for variant in type_expr.variants]}
        if isinstance(type_expr, Ref):
            self.pending.append(type_expr.schema_id)
            return {"$ref": self.dialect.ref_for(type_expr.schema_id)}
        if isinstance(type_expr, Custom):
            return self.custom_schema(type_expr)
        raise SchemaConfigurationError(f"unsupported type expression {type_expr!r}")

    def custom_schema(self, type_expr: Custom) -> dict[str, Any]:
        custom_type = self.types.get_optional(type_expr.name) if self.types is not None else None
        if self.options.custom_type_hook is not None:
            fragment = self.options.custom_type_hook(type_expr.name, custom_type)
            if fragment is not None:
                return copy.deepcopy(fragment)
        if custom_type is None:
            self.problems.append(f"unknown custom type '{type_expr.name}'")
            return {}
        if custom_type.json_schema is not None:
            return copy.deepcopy(custom_type.json_schema)
        if custom_type.base is not None:
            return self.type_schema(custom_type.base)
        self.problems.append(f"custom type '{type_expr.name}' has no JSON schema representation")
        return {}

    def _string_like(self, type_expr: TypeExpr) -> bool:
        if isinstance(type_expr, Primitive):
            return type_expr.kind in (PrimitiveKind.STRING, PrimitiveKind.ANY)
        if isinstance(type_expr, Custom) and self.types is not None:
            custom_type = self.types.get_optional(type_expr.name)
            return custom_type is not None and custom_type.base is not None and self._string_like(custom_type.base)
        return False


def generate(
    descriptor: SchemaDescriptor,
    registry: SchemaRegistry | None = None,
    types: TypeRegistry | None = None,
    options: GenerationOptions | None = None,
) -> dict[str, Any]:
    """Generate a JSON schema document for ``descriptor``.

    Referenced schemas are emitted once each in the definitions table, so
    self-referential and mutually recursive schemas terminate.

    Args:
        descriptor: Root schema
        registry: Registry resolving references (the root resolves itself)
        types: Registry of custom types
        options: Generation options

    Returns:
        JSON schema document

    Raises:
        SchemaConfigurationError: Listing every unresolvable reference,
            custom type or map key type
    """
    generator = _Generator(registry, types, options or GenerationOptions())
    generator.local[descriptor.schema_id] = descriptor
    document = generator.document(generator.object_schema(descriptor))
    logger.debug("Generated JSON schema for '%s'", descriptor.schema_id)
    return document


def generate_type(
    type_expr: TypeExpr,
    constraints: Iterable[Constraint] = (),
    registry: SchemaRegistry | None = None,
    types: TypeRegistry | None = None,
    options: GenerationOptions | None = None,
) -> dict[str, Any]:
    """Generate a JSON schema document for a single type."""
    generator = _Generator(registry, types, options or GenerationOptions())
    body = generator.type_schema(type_expr)
    body.update(generator.constraint_keywords(type_expr, constraints))
    return generator.document(body)


def _object_nodes(document: dict[str, Any]) -> list[dict[str, Any]]:
    nodes = [document]
    for key in DEFINITIONS_KEYS:
        definitions = document.get(key)
        if isinstance(definitions, dict):
            nodes.extend(d for d in definitions.values() if isinstance(d, dict))
    return nodes


def extract_computed_fields(document: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Computed-field properties of the root schema, keyed by name."""
    properties = document.get("properties", {})
    return {
        name: copy.deepcopy(schema)
        for name, schema in properties.items()
        if isinstance(schema, dict) and COMPUTED_FIELD_KEY in schema
    }


def remove_computed_fields(document: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``document`` without computed-field properties (root and definitions)."""
    result = copy.deepcopy(document)
    for node in _object_nodes(result):
        properties = node.get("properties")
        if not isinstance(properties, dict):
            continue
        computed = [name for name, schema in properties.items() if isinstance(schema, dict) and COMPUTED_FIELD_KEY in schema]
        for name in computed:
            del properties[name]
        if "required" in node:
            node["required"] = [name for name in node["required"] if name not in computed]
    return result
