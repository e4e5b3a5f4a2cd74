"""Type expressions understood by the matcher and the JSON schema generator.

A type expression is an immutable tree built from a small set of variants:

- :class:`Primitive` - a scalar kind (string, integer, float, boolean, null, any)
- :class:`ArrayOf` - a homogeneous list
- :class:`MapOf` - a dictionary with typed keys and values
- :class:`UnionOf` - an ordered choice between variants
- :class:`Ref` - a named schema looked up in a :class:`~dataknobs_schema.registry.SchemaRegistry`
- :class:`Custom` - a named custom type looked up in a :class:`~dataknobs_schema.registry.TypeRegistry`

Recursion is only possible through :class:`Ref`, so building a type
expression always terminates.

Example:
    ```python
    from dataknobs_schema import types as t

    tags = t.array(t.string())
    scores = t.map_of(t.string(), t.float_())
    maybe_age = t.optional(t.integer())
    children = t.array(t.ref("Node"))
    ```
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Union


class PrimitiveKind(Enum):
    """Scalar kinds supported by :class:`Primitive`."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    NULL = "null"
    ANY = "any"


@dataclass(frozen=True)
class Primitive:
    """A scalar type."""

    kind: PrimitiveKind

    def describe(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class ArrayOf:
    """A list whose elements all match ``items``."""

    items: TypeExpr

    def describe(self) -> str:
        return f"array<{self.items.describe()}>"


@dataclass(frozen=True)
class MapOf:
    """A dictionary with keys matching ``keys`` and values matching ``values``."""

    keys: TypeExpr
    values: TypeExpr

    def describe(self) -> str:
        return f"map<{self.keys.describe()}, {self.values.describe()}>"


@dataclass(frozen=True)
class UnionOf:
    """An ordered choice; the first matching variant wins."""

    variants: tuple[TypeExpr, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.variants, tuple):
            object.__setattr__(self, "variants", tuple(self.variants))

    def describe(self) -> str:
        return " | ".join(v.describe() for v in self.variants)


@dataclass(frozen=True)
class Ref:
    """A reference to a schema registered under ``schema_id``."""

    schema_id: str

    def describe(self) -> str:
        return self.schema_id


@dataclass(frozen=True)
class Custom:
    """A reference to a custom type registered under ``name``."""

    name: str

    def describe(self) -> str:
        return self.name


TypeExpr = Union[Primitive, ArrayOf, MapOf, UnionOf, Ref, Custom]

_TYPE_EXPR_CLASSES = (Primitive, ArrayOf, MapOf, UnionOf, Ref, Custom)


def is_type_expr(value: object) -> bool:
    """Check whether ``value`` is one of the type expression variants."""
    return isinstance(value, _TYPE_EXPR_CLASSES)


def string() -> Primitive:
    return Primitive(PrimitiveKind.STRING)


def integer() -> Primitive:
    return Primitive(PrimitiveKind.INTEGER)


def float_() -> Primitive:
    return Primitive(PrimitiveKind.FLOAT)


def boolean() -> Primitive:
    return Primitive(PrimitiveKind.BOOLEAN)


def null() -> Primitive:
    return Primitive(PrimitiveKind.NULL)


def any_() -> Primitive:
    return Primitive(PrimitiveKind.ANY)


def array(items: TypeExpr) -> ArrayOf:
    return ArrayOf(items)


def map_of(keys: TypeExpr, values: TypeExpr) -> MapOf:
    return MapOf(keys, values)


def union(*variants: TypeExpr) -> UnionOf:
    if not variants:
        raise ValueError("union requires at least one variant")
    return UnionOf(tuple(variants))


def optional(inner: TypeExpr) -> UnionOf:
    """Shorthand for ``union(inner, null())``."""
    return UnionOf((inner, null()))


def ref(schema_id: str) -> Ref:
    return Ref(schema_id)


def custom(name: str) -> Custom:
    return Custom(name)


_PRIMITIVE_NAMES = {
    "str": PrimitiveKind.STRING,
    "string": PrimitiveKind.STRING,
    "int": PrimitiveKind.INTEGER,
    "integer": PrimitiveKind.INTEGER,
    "float": PrimitiveKind.FLOAT,
    "number": PrimitiveKind.FLOAT,
    "bool": PrimitiveKind.BOOLEAN,
    "boolean": PrimitiveKind.BOOLEAN,
    "null": PrimitiveKind.NULL,
    "none": PrimitiveKind.NULL,
    "any": PrimitiveKind.ANY,
}


def primitive_from_name(name: str) -> Primitive | None:
    """Look up a primitive by one of its common names, e.g. ``"int"``."""
    kind = _PRIMITIVE_NAMES.get(name.strip().lower())
    return Primitive(kind) if kind is not None else None


def iter_type_tree(type_expr: TypeExpr) -> Iterator[TypeExpr]:
    """Yield ``type_expr`` and every nested type expression, depth first.

    Does not follow :class:`Ref` into other schemas.
    """
    yield type_expr
    if isinstance(type_expr, ArrayOf):
        yield from iter_type_tree(type_expr.items)
    elif isinstance(type_expr, MapOf):
        yield from iter_type_tree(type_expr.keys)
        yield from iter_type_tree(type_expr.values)
    elif isinstance(type_expr, UnionOf):
        for variant in type_expr.variants:
            yield from iter_type_tree(variant)
