"""Immutable schema descriptors.

A :class:`SchemaDescriptor` is built once (by :class:`~dataknobs_schema.builder.SchemaBuilder`,
:class:`~dataknobs_schema.factory.SchemaFactory`, or directly) and then shared
read-only by any number of concurrent validations. Construction runs an
invariant pass that reports every problem at once.

Example:
    ```python
    from dataknobs_schema import FieldSpec, SchemaDescriptor, types as t
    from dataknobs_schema.constraints import MinLength

    user = SchemaDescriptor(
        "User",
        fields=[
            FieldSpec("name", t.string(), constraints=[MinLength(1)]),
            FieldSpec("age", t.integer(), default=0),
        ],
    )
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from .config import SchemaConfig
from .constraints import ARRAY, NUMBER, OBJECT, STRING, Constraint
from .exceptions import SchemaConfigurationError
from .types import (
    ArrayOf,
    Custom,
    MapOf,
    Primitive,
    PrimitiveKind,
    Ref,
    TypeExpr,
    is_type_expr,
    iter_type_tree,
)


class _Missing:
    """Sentinel for "no default declared"."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Missing:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Missing:
        return self


MISSING: Any = _Missing()


def value_category(type_expr: TypeExpr) -> str | None:
    """Constraint category of a type, or None when it cannot be known statically."""
    if isinstance(type_expr, Primitive):
        if type_expr.kind is PrimitiveKind.STRING:
            return STRING
        if type_expr.kind in (PrimitiveKind.INTEGER, PrimitiveKind.FLOAT):
            return NUMBER
        return None
    if isinstance(type_expr, ArrayOf):
        return ARRAY
    if isinstance(type_expr, MapOf):
        return OBJECT
    return None


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of one named field.

    Attributes:
        name: Key of the field in input and output records
        type: Declared type expression
        required: Whether the key must be present; defaults to True unless a
            default is given
        default: Value used when the key is absent (``MISSING`` for none)
        constraints: Constraints applied in order after the type matches
        description: Human-readable description
        examples: Example values for generated documents
    """

    name: str
    type: TypeExpr
    required: bool | None = None
    default: Any = MISSING
    constraints: tuple[Constraint, ...] = ()
    description: str | None = None
    examples: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if self.required is None:
            object.__setattr__(self, "required", self.default is MISSING)
        object.__setattr__(self, "constraints", tuple(self.constraints))
        object.__setattr__(self, "examples", tuple(self.examples))

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def problems(self) -> list[str]:
        """Invariant violations of this field declaration."""
        problems = []
        if not isinstance(self.name, str) or not self.name:
            problems.append(f"field name must be a non-empty string, got {self.name!r}")
        if not is_type_expr(self.type):
            problems.append(f"field '{self.name}' has invalid type {self.type!r}")
            return problems
        if self.required and self.has_default:
            problems.append(f"field '{self.name}' is required but declares a default")

        category = value_category(self.type)
        for constraint in self.constraints:
            if not isinstance(constraint, Constraint):
                problems.append(f"field '{self.name}' has invalid constraint {constraint!r}")
            elif category is not None and not constraint.applies_to(category):
                problems.append(
                    f"constraint {constraint.kind} cannot apply to field '{self.name}' "
                    f"of type {self.type.describe()}"
                )
        return problems


def _callable_label(func: Callable[..., Any], name: str | None) -> str:
    if name:
        return name
    return getattr(func, "__qualname__", None) or getattr(func, "__name__", None) or repr(func)


@dataclass(frozen=True)
class ModelValidator:
    """A cross-field check or transform run after field validation.

    ``func`` receives the validated record and returns either a
    :class:`~dataknobs_schema.result.ValidationResult` or the (possibly new)
    record; raising ``ValueError`` or ``TypeError`` signals failure.
    """

    func: Callable[[dict[str, Any]], Any]
    name: str | None = None

    @property
    def label(self) -> str:
        return _callable_label(self.func, self.name)


@dataclass(frozen=True)
class ComputedField:
    """A field derived from the validated record.

    Attributes:
        name: Output key of the computed value
        type: Declared result type; the computed value is re-validated against it
        func: Receives the record and returns the value (or a ValidationResult)
        description: Human-readable description
        function_name: Optional stable identifier for the function
    """

    name: str
    type: TypeExpr
    func: Callable[[dict[str, Any]], Any]
    description: str | None = None
    function_name: str | None = None

    @property
    def label(self) -> str:
        return _callable_label(self.func, self.function_name)


@dataclass(frozen=True)
class SchemaDescriptor:
    """Immutable description of a record schema.

    Raises:
        SchemaConfigurationError: On construction, listing every invariant
            violation found
    """

    schema_id: str
    fields: tuple[FieldSpec, ...] = ()
    model_validators: tuple[ModelValidator, ...] = ()
    computed_fields: tuple[ComputedField, ...] = ()
    config: SchemaConfig = field(default_factory=SchemaConfig)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(
            self,
            "model_validators",
            tuple(
                v if isinstance(v, ModelValidator) else ModelValidator(v)
                for v in self.model_validators
            ),
        )
        object.__setattr__(self, "computed_fields", tuple(self.computed_fields))
        problems = self.problems()
        if problems:
            raise SchemaConfigurationError(problems, context={"schema_id": self.schema_id})

    def problems(self) -> list[str]:
        """Run the invariant pass and return every problem found."""
        problems: list[str] = []
        if not isinstance(self.schema_id, str) or not self.schema_id:
            problems.append(f"schema id must be a non-empty string, got {self.schema_id!r}")
        if not isinstance(self.config, SchemaConfig):
            problems.append(f"config must be a SchemaConfig, got {type(self.config).__name__}")
        else:
            problems.extend(self.config.check())

        seen: set[str] = set()
        for spec in self.fields:
            if not isinstance(spec, FieldSpec):
                problems.append(f"invalid field declaration {spec!r}")
                continue
            if spec.name in seen:
                problems.append(f"duplicate field '{spec.name}'")
            seen.add(spec.name)
            problems.extend(spec.problems())

        for validator in self.model_validators:
            if not callable(validator.func):
                problems.append(f"model validator {validator.label} is not callable")

        computed_seen: set[str] = set()
        for computed in self.computed_fields:
            if not isinstance(computed, ComputedField):
                problems.append(f"invalid computed field declaration {computed!r}")
                continue
            if computed.name in computed_seen:
                problems.append(f"duplicate computed field '{computed.name}'")
            computed_seen.add(computed.name)
            if not callable(computed.func):
                problems.append(f"computed field '{computed.name}' function is not callable")
            if not is_type_expr(computed.type):
                problems.append(f"computed field '{computed.name}' has invalid type {computed.type!r}")
        return problems

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    def get_field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def iter_types(self) -> Iterator[TypeExpr]:
        """Every type expression declared by fields and computed fields."""
        for spec in self.fields:
            yield from iter_type_tree(spec.type)
        for computed in self.computed_fields:
            yield from iter_type_tree(computed.type)

    def referenced_schema_ids(self) -> list[str]:
        """Schema ids referenced directly by this descriptor, in first-use order."""
        return _unique(t.schema_id for t in self.iter_types() if isinstance(t, Ref))

    def custom_type_names(self) -> list[str]:
        """Custom type names used directly by this descriptor, in first-use order."""
        return _unique(t.name for t in self.iter_types() if isinstance(t, Custom))

    def summary(self) -> dict[str, Any]:
        """Dictionary summary for logging and debugging."""
        return {
            "schema_id": self.schema_id,
            "config": self.config.summary(),
            "fields": {
                spec.name: {
                    "type": spec.type.describe(),
                    "required": spec.required,
                    "default": None if spec.default is MISSING else spec.default,
                    "constraints": [c.kind for c in spec.constraints],
                }
                for spec in self.fields
            },
            "model_validators": [v.label for v in self.model_validators],
            "computed_fields": [c.name for c in self.computed_fields],
        }


def _unique(items: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return list(seen)
