"""Validation of standalone values against a type expression.

A :class:`TypeAdapter` wraps a type (plus optional constraints) in a
synthetic one-field schema and reuses the record validator, so single values
get exactly the same matching, coercion and constraint behavior as fields.

Example:
    ```python
    from dataknobs_schema import TypeAdapter, types as t, validate_value
    from dataknobs_schema.constraints import Gte

    ages = TypeAdapter(t.array(t.integer()), name="ages")
    ages.validate(["1", 2]).value
    # [1, 2]
    ages.validate([1, "x"]).error_messages
    # ['ages.1: expected integer, got str']

    validate_value(t.integer(), "12", constraints=[Gte(0)]).value
    # 12
    ```
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from .coercer import CoercionMode
from .config import SchemaConfig
from .constraints import Constraint
from .descriptor import FieldSpec, SchemaDescriptor
from .registry import SchemaRegistry, TypeRegistry
from .result import ValidationResult
from .types import TypeExpr, is_type_expr
from .validator import SchemaValidator

_VALUE_FIELD = "value"


class TypeAdapter:
    """Reusable validator for values of one type.

    Args:
        type_expr: Type to validate against
        constraints: Constraints applied after the type matches
        name: Name prefixed to error paths; unnamed values report paths
            relative to the value itself
        coercion: Default coercion mode
        registry: Registry used to resolve references
        types: Registry of custom types

    Raises:
        SchemaConfigurationError: If the type or constraints are invalid, or a
            reference or custom type cannot be resolved
    """

    def __init__(
        self,
        type_expr: TypeExpr,
        constraints: Iterable[Constraint] = (),
        name: str | None = None,
        coercion: CoercionMode | str = CoercionMode.SAFE,
        registry: SchemaRegistry | None = None,
        types: TypeRegistry | None = None,
    ):
        self.type = type_expr
        self.constraints = tuple(constraints)
        self.name = name
        self.registry = registry
        self.types = types
        self._field = name or _VALUE_FIELD
        self.descriptor = SchemaDescriptor(
            f"TypeAdapter[{type_expr.describe()}]" if is_type_expr(type_expr) else "TypeAdapter",
            fields=[FieldSpec(self._field, type_expr, required=True, constraints=self.constraints)],
            config=SchemaConfig(coercion=coercion),
        )
        self._validator = SchemaValidator(self.descriptor, registry, types)

    def validate(self, value: Any, coercion: CoercionMode | str | None = None) -> ValidationResult:
        """Validate a single value.

        Returns:
            ValidationResult with the (possibly coerced) value or every error found
        """
        result = self._validator.validate({self._field: value}, coercion)
        if result.valid:
            result.value = result.value[self._field]
            return result

        result.value = value
        if self.name is None:
            result.errors = [replace(error, path=error.path[1:]) for error in result.errors]
        return result

    def validate_or_raise(self, value: Any, coercion: CoercionMode | str | None = None) -> Any:
        """Validate a single value and return it.

        Raises:
            SchemaValidationError: If validation fails
        """
        return self.validate(value, coercion).unwrap(self.name)

    def json_schema(self, **options: Any) -> dict[str, Any]:
        """JSON schema document for this type.

        Args:
            **options: Fields of :class:`~dataknobs_schema.json_schema.GenerationOptions`
        """
        from .json_schema.generator import GenerationOptions, generate_type

        return generate_type(
            self.type,
            constraints=self.constraints,
            registry=self.registry,
            types=self.types,
            options=GenerationOptions(**options),
        )


def validate_value(
    type_expr: TypeExpr,
    value: Any,
    mode: CoercionMode | str | None = None,
    constraints: Iterable[Constraint] = (),
    name: str | None = None,
    registry: SchemaRegistry | None = None,
    types: TypeRegistry | None = None,
) -> ValidationResult:
    """Validate one value against a type without keeping an adapter around."""
    adapter = TypeAdapter(type_expr, constraints, name=name, registry=registry, types=types)
    return adapter.validate(value, mode)
