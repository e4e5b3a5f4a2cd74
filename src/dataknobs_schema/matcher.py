"""Structural matching of values against type expressions.

:class:`TypeMatcher` walks a type expression and a value together, coercing
primitives through :class:`~dataknobs_schema.coercer.Coercer` and collecting
every failure with its full path. Nested records reached through
:class:`~dataknobs_schema.types.Ref` are handed back to a record validator
supplied by :class:`~dataknobs_schema.validator.SchemaValidator`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from .coercer import Coercer, CoercionMode
from .exceptions import SchemaConfigurationError
from .result import Error, ErrorCode, Path, ValidationResult, normalize_errors
from .types import ArrayOf, Custom, MapOf, Primitive, Ref, TypeExpr, UnionOf

if TYPE_CHECKING:
    from .descriptor import SchemaDescriptor
    from .registry import CustomType, SchemaRegistry, TypeRegistry

logger = logging.getLogger(__name__)

RecordValidator = Callable[["SchemaDescriptor", Any, CoercionMode, Path], ValidationResult]


def describe_value(value: Any) -> str:
    """Short type name of a value for error messages."""
    if value is None:
        return "null"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def run_callable(func: Callable[[Any], Any], value: Any, code: ErrorCode, path: Path) -> ValidationResult:
    """Call a user function and normalize its outcome into a ValidationResult.

    The function may return a ValidationResult or a plain value, or raise
    ``ValueError``/``TypeError``, whose message becomes the error. Any other
    exception is reported as an error naming the function. Errors are located
    under ``path``.
    """
    try:
        outcome = func(value)
    except (ValueError, TypeError) as e:
        return ValidationResult(False, value, normalize_errors(str(e) or type(e).__name__, code, path))
    except Exception as e:
        label = getattr(func, "__qualname__", None) or repr(func)
        logger.warning("Validator %s raised %s", label, type(e).__name__)
        message = f"validator {label} raised {type(e).__name__}: {e}"
        return ValidationResult(False, value, [Error(path, code, message, context={"validator": label})])
    if isinstance(outcome, ValidationResult):
        if outcome.valid:
            return ValidationResult.success(outcome.value, list(outcome.warnings))
        return ValidationResult(
            False,
            value,
            normalize_errors(outcome.errors, code, path),
            list(outcome.warnings),
        )
    return ValidationResult.success(outcome)


class TypeMatcher:
    """Matches values against type expressions.

    Args:
        registry: Schema registry used to resolve references
        types: Registry of custom types
        record_validator: Callback validating a nested record against a descriptor
        coercer: Primitive coercer
    """

    def __init__(
        self,
        registry: SchemaRegistry | None = None,
        types: TypeRegistry | None = None,
        record_validator: RecordValidator | None = None,
        coercer: Coercer | None = None,
    ):
        self.registry = registry
        self.types = types
        self.record_validator = record_validator
        self.coercer = coercer or Coercer()

    def match(
        self,
        type_expr: TypeExpr,
        value: Any,
        mode: CoercionMode = CoercionMode.NONE,
        path: Path = (),
    ) -> ValidationResult:
        """Match ``value`` against ``type_expr``.

        Args:
            type_expr: Declared type
            value: Value to check
            mode: Coercion strictness
            path: Location of ``value``, prefixed to every error

        Returns:
            ValidationResult with the (possibly coerced) value or all errors found
        """
        if isinstance(type_expr, Primitive):
            return self._match_primitive(type_expr, value, mode, path)
        if isinstance(type_expr, ArrayOf):
            return self._match_array(type_expr, value, mode, path)
        if isinstance(type_expr, MapOf):
            return self._match_map(type_expr, value, mode, path)
        if isinstance(type_expr, UnionOf):
            return self._match_union(type_expr, value, mode, path)
        if isinstance(type_expr, Custom):
            return self._match_custom(type_expr, value, mode, path)
        if isinstance(type_expr, Ref):
            return self._match_ref(type_expr, value, mode, path)
        raise SchemaConfigurationError(f"unsupported type expression {type_expr!r}")

    def _mismatch(self, value: Any, expected: str, path: Path) -> ValidationResult:
        return ValidationResult(
            False,
            value,
            [Error(path, ErrorCode.TYPE_MISMATCH, f"expected {expected}, got {describe_value(value)}")],
        )

    def _match_primitive(
        self, type_expr: Primitive, value: Any, mode: CoercionMode, path: Path
    ) -> ValidationResult:
        result = self.coercer.coerce(value, type_expr.kind, mode)
        if result.valid:
            return result
        return ValidationResult(
            False,
            value,
            [error.with_prefix(path) for error in result.errors],
            result.warnings,
        )

    def _match_array(self, type_expr: ArrayOf, value: Any, mode: CoercionMode, path: Path) -> ValidationResult:
        if not isinstance(value, (list, tuple)):
            return self._mismatch(value, "array", path)

        result = ValidationResult.success([])
        items = []
        for index, item in enumerate(value):
            item_result = self.match(type_expr.items, item, mode, (*path, index))
            result.errors.extend(item_result.errors)
            result.warnings.extend(item_result.warnings)
            items.append(item_result.value)

        if result.errors:
            result.valid = False
            result.value = value
        else:
            result.value = items
        return result

    def _match_map(self, type_expr: MapOf, value: Any, mode: CoercionMode, path: Path) -> ValidationResult:
        if not isinstance(value, Mapping):
            return self._mismatch(value, "object", path)

        result = ValidationResult.success({})
        entries = {}
        for key, item in value.items():
            key_path = (*path, key)
            # keys are never coerced
            key_result = self.match(type_expr.keys, key, CoercionMode.NONE, key_path)
            item_result = self.match(type_expr.values, item, mode, key_path)
            result.errors.extend(key_result.errors)
            result.errors.extend(item_result.errors)
            result.warnings.extend(item_result.warnings)
            entries[key] = item_result.value

        if result.errors:
            result.valid = False
            result.value = value
        else:
            result.value = entries
        return result

    def _match_union(self, type_expr: UnionOf, value: Any, mode: CoercionMode, path: Path) -> ValidationResult:
        passes = [CoercionMode.NONE] if mode is CoercionMode.NONE else [CoercionMode.NONE, mode]
        attempts: list[tuple[TypeExpr, ValidationResult]] = []
        for current in passes:
            attempts = []
            for variant in type_expr.variants:
                variant_result = self.match(variant, value, current, path)
                if variant_result.valid:
                    return variant_result
                attempts.append((variant, variant_result))

        variants = [
            {
                "type": variant.describe(),
                "errors": [error.to_dict() for error in variant_result.errors],
            }
            for variant, variant_result in attempts
        ]
        error = Error(
            path,
            ErrorCode.UNION_NO_VARIANT_MATCHED,
            f"value of type {describe_value(value)} did not match any of: {type_expr.describe()}",
            context={"variants": variants},
        )
        return ValidationResult(False, value, [error])

    def _custom_type(self, name: str) -> CustomType:
        custom_type = self.types.get_optional(name) if self.types is not None else None
        if custom_type is None:
            raise SchemaConfigurationError(f"unknown custom type '{name}'", context={"type": name})
        return custom_type

    def _match_custom(self, type_expr: Custom, value: Any, mode: CoercionMode, path: Path) -> ValidationResult:
        custom_type = self._custom_type(type_expr.name)
        warnings: list[str] = []
        if custom_type.base is not None:
            base_result = self.match(custom_type.base, value, mode, path)
            if not base_result.valid:
                return base_result
            value = base_result.value
            warnings = base_result.warnings

        result = run_callable(custom_type.validate, value, ErrorCode.TYPE_MISMATCH, path)
        result.warnings = warnings + result.warnings
        return result

    def _match_ref(self, type_expr: Ref, value: Any, mode: CoercionMode, path: Path) -> ValidationResult:
        descriptor = self.registry.get_optional(type_expr.schema_id) if self.registry is not None else None
        if descriptor is None:
            raise SchemaConfigurationError(
                f"unresolved schema reference '{type_expr.schema_id}'",
                context={"schema_id": type_expr.schema_id},
            )
        if self.record_validator is None:
            raise SchemaConfigurationError(
                f"no record validator available for reference '{type_expr.schema_id}'"
            )
        return self.record_validator(descriptor, value, mode, path)
