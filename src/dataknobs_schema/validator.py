"""Record validation: the field stage, extra-key policy and post-field stages.

:class:`SchemaValidator` is the primary entry point. It is built once per
descriptor (checking that every reference and custom type resolves) and can
then validate any number of records, concurrently if desired.

Example:
    ```python
    from dataknobs_schema import SchemaBuilder, SchemaValidator, types as t

    user = (
        SchemaBuilder("User")
        .field("name", t.string())
        .field("age", t.integer(), default=0)
        .build()
    )
    validator = SchemaValidator(user)

    validator.validate({"name": "Ada"}).value
    # {'name': 'Ada', 'age': 0}

    result = validator.validate({"age": "oops"})
    result.error_messages
    # ['name: field is required', 'age: expected integer, got str']
    ```
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from .coercer import CoercionMode
from .config import ExtraPolicy
from .descriptor import FieldSpec, SchemaDescriptor
from .exceptions import SchemaConfigurationError
from .matcher import TypeMatcher, describe_value
from .pipeline import ComputedFieldEngine, ModelValidatorPipeline
from .registry import SchemaRegistry, TypeRegistry
from .result import Error, ErrorCode, Path, ValidationResult
from .types import Custom, Ref, iter_type_tree

logger = logging.getLogger(__name__)


class FieldValidator:
    """Validates one present field value: type match, then every constraint.

    Constraint failures are collected, not short-circuited. Constraints are
    skipped for ``None`` values and for custom types without a ``base``.
    """

    def __init__(self, matcher: TypeMatcher):
        self.matcher = matcher

    def validate(self, spec: FieldSpec, value: Any, mode: CoercionMode, path: Path) -> ValidationResult:
        result = self.matcher.match(spec.type, value, mode, path)
        if not result.valid or not spec.constraints or result.value is None:
            return result
        if isinstance(spec.type, Custom) and not self._has_base(spec.type):
            return result

        for constraint in spec.constraints:
            checked = constraint.check(result.value)
            if not checked.valid:
                result.errors.extend(error.with_prefix(path) for error in checked.errors)
        if result.errors:
            result.valid = False
        return result

    def _has_base(self, type_expr: Custom) -> bool:
        types = self.matcher.types
        custom_type = types.get_optional(type_expr.name) if types is not None else None
        return custom_type is not None and custom_type.base is not None


class SchemaValidator:
    """Validates records against a descriptor.

    Args:
        descriptor: Schema to validate against
        registry: Registry used to resolve :class:`~dataknobs_schema.types.Ref` types
        types: Registry of custom types

    Raises:
        SchemaConfigurationError: If any reference or custom type reachable
            from ``descriptor`` cannot be resolved
    """

    def __init__(
        self,
        descriptor: SchemaDescriptor,
        registry: SchemaRegistry | None = None,
        types: TypeRegistry | None = None,
    ):
        self.descriptor = descriptor
        self.registry = registry
        self.types = types
        self._scope = self._resolve_scope()
        self.matcher = TypeMatcher(self._scope, types, record_validator=self._validate_record)
        self.field_validator = FieldValidator(self.matcher)
        self._stages = {
            schema.schema_id: (
                ModelValidatorPipeline(schema.model_validators),
                ComputedFieldEngine(schema.computed_fields, self.matcher),
            )
            for schema in self._scope
        }

    def _resolve_scope(self) -> SchemaRegistry:
        """Collect every schema reachable from the descriptor, reporting all gaps."""
        scope = SchemaRegistry(f"scope:{self.descriptor.schema_id}")
        scope.register_schema(self.descriptor)
        problems: list[str] = []
        pending = [self.descriptor]
        checked_types: set[str] = set()
        unresolved: set[str] = set()

        while pending:
            schema = pending.pop(0)
            type_exprs = list(schema.iter_types())
            while type_exprs:
                type_expr = type_exprs.pop(0)
                if isinstance(type_expr, Ref):
                    if scope.has(type_expr.schema_id) or type_expr.schema_id in unresolved:
                        continue
                    target = self.registry.get_optional(type_expr.schema_id) if self.registry is not None else None
                    if target is None:
                        problems.append(
                            f"unresolved schema reference '{type_expr.schema_id}' in '{schema.schema_id}'"
                        )
                        unresolved.add(type_expr.schema_id)
                        continue
                    scope.register_schema(target)
                    pending.append(target)
                elif isinstance(type_expr, Custom) and type_expr.name not in checked_types:
                    checked_types.add(type_expr.name)
                    custom_type = self.types.get_optional(type_expr.name) if self.types is not None else None
                    if custom_type is None:
                        problems.append(f"unknown custom type '{type_expr.name}' in '{schema.schema_id}'")
                    elif custom_type.base is not None:
                        type_exprs.extend(iter_type_tree(custom_type.base))

        if problems:
            raise SchemaConfigurationError(problems, context={"schema_id": self.descriptor.schema_id})
        logger.debug("Resolved %d schema(s) for '%s'", scope.count(), self.descriptor.schema_id)
        return scope

    @property
    def schema_id(self) -> str:
        return self.descriptor.schema_id

    def validate(self, data: Any, coercion: CoercionMode | str | None = None) -> ValidationResult:
        """Validate a record.

        Args:
            data: Record to validate
            coercion: Coercion mode for this call; defaults to the schema's config

        Returns:
            ValidationResult with the validated record or every error found
        """
        mode = CoercionMode.parse(coercion) if coercion is not None else self.descriptor.config.coercion
        result = self._validate_record(self.descriptor, data, mode, ())
        logger.debug(
            "Validated record against '%s': valid=%s errors=%d",
            self.schema_id,
            result.valid,
            len(result.errors),
        )
        return result

    def validate_or_raise(self, data: Any, coercion: CoercionMode | str | None = None) -> dict[str, Any]:
        """Validate a record and return the value.

        Raises:
            SchemaValidationError: If validation fails, with the full error list
        """
        return self.validate(data, coercion).unwrap(self.schema_id)

    def validate_many(
        self,
        records: Iterable[Any],
        coercion: CoercionMode | str | None = None,
        max_workers: int | None = None,
    ) -> list[ValidationResult]:
        """Validate multiple records.

        Args:
            records: Records to validate
            coercion: Coercion mode for every record
            max_workers: When greater than 1, validate on a thread pool

        Returns:
            List of ValidationResults; result *i* belongs to record *i*
        """
        records = list(records)
        if not max_workers or max_workers <= 1 or len(records) <= 1:
            return [self.validate(record, coercion) for record in records]
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(lambda record: self.validate(record, coercion), records))

    def _validate_record(
        self,
        descriptor: SchemaDescriptor,
        data: Any,
        mode: CoercionMode,
        path: Path,
    ) -> ValidationResult:
        if not isinstance(data, Mapping):
            error = Error(
                path,
                ErrorCode.TYPE_MISMATCH,
                f"expected {descriptor.schema_id} object, got {describe_value(data)}",
            )
            return ValidationResult(False, data, [error])

        result = ValidationResult.success({})
        record: dict[str, Any] = {}

        for spec in descriptor.fields:
            field_path = (*path, spec.name)
            if spec.name not in data:
                if spec.required:
                    result.add_error(Error(field_path, ErrorCode.MISSING_FIELD, "field is required"))
                elif spec.has_default:
                    record[spec.name] = copy.deepcopy(spec.default)
                continue

            field_result = self.field_validator.validate(spec, data[spec.name], mode, field_path)
            result.warnings.extend(field_result.warnings)
            if field_result.valid:
                record[spec.name] = field_result.value
            else:
                result.errors.extend(field_result.errors)
                result.valid = False

        config = descriptor.config
        declared = set(descriptor.field_names)
        for key, value in data.items():
            if key in declared:
                continue
            if config.forbids_extra:
                result.add_error(Error((*path, key), ErrorCode.UNKNOWN_FIELD, "unknown field"))
            elif config.extra is ExtraPolicy.ALLOW:
                record[key] = value

        if not result.valid:
            result.value = data
            return result

        pipeline, engine = self._stages_for(descriptor)
        modeled = pipeline.apply(record, path)
        if not modeled.valid:
            modeled.warnings = result.warnings + modeled.warnings
            return modeled

        computed = engine.apply(modeled.value, path)
        computed.warnings = result.warnings + modeled.warnings + computed.warnings
        return computed

    def _stages_for(self, descriptor: SchemaDescriptor) -> tuple[ModelValidatorPipeline, ComputedFieldEngine]:
        stages = self._stages.get(descriptor.schema_id)
        if stages is None:
            stages = (
                ModelValidatorPipeline(descriptor.model_validators),
                ComputedFieldEngine(descriptor.computed_fields, self.matcher),
            )
        return stages


def validate(
    descriptor: SchemaDescriptor,
    data: Any,
    registry: SchemaRegistry | None = None,
    types: TypeRegistry | None = None,
    coercion: CoercionMode | str | None = None,
) -> ValidationResult:
    """Validate one record without keeping a validator around."""
    return SchemaValidator(descriptor, registry, types).validate(data, coercion)
