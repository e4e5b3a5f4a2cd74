"""Post-field stages: model validators and computed fields.

Both stages run only once every declared field has validated. Each stage is
strictly sequential and halts at its first failure; nothing raised by user
code escapes, it is reported as an :class:`~dataknobs_schema.result.Error`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .coercer import CoercionMode
from .descriptor import ComputedField, ModelValidator
from .matcher import TypeMatcher, describe_value
from .result import Error, ErrorCode, Path, ValidationResult, normalize_errors

logger = logging.getLogger(__name__)


def _failure(record: Any, errors: list[Error], warnings: list[str]) -> ValidationResult:
    return ValidationResult(valid=False, value=record, errors=errors, warnings=warnings)


class ModelValidatorPipeline:
    """Runs model validators in order, each consuming the previous output.

    Example:
        ```python
        def passwords_match(record):
            if record["password"] != record["confirm"]:
                raise ValueError("passwords do not match")
            return record

        pipeline = ModelValidatorPipeline([ModelValidator(passwords_match)])
        result = pipeline.apply({"password": "a", "confirm": "b"})
        result.errors[0].code
        # <ErrorCode.MODEL_VALIDATION_FAILED: 'model_validation_failed'>
        ```
    """

    def __init__(self, validators: Iterable[ModelValidator]):
        self.validators = tuple(validators)

    def apply(self, record: dict[str, Any], path: Path = ()) -> ValidationResult:
        """Run every validator against ``record``.

        Args:
            record: Record produced by the field stage
            path: Location of the record, prefixed to every error

        Returns:
            ValidationResult with the final record, or the first failure
        """
        warnings: list[str] = []
        for validator in self.validators:
            code = ErrorCode.MODEL_VALIDATION_FAILED
            context = {"validator": validator.label}
            try:
                outcome = validator.func(record)
            except (ValueError, TypeError) as e:
                errors = normalize_errors(str(e) or type(e).__name__, code, path)
                return _failure(record, _with_context(errors, context), warnings)
            except Exception as e:
                logger.warning("Model validator %s raised %s", validator.label, type(e).__name__)
                message = f"model validator {validator.label} raised {type(e).__name__}: {e}"
                return _failure(record, [Error(path, code, message, context=context)], warnings)

            if isinstance(outcome, ValidationResult):
                warnings.extend(outcome.warnings)
                if not outcome.valid:
                    errors = [e.with_code(code) for e in normalize_errors(outcome.errors, code, path)]
                    return _failure(record, _with_context(errors, context), warnings)
                outcome = outcome.value

            if not isinstance(outcome, Mapping):
                message = (
                    f"model validator {validator.label} returned {describe_value(outcome)}, "
                    "expected a record"
                )
                return _failure(record, [Error(path, code, message, context=context)], warnings)
            record = dict(outcome)

        return ValidationResult.success(record, warnings)


def _with_context(errors: list[Error], context: dict[str, Any]) -> list[Error]:
    return [Error(e.path, e.code, e.message, context={**e.context, **context}) for e in errors]


class ComputedFieldEngine:
    """Derives computed fields and re-validates them against their declared type.

    Args:
        computed_fields: Computed fields in declaration order
        matcher: Matcher used to re-validate computed values (mode ``none``)
    """

    def __init__(self, computed_fields: Iterable[ComputedField], matcher: TypeMatcher):
        self.computed_fields = tuple(computed_fields)
        self.matcher = matcher

    def apply(self, record: dict[str, Any], path: Path = ()) -> ValidationResult:
        """Compute every field in order, inserting or overwriting its value.

        Args:
            record: Record produced by the model validator stage
            path: Location of the record

        Returns:
            ValidationResult with the extended record, or the first failure
        """
        record = dict(record)
        warnings: list[str] = []
        for computed in self.computed_fields:
            field_path = (*path, computed.name)
            context = {"computed_field": computed.name, "function": computed.label}
            try:
                outcome = computed.func(record)
            except Exception as e:
                message = f"computing '{computed.name}' raised {type(e).__name__}: {e}"
                return _failure(
                    record,
                    [Error(field_path, ErrorCode.COMPUTED_FIELD_FAILED, message, context=context)],
                    warnings,
                )

            if isinstance(outcome, ValidationResult):
                warnings.extend(outcome.warnings)
                if not outcome.valid:
                    code = ErrorCode.COMPUTED_FIELD_FAILED
                    errors = [e.with_code(code) for e in normalize_errors(outcome.errors, code, field_path)]
                    return _failure(record, _with_context(errors, context), warnings)
                outcome = outcome.value

            checked = self.matcher.match(computed.type, outcome, CoercionMode.NONE, field_path)
            if not checked.valid:
                message = (
                    f"computed field '{computed.name}' returned {describe_value(outcome)}, "
                    f"expected {computed.type.describe()}"
                )
                error = Error(
                    field_path,
                    ErrorCode.COMPUTED_FIELD_TYPE_MISMATCH,
                    message,
                    context={**context, "errors": [e.to_dict() for e in checked.errors]},
                )
                return _failure(record, [error], warnings)

            warnings.extend(checked.warnings)
            record[computed.name] = checked.value

        return ValidationResult.success(record, warnings)
