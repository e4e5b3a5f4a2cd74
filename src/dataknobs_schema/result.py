"""Validation result types with consistent, predictable behavior.

Every validation operation in this package returns a :class:`ValidationResult`.
Failures carry an ordered list of path-qualified :class:`Error` values rather
than raising, so independent problems can be aggregated in one pass.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

from .exceptions import SchemaValidationError

PathElement = Union[str, int]
Path = tuple[PathElement, ...]


class ErrorCode(Enum):
    """Codes identifying the kind of validation failure."""

    MISSING_FIELD = "missing_field"
    TYPE_MISMATCH = "type_mismatch"
    CONSTRAINT_VIOLATION = "constraint_violation"
    UNION_NO_VARIANT_MATCHED = "union_no_variant_matched"
    UNKNOWN_FIELD = "unknown_field"
    MODEL_VALIDATION_FAILED = "model_validation_failed"
    COMPUTED_FIELD_FAILED = "computed_field_failed"
    COMPUTED_FIELD_TYPE_MISMATCH = "computed_field_type_mismatch"


@dataclass(frozen=True)
class Error:
    """A single validation failure.

    Attributes:
        path: Location of the failing value, as field names and list indices
        code: Kind of failure
        message: Human-readable description
        context: Diagnostic detail (constraint kind, union variant errors, ...)
    """

    path: Path
    code: ErrorCode
    message: str
    context: dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.path, tuple):
            object.__setattr__(self, "path", tuple(_as_path(self.path)))

    def with_prefix(self, prefix: Iterable[PathElement]) -> Error:
        """Return a copy of this error located under ``prefix``."""
        prefix = tuple(prefix)
        if not prefix:
            return self
        return replace(self, path=prefix + self.path)

    def with_code(self, code: ErrorCode) -> Error:
        """Return a copy of this error re-labelled with ``code``."""
        if code is self.code:
            return self
        context = dict(self.context)
        context.setdefault("reason_code", self.code.value)
        return replace(self, code=code, context=context)

    def format(self) -> str:
        """Format as ``"user.email: message"`` (just the message at the root)."""
        if not self.path:
            return self.message
        return f"{'.'.join(str(p) for p in self.path)}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data: dict[str, Any] = {
            "path": list(self.path),
            "code": self.code.value,
            "message": self.message,
        }
        if self.context:
            data["context"] = self.context
        return data


def _as_path(path: Any) -> list[PathElement]:
    if path is None:
        return []
    if isinstance(path, (str, int)):
        return [path]
    return list(path)


def normalize_errors(
    reasons: Any,
    code: ErrorCode,
    path: Iterable[PathElement] = (),
) -> list[Error]:
    """Normalize a failure reason into a list of errors.

    Args:
        reasons: A string, an :class:`Error`, or an iterable of either
        code: Code given to string reasons
        path: Prefix applied to every resulting error

    Returns:
        List of errors, never empty
    """
    prefix = tuple(path)
    if reasons is None:
        items: list[Any] = []
    elif isinstance(reasons, (str, Error)):
        items = [reasons]
    else:
        items = list(reasons)

    errors = []
    for reason in items:
        if isinstance(reason, Error):
            errors.append(reason.with_prefix(prefix))
        else:
            errors.append(Error(prefix, code, str(reason)))

    if not errors:
        errors.append(Error(prefix, code, "validation failed"))
    return errors


@dataclass
class ValidationResult:
    """Unified result object for all validation operations.

    Attributes:
        valid: Whether validation succeeded
        value: The (possibly coerced) value, or the rejected input on failure
        errors: Ordered, path-qualified errors
        warnings: Non-fatal diagnostics
    """

    valid: bool
    value: Any
    errors: list[Error] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        """Allow 'if result:' usage to check validity."""
        return self.valid

    def merge(self, other: ValidationResult) -> ValidationResult:
        """Combine results for composite validation.

        Args:
            other: Another ValidationResult to merge with this one

        Returns:
            New ValidationResult with combined state
        """
        return ValidationResult(
            valid=self.valid and other.valid,
            value=other.value if other.valid else self.value,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )

    def add_error(self, error: Error) -> ValidationResult:
        """Add an error and mark as invalid (fluent API)."""
        self.errors.append(error)
        self.valid = False
        return self

    def add_warning(self, warning: str) -> ValidationResult:
        """Add a warning without affecting validity (fluent API)."""
        self.warnings.append(warning)
        return self

    def unwrap(self, schema_id: str | None = None) -> Any:
        """Return the value, or raise with the full error list.

        Raises:
            SchemaValidationError: If the result is a failure
        """
        if not self.valid:
            raise SchemaValidationError(self.errors, schema_id=schema_id)
        return self.value

    @property
    def error_messages(self) -> list[str]:
        """Formatted error strings, in order."""
        return [error.format() for error in self.errors]

    @classmethod
    def success(cls, value: Any, warnings: list[str] | None = None) -> ValidationResult:
        """Create a successful validation result.

        Args:
            value: The validated value
            warnings: Optional list of warnings

        Returns:
            Successful ValidationResult
        """
        return cls(valid=True, value=value, errors=[], warnings=warnings or [])

    @classmethod
    def failure(
        cls,
        value: Any,
        errors: str | Error | Iterable[str | Error],
        warnings: list[str] | None = None,
        code: ErrorCode = ErrorCode.TYPE_MISMATCH,
    ) -> ValidationResult:
        """Create a failed validation result.

        Args:
            value: The value that failed validation
            errors: Error reason(s); strings become errors at the root path
            warnings: Optional list of warnings
            code: Code assigned to string reasons

        Returns:
            Failed ValidationResult
        """
        return cls(
            valid=False,
            value=value,
            errors=normalize_errors(errors, code),
            warnings=warnings or [],
        )
