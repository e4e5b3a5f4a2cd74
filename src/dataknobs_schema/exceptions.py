"""Exception hierarchy for the dataknobs_schema package.

Data problems found while validating a record are *returned* as
:class:`~dataknobs_schema.result.Error` values inside a
:class:`~dataknobs_schema.result.ValidationResult`. The exceptions in this
module are reserved for:

- the throwing convenience API (:class:`SchemaValidationError`)
- configuration problems detected when a descriptor, validator or document
  is built (:class:`SchemaConfigurationError`)
- registry lookups and registrations

Example:
    ```python
    from dataknobs_schema import SchemaError, SchemaValidationError

    try:
        user = validator.validate_or_raise(payload)
    except SchemaValidationError as e:
        for error in e.errors:
            logger.error(error.format())
    except SchemaError as e:
        logger.error(f"Schema problem: {e} ({e.context})")
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from dataknobs_common.exceptions import (
    ConfigurationError,
    DataknobsError,
    NotFoundError,
    OperationError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .result import Error


class SchemaError(DataknobsError):
    """Base exception for the dataknobs_schema package.

    Carries the ``context`` dictionary (and its ``details`` alias) of
    :class:`~dataknobs_common.exceptions.DataknobsError`.
    """

    pass


class SchemaValidationError(SchemaError, ValidationError):
    """Raised by the throwing API when validation fails.

    Wraps the same ordered error list the primary API returns.

    Example:
        ```python
        error = SchemaValidationError([Error(("name",), ErrorCode.MISSING_FIELD, "field is required")])
        str(error)
        # 'name: field is required'
        ```
    """

    def __init__(self, errors: Iterable[Error], schema_id: str | None = None):
        self.errors = list(errors)
        self.schema_id = schema_id
        message = "\n".join(error.format() for error in self.errors) or "validation failed"
        super().__init__(
            message,
            context={
                "schema_id": schema_id,
                "error_count": len(self.errors),
            },
        )


class SchemaConfigurationError(SchemaError, ConfigurationError):
    """Raised when a descriptor, registry or document is misconfigured.

    Collects every problem found in one pass rather than just the first.

    Example:
        ```python
        raise SchemaConfigurationError(
            ["strict mode conflicts with extra='allow'", "field 'age' is required but has a default"],
            context={"schema_id": "User"},
        )
        ```
    """

    def __init__(
        self,
        problems: str | Iterable[str],
        context: dict[str, Any] | None = None,
    ):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("; ".join(self.problems), context=context)


class SchemaNotFoundError(SchemaError, NotFoundError):
    """Raised when a registry has no entry for the requested key."""

    def __init__(self, key: str, registry: str, available: list[str] | None = None):
        self.key = key
        self.available = available or []
        message = f"'{key}' not found in {registry}"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(
            message,
            context={"key": key, "registry": registry, "available_keys": self.available},
        )


class RegistrationError(SchemaError, OperationError):
    """Raised when an item is registered twice without overwrite permission."""

    def __init__(self, key: str, registry: str):
        self.key = key
        super().__init__(
            f"'{key}' already registered in {registry}",
            context={"key": key, "registry": registry},
        )
