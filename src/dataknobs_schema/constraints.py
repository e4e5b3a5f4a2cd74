"""Constraint implementations with a consistent API.

Constraints run only after a value has structurally matched its declared
type. Each constraint reports failures as ``constraint_violation`` errors
whose ``context["constraint"]`` names the constraint kind, and knows which
JSON schema keywords express it.
"""

from __future__ import annotations

import ipaddress
import math
import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from datetime import date, datetime, time
from re import Pattern as RegexPattern
from typing import Any, ClassVar
from urllib.parse import urlparse

from .exceptions import SchemaConfigurationError
from .result import Error, ErrorCode, ValidationResult

STRING = "string"
NUMBER = "number"
ARRAY = "array"
OBJECT = "object"


class Constraint(ABC):
    """Base class for all constraints.

    Attributes:
        kind: Constraint kind reported in error context
        categories: Value categories this constraint can apply to
        message: Optional message replacing the default error text
    """

    kind: ClassVar[str]
    categories: ClassVar[frozenset[str]] = frozenset({STRING, NUMBER, ARRAY, OBJECT})

    message: str | None = None

    @abstractmethod
    def check(self, value: Any) -> ValidationResult:
        """Validate a value against this constraint.

        Args:
            value: A value that already matched its declared type

        Returns:
            ValidationResult with validation outcome
        """

    @abstractmethod
    def json_schema(self, category: str | None) -> dict[str, Any]:
        """JSON schema keywords expressing this constraint.

        Args:
            category: Value category of the constrained type, if known
        """

    def applies_to(self, category: str) -> bool:
        return category in self.categories

    def _violation(self, value: Any, default_message: str, **context: Any) -> ValidationResult:
        error = Error(
            (),
            ErrorCode.CONSTRAINT_VIOLATION,
            self.message or default_message,
            context={"constraint": self.kind, **context},
        )
        return ValidationResult(valid=False, value=value, errors=[error])

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)

    def __hash__(self) -> int:
        return hash((type(self), self.kind))

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in vars(self).items() if v is not None)
        return f"{type(self).__name__}({args})"


def _length_of(value: Any) -> int | None:
    if isinstance(value, (str, list, tuple, dict)):
        return len(value)
    return None


def _length_keyword(category: str | None, prefix: str) -> str:
    if category == ARRAY:
        return f"{prefix}Items"
    if category == OBJECT:
        return f"{prefix}Properties"
    return f"{prefix}Length"


class MinLength(Constraint):
    """String, list or mapping length must be at least ``limit``."""

    kind = "min_length"
    categories = frozenset({STRING, ARRAY, OBJECT})

    def __init__(self, limit: int, message: str | None = None):
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 0:
            raise SchemaConfigurationError(f"min_length must be a non-negative integer, got {limit!r}")
        self.limit = limit
        self.message = message

    def check(self, value: Any) -> ValidationResult:
        length = _length_of(value)
        if length is None:
            return self._violation(value, f"value of type {type(value).__name__} has no length")
        if length < self.limit:
            return self._violation(
                value, f"length {length} is less than minimum {self.limit}", limit=self.limit
            )
        return ValidationResult.success(value)

    def json_schema(self, category: str | None) -> dict[str, Any]:
        return {_length_keyword(category, "min"): self.limit}


class MaxLength(Constraint):
    """String, list or mapping length must be at most ``limit``."""

    kind = "max_length"
    categories = frozenset({STRING, ARRAY, OBJECT})

    def __init__(self, limit: int, message: str | None = None):
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 0:
            raise SchemaConfigurationError(f"max_length must be a non-negative integer, got {limit!r}")
        self.limit = limit
        self.message = message

    def check(self, value: Any) -> ValidationResult:
        length = _length_of(value)
        if length is None:
            return self._violation(value, f"value of type {type(value).__name__} has no length")
        if length > self.limit:
            return self._violation(
                value, f"length {length} is greater than maximum {self.limit}", limit=self.limit
            )
        return ValidationResult.success(value)

    def json_schema(self, category: str | None) -> dict[str, Any]:
        return {_length_keyword(category, "max"): self.limit}


class Pattern(Constraint):
    """String value must contain a match for a regex (JSON schema semantics)."""

    kind = "pattern"
    categories = frozenset({STRING})

    def __init__(self, pattern: str | RegexPattern, message: str | None = None):
        try:
            self.regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        except re.error as e:
            raise SchemaConfigurationError(f"invalid pattern {pattern!r}: {e}") from e
        self.pattern = self.regex.pattern
        self.message = message

    def check(self, value: Any) -> ValidationResult:
        if not isinstance(value, str):
            return self._violation(value, f"pattern requires a string, got {type(value).__name__}")
        if not self.regex.search(value):
            return self._violation(
                value, f"value '{value}' does not match pattern '{self.pattern}'", pattern=self.pattern
            )
        return ValidationResult.success(value)

    def json_schema(self, category: str | None) -> dict[str, Any]:
        return {"pattern": self.pattern}

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Pattern) and other.pattern == self.pattern and other.message == self.message

    def __hash__(self) -> int:
        return hash((Pattern, self.pattern))

    def __repr__(self) -> str:
        return f"Pattern({self.pattern!r})"


class _Bound(Constraint):
    """Numeric comparison against a fixed bound."""

    categories = frozenset({NUMBER})
    keyword: ClassVar[str]
    symbol: ClassVar[str]

    def __init__(self, bound: int | float, message: str | None = None):
        if isinstance(bound, bool) or not isinstance(bound, (int, float)) or math.isnan(bound):
            raise SchemaConfigurationError(f"{self.kind} bound must be a number, got {bound!r}")
        self.bound = bound
        self.message = message

    @abstractmethod
    def _holds(self, value: int | float) -> bool:
        """Whether the comparison holds for ``value``."""

    def check(self, value: Any) -> ValidationResult:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return self._violation(value, f"value must be a number, got {type(value).__name__}")
        if isinstance(value, float) and math.isnan(value):
            return self._violation(value, "value is NaN, which is not valid for range comparisons")
        if not self._holds(value):
            return self._violation(
                value, f"value {value} must be {self.symbol} {self.bound}", limit=self.bound
            )
        return ValidationResult.success(value)

    def json_schema(self, category: str | None) -> dict[str, Any]:
        return {self.keyword: self.bound}


class Gt(_Bound):
    kind = "gt"
    keyword = "exclusiveMinimum"
    symbol = ">"

    def _holds(self, value: int | float) -> bool:
        return value > self.bound


class Gte(_Bound):
    kind = "gte"
    keyword = "minimum"
    symbol = ">="

    def _holds(self, value: int | float) -> bool:
        return value >= self.bound


class Lt(_Bound):
    kind = "lt"
    keyword = "exclusiveMaximum"
    symbol = "<"

    def _holds(self, value: int | float) -> bool:
        return value < self.bound


class Lte(_Bound):
    kind = "lte"
    keyword = "maximum"
    symbol = "<="

    def _holds(self, value: int | float) -> bool:
        return value <= self.bound


def _same_choice(candidate: Any, value: Any) -> bool:
    # True == 1 in Python; booleans only match booleans
    if isinstance(candidate, bool) != isinstance(value, bool):
        return False
    return bool(candidate == value)


class Choices(Constraint):
    """Value must be one of an allowed set (kept in declaration order)."""

    kind = "choices"

    def __init__(self, values: Iterable[Any], message: str | None = None):
        values = tuple(values)
        if not values:
            raise SchemaConfigurationError("choices requires at least one allowed value")
        self.values = values
        self.message = message

    def check(self, value: Any) -> ValidationResult:
        if any(_same_choice(candidate, value) for candidate in self.values):
            return ValidationResult.success(value)
        allowed = ", ".join(repr(v) for v in self.values)
        return self._violation(
            value, f"value {value!r} is not in allowed values: {allowed}", allowed=list(self.values)
        )

    def json_schema(self, category: str | None) -> dict[str, Any]:
        return {"enum": list(self.values)}

    def __hash__(self) -> int:
        return hash((Choices, len(self.values)))


_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_HOSTNAME = re.compile(r"^(?=.{1,253}$)([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)(\.[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$")


def _is_email(value: str) -> bool:
    return bool(_EMAIL.match(value))


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _parses(parser: Callable[[str], Any]) -> Callable[[str], bool]:
    def check(value: str) -> bool:
        try:
            parser(value)
        except ValueError:
            return False
        return True

    return check


def _parse_datetime(value: str) -> datetime:
    # Python < 3.11 does not accept a trailing Z
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    if "T" not in value and "t" not in value and " " not in value:
        raise ValueError("missing time component")
    return datetime.fromisoformat(value)


def _is_uri(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


FORMAT_CHECKERS: dict[str, Callable[[str], bool]] = {
    "email": _is_email,
    "uuid": _is_uuid,
    "date": _parses(date.fromisoformat),
    "date-time": _parses(_parse_datetime),
    "time": _parses(time.fromisoformat),
    "uri": _is_uri,
    "ipv4": _parses(ipaddress.IPv4Address),
    "ipv6": _parses(ipaddress.IPv6Address),
    "hostname": lambda value: bool(_HOSTNAME.match(value)),
}


class Format(Constraint):
    """String value must satisfy a named format (``email``, ``uuid``, ``date-time``, ...)."""

    kind = "format"
    categories = frozenset({STRING})

    def __init__(self, name: str, message: str | None = None):
        if name not in FORMAT_CHECKERS:
            known = ", ".join(sorted(FORMAT_CHECKERS))
            raise SchemaConfigurationError(f"unknown format '{name}', expected one of: {known}")
        self.name = name
        self.message = message

    def check(self, value: Any) -> ValidationResult:
        if not isinstance(value, str):
            return self._violation(value, f"format requires a string, got {type(value).__name__}")
        if not FORMAT_CHECKERS[self.name](value):
            return self._violation(value, f"value '{value}' is not a valid {self.name}", format=self.name)
        return ValidationResult.success(value)

    def json_schema(self, category: str | None) -> dict[str, Any]:
        return {"format": self.name}


CONSTRAINT_TYPES: dict[str, type[Constraint]] = {
    cls.kind: cls for cls in (MinLength, MaxLength, Pattern, Gt, Gte, Lt, Lte, Choices, Format)
}
