"""Primitive type matching and coercion with predictable, consistent behavior.

The coercion table is fixed and explicit:

=========  ==========================================  ==============================
target     ``safe``                                    ``aggressive`` (adds)
=========  ==========================================  ==============================
integer    integral numeric string, integral float     truncation of fractional
                                                       floats and numeric strings
float      numeric string (finite), int                -
boolean    ``"true"`` / ``"false"`` (any case)         -
string     int or float rendered with ``str()``        -
=========  ==========================================  ==============================

``none`` performs exact-kind matching only. ``bool`` never counts as a number
and numbers never count as booleans, in any mode.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any

from .exceptions import SchemaConfigurationError
from .result import ValidationResult
from .types import PrimitiveKind

_INTEGER_STRING = re.compile(r"^[+-]?\d+$")
_FLOAT_STRING = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


class CoercionMode(Enum):
    """Strictness level for primitive coercion."""

    NONE = "none"
    SAFE = "safe"
    AGGRESSIVE = "aggressive"

    @classmethod
    def parse(cls, value: CoercionMode | str) -> CoercionMode:
        """Accept either a member or its (case-insensitive) string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            allowed = ", ".join(m.value for m in cls)
            raise SchemaConfigurationError(
                f"Invalid coercion mode '{value}', expected one of: {allowed}",
                context={"allowed": [m.value for m in cls]},
            ) from e


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Coercer:
    """Primitive matching and coercion.

    Always returns ValidationResult, never raises for bad data.
    """

    def matches(self, value: Any, kind: PrimitiveKind) -> bool:
        """Exact-kind check, no coercion."""
        if kind is PrimitiveKind.ANY:
            return True
        if kind is PrimitiveKind.NULL:
            return value is None
        if kind is PrimitiveKind.BOOLEAN:
            return isinstance(value, bool)
        if kind is PrimitiveKind.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        if kind is PrimitiveKind.FLOAT:
            return _is_number(value)
        if kind is PrimitiveKind.STRING:
            return isinstance(value, str)
        return False  # pragma: no cover

    def coerce(
        self,
        value: Any,
        kind: PrimitiveKind,
        mode: CoercionMode = CoercionMode.NONE,
    ) -> ValidationResult:
        """Match ``value`` against ``kind``, coercing according to ``mode``.

        Args:
            value: Value to match
            kind: Target primitive kind
            mode: Coercion strictness

        Returns:
            ValidationResult with the (possibly converted) value or an error
        """
        if self.matches(value, kind):
            return ValidationResult.success(value)

        if mode is not CoercionMode.NONE and value is not None:
            converter = getattr(self, f"_to_{kind.value}", None)
            if converter is not None:
                result = converter(value, mode)
                if result is not None:
                    return result

        return ValidationResult.failure(
            value,
            f"expected {kind.value}, got {self._describe(value)}",
        )

    def _to_integer(self, value: Any, mode: CoercionMode) -> ValidationResult | None:
        if isinstance(value, float):
            if not math.isfinite(value):
                return None
            if value.is_integer():
                return ValidationResult.success(int(value))
            if mode is CoercionMode.AGGRESSIVE:
                return self._truncated(value, math.trunc(value))
            return ValidationResult.failure(
                value, f"float {value} cannot be losslessly converted to integer"
            )

        if isinstance(value, str):
            if _INTEGER_STRING.match(value):
                try:
                    return ValidationResult.success(int(value))
                except ValueError:
                    # beyond the interpreter's integer string conversion limit
                    return ValidationResult.failure(
                        value, f"integer string of {len(value)} characters is too long to convert"
                    )
            if _FLOAT_STRING.match(value):
                number = float(value)
                if not math.isfinite(number):
                    return None
                if number.is_integer():
                    return ValidationResult.success(int(number))
                if mode is CoercionMode.AGGRESSIVE:
                    return self._truncated(value, math.trunc(number))
                return ValidationResult.failure(
                    value, f"string '{value}' is not an integral number"
                )
        return None

    def _to_float(self, value: Any, mode: CoercionMode) -> ValidationResult | None:
        if isinstance(value, str) and _FLOAT_STRING.match(value):
            number = float(value)
            if math.isfinite(number):
                return ValidationResult.success(number)
        return None

    def _to_boolean(self, value: Any, mode: CoercionMode) -> ValidationResult | None:
        if isinstance(value, str):
            lowered = value.lower()
            if lowered == "true":
                return ValidationResult.success(True)
            if lowered == "false":
                return ValidationResult.success(False)
        return None

    def _to_string(self, value: Any, mode: CoercionMode) -> ValidationResult | None:
        if _is_number(value):
            try:
                return ValidationResult.success(str(value))
            except ValueError:
                return ValidationResult.failure(
                    value, f"integer with {value.bit_length()} bits is too large to render as a string"
                )
        return None

    def _truncated(self, original: Any, truncated: int) -> ValidationResult:
        return ValidationResult.success(
            truncated,
            warnings=[f"truncated {original!r} to {truncated}"],
        )

    def _describe(self, value: Any) -> str:
        if value is None:
            return "null"
        return type(value).__name__
