"""Schema-level configuration, presets and the conflict checks run at build time."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any

from .coercer import CoercionMode
from .exceptions import SchemaConfigurationError


class ExtraPolicy(Enum):
    """How keys that no field declares are handled."""

    ALLOW = "allow"
    FORBID = "forbid"
    IGNORE = "ignore"

    @classmethod
    def parse(cls, value: ExtraPolicy | str) -> ExtraPolicy:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            allowed = ", ".join(m.value for m in cls)
            raise SchemaConfigurationError(
                f"Invalid extra policy '{value}', expected one of: {allowed}",
                context={"allowed": [m.value for m in cls]},
            ) from e


@dataclass(frozen=True)
class SchemaConfig:
    """Validation behavior for one schema.

    Attributes:
        strict: Reject unknown fields; requires ``extra=forbid``
        extra: Policy for undeclared keys
        coercion: Default coercion mode for this schema
        title: Title used in generated documents
        description: Description used in generated documents
    """

    strict: bool = False
    extra: ExtraPolicy = ExtraPolicy.ALLOW
    coercion: CoercionMode = CoercionMode.SAFE
    title: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        # Accept plain strings from config files
        object.__setattr__(self, "extra", ExtraPolicy.parse(self.extra))
        object.__setattr__(self, "coercion", CoercionMode.parse(self.coercion))

    @classmethod
    def create(cls, **options: Any) -> SchemaConfig:
        """Create a config, rejecting unknown option names.

        Raises:
            SchemaConfigurationError: For unknown options or invalid values
        """
        valid = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - valid)
        if unknown:
            raise SchemaConfigurationError(
                f"Invalid configuration options: {', '.join(unknown)}",
                context={"unknown": unknown},
            )
        return cls(**options)

    @classmethod
    def preset(cls, name: str) -> SchemaConfig:
        """Return a named preset configuration.

        Presets: ``strict``, ``lenient``, ``api``, ``json_schema``,
        ``development``, ``production``.
        """
        try:
            options = PRESETS[name]
        except KeyError as e:
            raise SchemaConfigurationError(
                f"Unknown preset: {name}", context={"available": sorted(PRESETS)}
            ) from e
        return cls.create(**options)

    def merge(self, **overrides: Any) -> SchemaConfig:
        """Return a copy with ``overrides`` applied."""
        if not overrides:
            return self
        SchemaConfig.create(**overrides)
        return replace(self, **overrides)

    @property
    def forbids_extra(self) -> bool:
        return self.strict or self.extra is ExtraPolicy.FORBID

    def check(self) -> list[str]:
        """Return every conflict between options (empty when consistent)."""
        problems = []
        if self.strict and self.extra is not ExtraPolicy.FORBID:
            problems.append(f"strict mode conflicts with extra='{self.extra.value}'")
        if not isinstance(self.strict, bool):
            problems.append(f"strict must be a boolean, got {self.strict!r}")
        return problems

    def summary(self) -> dict[str, Any]:
        return {
            "strict": self.strict,
            "extra": self.extra.value,
            "coercion": self.coercion.value,
            "title": self.title,
            "description": self.description,
        }


PRESETS: dict[str, dict[str, Any]] = {
    "strict": {"strict": True, "extra": "forbid", "coercion": "none"},
    "lenient": {"strict": False, "extra": "allow", "coercion": "safe"},
    "api": {"strict": True, "extra": "forbid", "coercion": "safe"},
    "json_schema": {"strict": False, "extra": "allow", "coercion": "none"},
    "development": {"strict": False, "extra": "allow", "coercion": "aggressive"},
    "production": {"strict": True, "extra": "forbid", "coercion": "safe"},
}
