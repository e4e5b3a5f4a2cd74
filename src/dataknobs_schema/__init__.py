"""Schema-driven validation and type coercion.

This package provides:
- Immutable schema descriptors built with a fluent builder or from config
- Structural type matching with three coercion strictness levels
- Path-qualified error aggregation (always a ValidationResult, never a raise)
- Cross-field model validators and computed fields
- JSON schema generation, reference resolution and provider profiles
"""

from . import types
from .adapter import TypeAdapter, validate_value
from .builder import SchemaBuilder
from .coercer import Coercer, CoercionMode
from .config import PRESETS, ExtraPolicy, SchemaConfig
from .constraints import (
    Choices,
    Constraint,
    Format,
    Gt,
    Gte,
    Lt,
    Lte,
    MaxLength,
    MinLength,
    Pattern,
)
from .descriptor import MISSING, ComputedField, FieldSpec, ModelValidator, SchemaDescriptor
from .exceptions import (
    RegistrationError,
    SchemaConfigurationError,
    SchemaError,
    SchemaNotFoundError,
    SchemaValidationError,
)
from .factory import SchemaFactory, schema_factory
from .matcher import TypeMatcher
from .pipeline import ComputedFieldEngine, ModelValidatorPipeline
from .registry import CustomType, SchemaRegistry, TypeRegistry
from .result import Error, ErrorCode, ValidationResult
from .validator import FieldValidator, SchemaValidator, validate

__version__ = "0.1.0"

__all__ = [
    # Result types
    "Error",
    "ErrorCode",
    "ValidationResult",
    # Exceptions
    "SchemaError",
    "SchemaValidationError",
    "SchemaConfigurationError",
    "SchemaNotFoundError",
    "RegistrationError",
    # Types and coercion
    "types",
    "Coercer",
    "CoercionMode",
    "TypeMatcher",
    # Constraints
    "Constraint",
    "MinLength",
    "MaxLength",
    "Pattern",
    "Gt",
    "Gte",
    "Lt",
    "Lte",
    "Choices",
    "Format",
    # Descriptors
    "MISSING",
    "FieldSpec",
    "ModelValidator",
    "ComputedField",
    "SchemaDescriptor",
    "SchemaConfig",
    "ExtraPolicy",
    "PRESETS",
    # Registries
    "SchemaRegistry",
    "TypeRegistry",
    "CustomType",
    # Validation
    "FieldValidator",
    "SchemaValidator",
    "ModelValidatorPipeline",
    "ComputedFieldEngine",
    "validate",
    "TypeAdapter",
    "validate_value",
    # Authoring
    "SchemaBuilder",
    "SchemaFactory",
    "schema_factory",
]
