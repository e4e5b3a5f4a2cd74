"""JSON schema generation, reference resolution and provider profiles."""

from .dialects import (
    DIALECTS,
    DRAFT_07,
    DRAFT_2020_12,
    Dialect,
    check_document,
    detect_dialect,
    get_dialect,
    instance_errors,
)
from .generator import (
    COMPUTED_FIELD_KEY,
    GenerationOptions,
    extract_computed_fields,
    generate,
    generate_type,
    remove_computed_fields,
)
from .profiles import (
    ANTHROPIC,
    GENERIC,
    OPENAI,
    PROFILES,
    ProviderProfile,
    apply_profile,
    check_compatibility,
    get_profile,
    optimize_for_llm,
)
from .resolver import cyclic_definitions, flatten, resolve_references

__all__ = [
    "ANTHROPIC",
    "COMPUTED_FIELD_KEY",
    "DIALECTS",
    "DRAFT_07",
    "DRAFT_2020_12",
    "GENERIC",
    "OPENAI",
    "PROFILES",
    "Dialect",
    "GenerationOptions",
    "ProviderProfile",
    "apply_profile",
    "check_compatibility",
    "check_document",
    "cyclic_definitions",
    "detect_dialect",
    "extract_computed_fields",
    "flatten",
    "generate",
    "generate_type",
    "get_dialect",
    "get_profile",
    "instance_errors",
    "optimize_for_llm",
    "remove_computed_fields",
    "resolve_references",
]
