"""Provider profiles: pure transforms that adapt documents to LLM structured-output rules.

Example:
    ```python
    from dataknobs_schema.json_schema import apply_profile, check_compatibility, generate

    document = generate(user)
    for issue in check_compatibility(document, "openai"):
        logger.warning(issue)
    openai_document = apply_profile(document, "openai")
    ```
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any

from ..exceptions import SchemaConfigurationError
from .resolver import flatten
from .traversal import is_object_schema, is_typed_map, iter_schemas, transform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderProfile:
    """Document rules for one provider.

    Attributes:
        name: Profile name
        force_additional_properties_false: Close every object schema
        require_all_properties: List every property in ``required``
        nullable_optional: With ``require_all_properties``, make previously
            optional properties accept ``null``
        unsupported_keywords: Keywords removed from every subschema
        unsupported_formats: ``format`` values removed
        ensure_properties: Give every object schema a ``properties`` table
        ensure_required: Give every object schema a ``required`` list
        strip_descriptions: Remove ``description`` keywords
        inline_references: Flatten the document before applying the rules
        supports_typed_maps: Whether typed ``additionalProperties`` survive
        supports_references: Whether ``$ref`` is accepted
    """

    name: str
    force_additional_properties_false: bool = False
    require_all_properties: bool = False
    nullable_optional: bool = False
    unsupported_keywords: frozenset[str] = frozenset()
    unsupported_formats: frozenset[str] = frozenset()
    ensure_properties: bool = False
    ensure_required: bool = False
    strip_descriptions: bool = False
    inline_references: bool = False
    supports_typed_maps: bool = True
    supports_references: bool = True


OPENAI = ProviderProfile(
    name="openai",
    force_additional_properties_false=True,
    require_all_properties=True,
    nullable_optional=True,
    unsupported_keywords=frozenset({"default", "examples", "readOnly", "x-computed-field"}),
    unsupported_formats=frozenset({"date", "time", "email"}),
    ensure_properties=True,
    ensure_required=True,
    supports_typed_maps=False,
)

ANTHROPIC = ProviderProfile(
    name="anthropic",
    force_additional_properties_false=True,
    unsupported_keywords=frozenset({"x-computed-field"}),
    unsupported_formats=frozenset({"uri", "uuid"}),
    ensure_properties=True,
    ensure_required=True,
)

GENERIC = ProviderProfile(name="generic", ensure_properties=True)

PROFILES: dict[str, ProviderProfile] = {p.name: p for p in (OPENAI, ANTHROPIC, GENERIC)}


def get_profile(profile: str | ProviderProfile) -> ProviderProfile:
    """Look up a profile by name.

    Raises:
        SchemaConfigurationError: If the profile is unknown
    """
    if isinstance(profile, ProviderProfile):
        return profile
    try:
        return PROFILES[profile]
    except KeyError as e:
        raise SchemaConfigurationError(
            f"Unknown provider profile: {profile}", context={"available": sorted(PROFILES)}
        ) from e


def _nullable(schema: dict[str, Any]) -> dict[str, Any]:
    if schema.get("type") == "null" or not schema:
        return schema
    variants = schema.get("anyOf")
    if isinstance(variants, list) and any(v.get("type") == "null" for v in variants if isinstance(v, dict)):
        return schema
    return {"anyOf": [schema, {"type": "null"}]}


def apply_profile(document: dict[str, Any], profile: str | ProviderProfile) -> dict[str, Any]:
    """Return a copy of ``document`` adapted to ``profile``.

    Typed maps are left open even under ``force_additional_properties_false``;
    :func:`check_compatibility` reports them.
    """
    profile = get_profile(profile)
    result = flatten(document) if profile.inline_references else copy.deepcopy(document)

    def apply(node: dict[str, Any], pointer: str) -> None:
        for keyword in profile.unsupported_keywords:
            node.pop(keyword, None)
        if node.get("format") in profile.unsupported_formats:
            del node["format"]
        if profile.strip_descriptions:
            node.pop("description", None)

        if not is_object_schema(node):
            return
        if is_typed_map(node):
            if profile.force_additional_properties_false:
                logger.warning("Leaving typed map open at %s for profile %s", pointer, profile.name)
            return

        if profile.force_additional_properties_false and node.get("additionalProperties", True) is True:
            node["additionalProperties"] = False
        if profile.ensure_properties:
            node.setdefault("properties", {})
        properties = node.get("properties", {})
        if profile.require_all_properties:
            required = set(node.get("required", []))
            if profile.nullable_optional:
                for name in properties:
                    if name not in required:
                        properties[name] = _nullable(properties[name])
            node["required"] = list(properties)
        elif profile.ensure_required:
            node.setdefault("required", [])

    transform(result, apply)
    return result


def check_compatibility(document: dict[str, Any], profile: str | ProviderProfile) -> list[str]:
    """Human-readable issues ``document`` would have under ``profile``.

    Returns:
        List of issues (empty when fully compatible)
    """
    profile = get_profile(profile)
    issues: list[str] = []
    for node, pointer in iter_schemas(document):
        if "$ref" in node and not profile.supports_references:
            issues.append(f"{pointer}: references are not supported by {profile.name}")
        if is_typed_map(node) and not profile.supports_typed_maps:
            issues.append(f"{pointer}: typed maps (additionalProperties schema) are not supported by {profile.name}")
        if node.get("format") in profile.unsupported_formats:
            issues.append(f"{pointer}: format '{node['format']}' is not supported by {profile.name}")
        for keyword in sorted(node.keys() & profile.unsupported_keywords):
            issues.append(f"{pointer}: keyword '{keyword}' is not supported by {profile.name}")
    return issues


def optimize_for_llm(
    document: dict[str, Any],
    strip_descriptions: bool = False,
    max_properties: int | None = None,
) -> dict[str, Any]:
    """Return a smaller copy of ``document`` for prompt-embedded use.

    Removes ``examples`` and nested ``title`` keywords, optionally
    descriptions, and caps each object at ``max_properties`` properties
    (required properties are kept first).
    """
    result = copy.deepcopy(document)

    def optimize(node: dict[str, Any], pointer: str) -> None:
        node.pop("examples", None)
        if pointer != "#":
            node.pop("title", None)
        if strip_descriptions:
            node.pop("description", None)

        properties = node.get("properties")
        if max_properties is None or not isinstance(properties, dict) or len(properties) <= max_properties:
            return
        required = [name for name in node.get("required", []) if name in properties]
        ordered = required + [name for name in properties if name not in required]
        kept = ordered[:max_properties]
        node["properties"] = {name: properties[name] for name in properties if name in kept}
        if "required" in node:
            node["required"] = [name for name in node["required"] if name in kept]

    transform(result, optimize)
    return result
