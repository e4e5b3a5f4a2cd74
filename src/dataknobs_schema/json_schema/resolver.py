"""Reference resolution for JSON schema documents.

Two strategies are provided:

- :func:`resolve_references` inlines every local reference at its position,
  keeping a ``$ref`` only where it would revisit a definition already being
  expanded on the current path.
- :func:`flatten` inlines references to acyclic definitions and keeps
  references to definitions that can reach themselves. Unused definitions are
  dropped, so ``flatten(flatten(doc)) == flatten(doc)``.

Both always return a valid document: any definition still referenced is kept
in the definitions table.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..exceptions import SchemaConfigurationError
from .dialects import DEFINITIONS_KEYS, local_definition

logger = logging.getLogger(__name__)

# Keywords whose values are data, not schemas
_DATA_KEYWORDS = frozenset({"enum", "const", "default", "examples"})
# Keywords mapping arbitrary names to schemas
_NAMED_SCHEMAS = frozenset({"properties", "patternProperties", *DEFINITIONS_KEYS})


def _definitions(document: dict[str, Any]) -> tuple[dict[str, Any], dict[str, str]]:
    """All definitions of a document and the keyword each one lives under."""
    definitions: dict[str, Any] = {}
    locations: dict[str, str] = {}
    for key in DEFINITIONS_KEYS:
        table = document.get(key)
        if isinstance(table, dict):
            for name, body in table.items():
                definitions[name] = body
                locations[name] = key
    return definitions, locations


def _reference(node: Any) -> str | None:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str):
            return local_definition(ref)
    return None


class _Inliner:
    """Copies a document, deciding per reference whether to inline or keep it."""

    def __init__(self, document: dict[str, Any], keep: Callable[[str, tuple[str, ...]], bool]):
        self.definitions, self.locations = _definitions(document)
        self.keep = keep
        self.retained: list[str] = []

    def walk(self, node: Any, stack: tuple[str, ...]) -> Any:
        if isinstance(node, list):
            return [self.walk(item, stack) for item in node]
        if not isinstance(node, dict):
            return node

        name = _reference(node)
        if name is not None:
            if name not in self.definitions:
                raise SchemaConfigurationError(
                    f"unresolved reference '{node['$ref']}'", context={"ref": node["$ref"]}
                )
            siblings = {k: self._walk_entry(k, v, stack) for k, v in node.items() if k != "$ref"}
            if self.keep(name, stack):
                if name not in self.retained:
                    self.retained.append(name)
                return {"$ref": node["$ref"], **siblings}
            body = self.walk(self.definitions[name], (*stack, name))
            if not isinstance(body, dict):
                return body
            return {**body, **siblings}

        return {k: self._walk_entry(k, v, stack) for k, v in node.items()}

    def _walk_entry(self, key: str, value: Any, stack: tuple[str, ...]) -> Any:
        if key in _DATA_KEYWORDS:
            return value
        if key in _NAMED_SCHEMAS and isinstance(value, dict):
            return {name: self.walk(child, stack) for name, child in value.items()}
        return self.walk(value, stack)

    def run(self, document: dict[str, Any]) -> dict[str, Any]:
        root = {k: v for k, v in document.items() if k not in DEFINITIONS_KEYS}
        result = self.walk(root, ())

        kept: dict[str, Any] = {}
        index = 0
        while index < len(self.retained):
            name = self.retained[index]
            kept[name] = self.walk(self.definitions[name], (name,))
            index += 1

        for name in self.retained:
            key = self.locations[name]
            result.setdefault(key, {})[name] = kept[name]
        return result


def resolve_references(document: dict[str, Any]) -> dict[str, Any]:
    """Inline every local reference at its position.

    A reference to a definition already being expanded on the current path
    is retained, together with its definition.

    Raises:
        SchemaConfigurationError: If a local reference names no definition
    """
    inliner = _Inliner(document, keep=lambda name, stack: name in stack)
    result = inliner.run(document)
    logger.debug("Resolved references; retained %s", inliner.retained)
    return result


def cyclic_definitions(document: dict[str, Any]) -> set[str]:
    """Names of definitions that can reach themselves through references."""
    definitions, _ = _definitions(document)
    edges = {name: _collect_references(body) for name, body in definitions.items()}

    cyclic: set[str] = set()
    for start in definitions:
        seen: set[str] = set()
        pending = list(edges[start])
        while pending:
            current = pending.pop()
            if current == start:
                cyclic.add(start)
                break
            if current in seen or current not in edges:
                continue
            seen.add(current)
            pending.extend(edges[current])
    return cyclic


def _collect_references(node: Any) -> set[str]:
    found: set[str] = set()
    if isinstance(node, list):
        for item in node:
            found |= _collect_references(item)
    elif isinstance(node, dict):
        name = _reference(node)
        if name is not None:
            found.add(name)
        for key, value in node.items():
            if key in _NAMED_SCHEMAS and isinstance(value, dict):
                for child in value.values():
                    found |= _collect_references(child)
            elif key not in _DATA_KEYWORDS:
                found |= _collect_references(value)
    return found


def flatten(document: dict[str, Any]) -> dict[str, Any]:
    """Inline every non-cyclic reference; keep references into cycles.

    Raises:
        SchemaConfigurationError: If a local reference names no definition
    """
    cyclic = cyclic_definitions(document)
    inliner = _Inliner(document, keep=lambda name, stack: name in cyclic)
    return inliner.run(document)
