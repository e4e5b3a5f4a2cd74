"""JSON schema dialects and metaschema checks (via ``jsonschema``)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jsonschema
from jsonschema.validators import validator_for

from ..exceptions import SchemaConfigurationError


@dataclass(frozen=True)
class Dialect:
    """A supported JSON schema draft.

    Attributes:
        name: Short name used in options (``draft-07``, ``2020-12``)
        uri: Value of the ``$schema`` keyword
        definitions_key: Keyword holding reusable definitions
    """

    name: str
    uri: str
    definitions_key: str

    def ref_for(self, schema_id: str) -> str:
        return f"#/{self.definitions_key}/{escape_pointer(schema_id)}"


DRAFT_07 = Dialect("draft-07", "http://json-schema.org/draft-07/schema#", "definitions")
DRAFT_2020_12 = Dialect("2020-12", "https://json-schema.org/draft/2020-12/schema", "$defs")

DIALECTS: dict[str, Dialect] = {d.name: d for d in (DRAFT_07, DRAFT_2020_12)}
DEFINITIONS_KEYS = tuple(d.definitions_key for d in DIALECTS.values())


def get_dialect(name: str | Dialect) -> Dialect:
    """Look up a dialect by name.

    Raises:
        SchemaConfigurationError: If the dialect is not supported
    """
    if isinstance(name, Dialect):
        return name
    try:
        return DIALECTS[name]
    except KeyError as e:
        raise SchemaConfigurationError(
            f"Unsupported dialect: {name}", context={"available": sorted(DIALECTS)}
        ) from e


def detect_dialect(document: dict[str, Any]) -> Dialect:
    """Dialect of a document, from ``$schema`` or its definitions keyword."""
    uri = document.get("$schema")
    for dialect in DIALECTS.values():
        if uri == dialect.uri:
            return dialect
    if "$defs" in document and "definitions" not in document:
        return DRAFT_2020_12
    return DRAFT_07


def escape_pointer(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def unescape_pointer(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def local_definition(ref: str) -> str | None:
    """Definition name of a local ``#/definitions/X`` or ``#/$defs/X`` reference."""
    for key in DEFINITIONS_KEYS:
        prefix = f"#/{key}/"
        if ref.startswith(prefix):
            name = ref[len(prefix):]
            if "/" not in name:
                return unescape_pointer(name)
    return None


def _validator_class(document: dict[str, Any]) -> Any:
    default = jsonschema.Draft202012Validator if detect_dialect(document) is DRAFT_2020_12 else jsonschema.Draft7Validator
    return validator_for(document, default=default)


def check_document(document: dict[str, Any]) -> None:
    """Check a document against its dialect's metaschema.

    Raises:
        SchemaConfigurationError: If the document is not a valid schema
    """
    try:
        _validator_class(document).check_schema(document)
    except jsonschema.SchemaError as e:
        raise SchemaConfigurationError(
            f"Invalid JSON schema document: {e.message}",
            context={"path": list(e.path)},
        ) from e


def instance_errors(document: dict[str, Any], instance: Any) -> list[str]:
    """Messages for every way ``instance`` fails ``document`` (empty when valid)."""
    validator = _validator_class(document)(document)
    return [
        f"{'.'.join(str(p) for p in error.absolute_path)}: {error.message}"
        for error in sorted(validator.iter_errors(instance), key=lambda e: list(map(str, e.absolute_path)))
    ]
