"""Shared fixtures for dataknobs_schema tests."""

import pytest

from dataknobs_schema import (
    CustomType,
    SchemaBuilder,
    SchemaRegistry,
    TypeRegistry,
    ValidationResult,
    types as t,
)
from dataknobs_schema.constraints import Format, MinLength


@pytest.fixture
def user_schema():
    """User{name: string (min 1), age: integer = 0}."""
    return (
        SchemaBuilder("User")
        .field("name", t.string(), constraints=[MinLength(1)])
        .field("age", t.integer(), default=0)
        .build()
    )


@pytest.fixture
def signup_builder():
    """Builder for a signup schema with a password check and a full_name computed field."""
    builder = (
        SchemaBuilder("Signup")
        .field("first", t.string())
        .field("last", t.string())
        .field("password", t.string())
        .field("confirm", t.string())
    )

    def passwords_match(record):
        if record["password"] != record["confirm"]:
            raise ValueError("passwords do not match")
        return record

    builder.model_validator(passwords_match)
    builder.computed_field("full_name", t.string(), lambda r: f"{r['first']} {r['last']}")
    return builder


@pytest.fixture
def node_registry():
    """Registry holding the self-referential Node{value, children: [Node]} schema."""
    registry = SchemaRegistry()
    registry.register_schema(
        SchemaBuilder("Node")
        .field("value", t.integer())
        .field("children", t.array(t.ref("Node")), default=[])
        .build()
    )
    return registry


@pytest.fixture
def type_registry():
    """Registry with an email custom type (string base) and an even-number type."""
    registry = TypeRegistry()
    registry.register_type(
        CustomType(
            "email",
            validate=lambda value: value.lower(),
            base=t.string(),
            json_schema={"type": "string", "format": "email"},
        )
    )

    def even(value):
        if isinstance(value, int) and not isinstance(value, bool) and value % 2 == 0:
            return ValidationResult.success(value)
        return ValidationResult.failure(value, "value must be an even integer")

    registry.register_type(CustomType("even", validate=even))
    return registry
