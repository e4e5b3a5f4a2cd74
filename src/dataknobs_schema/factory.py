"""Runtime creation of schema descriptors from configuration.

Callables (model validators, computed fields, custom type validators) cannot
be written in a config file, so they are looked up by name in a function
table supplied to the factory.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

import yaml

from .builder import SchemaBuilder, as_type
from .config import SchemaConfig
from .constraints import (
    CONSTRAINT_TYPES,
    Choices,
    Constraint,
    Format,
    Gte,
    Lte,
    MaxLength,
    MinLength,
    Pattern,
)
from .descriptor import MISSING, SchemaDescriptor
from .exceptions import SchemaConfigurationError, SchemaError
from .registry import SchemaRegistry
from .types import TypeExpr, array, custom, map_of, optional, ref, string, union

logger = logging.getLogger(__name__)

_CONFIG_OPTIONS = ("strict", "extra", "coercion", "title", "description")


def parse_type(spec: Any) -> TypeExpr:
    """Build a type expression from its config representation.

    Accepted forms::

        "int"                                  # any primitive name
        {"array": <type>}
        {"map": <value type>}                  # string keys
        {"map": {"keys": <type>, "values": <type>}}
        {"union": [<type>, ...]}
        {"optional": <type>}
        {"ref": "Node"}
        {"custom": "email_address"}

    Raises:
        SchemaConfigurationError: If the form is not recognized
    """
    if isinstance(spec, str):
        return as_type(spec)
    if isinstance(spec, Mapping) and len(spec) == 1:
        kind, arg = next(iter(spec.items()))
        if kind == "array":
            return array(parse_type(arg))
        if kind == "map":
            if isinstance(arg, Mapping) and "values" in arg:
                return map_of(parse_type(arg.get("keys", "string")), parse_type(arg["values"]))
            return map_of(string(), parse_type(arg))
        if kind == "union":
            if not isinstance(arg, list) or not arg:
                raise SchemaConfigurationError(f"union requires a non-empty list, got {arg!r}")
            return union(*(parse_type(item) for item in arg))
        if kind == "optional":
            return optional(parse_type(arg))
        if kind == "ref":
            return ref(str(arg))
        if kind == "custom":
            return custom(str(arg))
    raise SchemaConfigurationError(f"Invalid type specification: {spec!r}")


class SchemaFactory:
    """Factory for creating schema descriptors from configuration.

    Configuration Options:
        schema_id (str): Schema id (``name`` is accepted as an alias)
        preset (str): Named configuration preset to start from
        strict, extra, coercion, title, description: SchemaConfig options
        fields (list): List of field definitions
        model_validators (list): ``{function, name}`` entries
        computed_fields (list): ``{name, type, function, description}`` entries

    Field Definition Options:
        name (str): Field name
        type: Type specification (see :func:`parse_type`)
        required (bool): Whether field is required (default: True unless a default is given)
        default (any): Default value if field is missing
        description (str): Field description
        examples (list): Example values
        constraints (list): List of constraint definitions

    Example Configuration:
        schema_id: User
        preset: api
        fields:
          - name: username
            type: string
            constraints:
              - type: length
                min: 3
                max: 20
              - type: pattern
                pattern: "^[a-zA-Z0-9_]+$"
          - name: age
            type: int
            default: 0
            constraints:
              - type: range
                min: 0
                max: 150
          - name: tags
            type: {array: string}
            default: []
        computed_fields:
          - name: display_name
            type: string
            function: display_name
    """

    def __init__(
        self,
        functions: Mapping[str, Callable[..., Any]] | None = None,
        registry: SchemaRegistry | None = None,
    ):
        """Initialize factory.

        Args:
            functions: Named callables referenced by ``function`` entries
            registry: When given, every created schema is registered in it
        """
        self.functions: dict[str, Callable[..., Any]] = dict(functions or {})
        self.registry = registry

    def register_function(self, name: str, func: Callable[..., Any]) -> None:
        self.functions[name] = func

    def create(self, **config: Any) -> SchemaDescriptor:
        """Create a SchemaDescriptor from configuration.

        Args:
            **config: Schema configuration

        Returns:
            SchemaDescriptor instance

        Raises:
            SchemaConfigurationError: Listing every problem in the configuration
        """
        schema_id = config.get("schema_id") or config.get("name")
        if not schema_id:
            raise SchemaConfigurationError("Schema configuration missing 'schema_id'")

        logger.info(f"Creating schema: {schema_id}")

        problems: list[str] = []
        builder = SchemaBuilder(schema_id, config=self._build_config(config, problems))

        for field_config in config.get("fields", []):
            self._add_field(builder, field_config, problems)

        for validator_config in config.get("model_validators", []):
            func = self._lookup(validator_config, "model validator", problems)
            if func is not None:
                builder.model_validator(func, validator_config.get("name"))

        for computed_config in config.get("computed_fields", []):
            func = self._lookup(computed_config, "computed field", problems)
            field_type = self._type(computed_config, problems)
            if func is not None and field_type is not None:
                builder.computed_field(
                    computed_config.get("name"),
                    field_type,
                    func,
                    description=computed_config.get("description"),
                    function_name=computed_config.get("function"),
                )

        if problems:
            raise SchemaConfigurationError(problems, context={"schema_id": schema_id})

        descriptor = builder.build()
        if self.registry is not None:
            self.registry.register_schema(descriptor, allow_overwrite=config.get("overwrite", False))
        return descriptor

    def from_yaml(self, text: str) -> SchemaDescriptor:
        """Create a descriptor from a YAML document holding one schema."""
        return self.create(**self._load_yaml(text))

    def from_yaml_all(self, text: str) -> list[SchemaDescriptor]:
        """Create every descriptor listed under a top-level ``schemas`` key."""
        data = self._load_yaml(text)
        schemas = data.get("schemas")
        if not isinstance(schemas, list):
            raise SchemaConfigurationError("YAML document must contain a 'schemas' list")
        return [self.create(**schema_config) for schema_config in schemas]

    def _load_yaml(self, text: str) -> dict[str, Any]:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise SchemaConfigurationError(f"Invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise SchemaConfigurationError("YAML document must be a mapping")
        return data

    def _build_config(self, config: Mapping[str, Any], problems: list[str]) -> SchemaConfig:
        options = {key: config[key] for key in _CONFIG_OPTIONS if key in config}
        try:
            base = SchemaConfig.preset(config["preset"]) if "preset" in config else SchemaConfig()
            return base.merge(**options)
        except SchemaError as e:
            problems.append(str(e))
            return SchemaConfig()

    def _lookup(
        self, entry: Mapping[str, Any], role: str, problems: list[str]
    ) -> Callable[..., Any] | None:
        name = entry.get("function")
        func = self.functions.get(name) if name else None
        if func is None:
            problems.append(f"{role} function '{name}' is not in the function table")
        return func

    def _type(self, entry: Mapping[str, Any], problems: list[str]) -> TypeExpr | None:
        try:
            return parse_type(entry.get("type", "string"))
        except SchemaConfigurationError as e:
            problems.extend(e.problems)
            return None

    def _add_field(self, builder: SchemaBuilder, field_config: Mapping[str, Any], problems: list[str]) -> None:
        field_name = field_config.get("name")
        if not field_name:
            problems.append("Field configuration missing 'name'")
            return

        field_type = self._type(field_config, problems)
        try:
            constraints = self._build_constraints(field_config.get("constraints", []))
        except SchemaConfigurationError as e:
            problems.extend(f"field '{field_name}': {problem}" for problem in e.problems)
            return
        if field_type is None:
            return

        builder.field(
            name=field_name,
            field_type=field_type,
            required=field_config.get("required"),
            default=field_config.get("default", MISSING),
            constraints=constraints,
            description=field_config.get("description"),
            examples=field_config.get("examples"),
        )

    def _build_constraints(self, constraint_configs: list[dict[str, Any]]) -> list[Constraint]:
        """Build constraint objects from configuration.

        Args:
            constraint_configs: List of constraint configurations

        Returns:
            List of Constraint objects
        """
        constraints: list[Constraint] = []

        for config in constraint_configs:
            constraint_type = config.get("type", "").lower()
            message = config.get("message")

            if constraint_type == "length":
                if config.get("min") is not None:
                    constraints.append(MinLength(config["min"], message))
                if config.get("max") is not None:
                    constraints.append(MaxLength(config["max"], message))

            elif constraint_type == "range":
                if config.get("min") is not None:
                    constraints.append(Gte(config["min"], message))
                if config.get("max") is not None:
                    constraints.append(Lte(config["max"], message))

            elif constraint_type == "pattern":
                constraints.append(Pattern(config.get("pattern", ""), message))

            elif constraint_type in ("choices", "enum"):
                constraints.append(Choices(config.get("values", []), message))

            elif constraint_type == "format":
                constraints.append(Format(config.get("format") or config.get("name", ""), message))

            elif constraint_type in CONSTRAINT_TYPES:
                constraints.append(CONSTRAINT_TYPES[constraint_type](config.get("value"), message))

            else:
                logger.warning(f"Unknown constraint type: {constraint_type}")

        return constraints


# Create singleton instance for registration
schema_factory = SchemaFactory()
