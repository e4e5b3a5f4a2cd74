"""Fluent construction of schema descriptors.

Example:
    ```python
    from dataknobs_schema import SchemaBuilder, types as t
    from dataknobs_schema.constraints import Format, MinLength

    builder = (
        SchemaBuilder("Signup")
        .preset("api")
        .field("email", "str", constraints=[Format("email")])
        .field("password", t.string(), constraints=[MinLength(8)])
        .field("confirm", t.string())
        .field("first", t.string())
        .field("last", t.string())
    )

    @builder.validator()
    def passwords_match(record):
        if record["password"] != record["confirm"]:
            raise ValueError("passwords do not match")
        return record

    builder.computed_field("full_name", t.string(), lambda r: f"{r['first']} {r['last']}")
    signup = builder.build()
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from .config import SchemaConfig
from .constraints import Constraint
from .descriptor import MISSING, ComputedField, FieldSpec, ModelValidator, SchemaDescriptor
from .exceptions import SchemaConfigurationError
from .types import TypeExpr, primitive_from_name


def as_type(type_expr: TypeExpr | str) -> TypeExpr:
    """Accept a type expression or a primitive name such as ``"int"``.

    Raises:
        SchemaConfigurationError: If ``type_expr`` is an unknown name
    """
    if isinstance(type_expr, str):
        primitive = primitive_from_name(type_expr)
        if primitive is None:
            raise SchemaConfigurationError(f"Invalid field type: {type_expr}")
        return primitive
    return type_expr


class SchemaBuilder:
    """Builder with a fluent API for :class:`SchemaDescriptor`.

    Problems found while adding fields, such as an unknown type name, are
    held back and reported together with the descriptor invariants by
    :meth:`build`.
    """

    def __init__(self, schema_id: str, config: SchemaConfig | None = None):
        """Initialize builder.

        Args:
            schema_id: Schema id, also used as the reference name
            config: Starting configuration (defaults apply when omitted)
        """
        self.schema_id = schema_id
        self.config = config or SchemaConfig()
        self.fields: list[FieldSpec] = []
        self.model_validators: list[ModelValidator] = []
        self.computed_fields: list[ComputedField] = []
        self.problems: list[str] = []

    def field(
        self,
        name: str,
        field_type: TypeExpr | str,
        required: bool | None = None,
        default: Any = MISSING,
        constraints: Iterable[Constraint] | None = None,
        description: str | None = None,
        examples: Iterable[Any] | None = None,
    ) -> SchemaBuilder:
        """Add a field definition (fluent API).

        Args:
            name: Field name
            field_type: Type expression or primitive name
            required: Whether field is required; defaults to True unless a
                default is given
            default: Default value used when the field is missing
            constraints: Constraints to apply, in order
            description: Field description
            examples: Example values

        Returns:
            Self for chaining
        """
        resolved = self._resolve_type(field_type)
        if resolved is None:
            return self
        self.fields.append(
            FieldSpec(
                name=name,
                type=resolved,
                required=required,
                default=default,
                constraints=tuple(constraints or ()),
                description=description,
                examples=tuple(examples or ()),
            )
        )
        return self

    def _resolve_type(self, field_type: TypeExpr | str) -> TypeExpr | None:
        try:
            return as_type(field_type)
        except SchemaConfigurationError as e:
            self.problems.extend(e.problems)
            return None

    def model_validator(
        self,
        func: Callable[[dict[str, Any]], Any],
        name: str | None = None,
    ) -> SchemaBuilder:
        """Add a model validator (fluent API).

        Args:
            func: Receives the validated record; returns a ValidationResult or
                the record, or raises ValueError/TypeError
            name: Stable name reported in error context

        Returns:
            Self for chaining
        """
        self.model_validators.append(ModelValidator(func, name))
        return self

    def validator(self, name: str | None = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of :meth:`model_validator`; returns the function unchanged."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.model_validator(func, name)
            return func

        return decorator

    def computed_field(
        self,
        name: str,
        field_type: TypeExpr | str,
        func: Callable[[dict[str, Any]], Any],
        description: str | None = None,
        function_name: str | None = None,
    ) -> SchemaBuilder:
        """Add a computed field (fluent API)."""
        resolved = self._resolve_type(field_type)
        if resolved is None:
            return self
        self.computed_fields.append(
            ComputedField(
                name=name,
                type=resolved,
                func=func,
                description=description,
                function_name=function_name,
            )
        )
        return self

    def computed(
        self,
        name: str,
        field_type: TypeExpr | str,
        description: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of :meth:`computed_field`; returns the function unchanged."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.computed_field(name, field_type, func, description=description)
            return func

        return decorator

    def configure(self, **options: Any) -> SchemaBuilder:
        """Override configuration options (fluent API)."""
        self.config = self.config.merge(**options)
        return self

    def preset(self, name: str, **overrides: Any) -> SchemaBuilder:
        """Start from a named configuration preset (fluent API)."""
        self.config = SchemaConfig.preset(name).merge(**overrides)
        return self

    def with_description(self, description: str) -> SchemaBuilder:
        """Set schema description (fluent API)."""
        return self.configure(description=description)

    def with_title(self, title: str) -> SchemaBuilder:
        """Set schema title (fluent API)."""
        return self.configure(title=title)

    def build(self) -> SchemaDescriptor:
        """Create the immutable descriptor.

        Raises:
            SchemaConfigurationError: Listing every problem collected while
                building along with every invariant violation
        """
        try:
            descriptor = SchemaDescriptor(
                schema_id=self.schema_id,
                fields=tuple(self.fields),
                model_validators=tuple(self.model_validators),
                computed_fields=tuple(self.computed_fields),
                config=self.config,
            )
        except SchemaConfigurationError as e:
            raise SchemaConfigurationError([*self.problems, *e.problems], context=e.context) from e
        if self.problems:
            raise SchemaConfigurationError(list(self.problems), context={"schema_id": self.schema_id})
        return descriptor
