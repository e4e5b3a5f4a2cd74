"""Thread-safe registries for schemas and custom types.

:class:`SchemaRegistry` maps schema ids to descriptors so that
:class:`~dataknobs_schema.types.Ref` types can be resolved, including
self- and mutually-recursive schemas. :class:`TypeRegistry` maps custom type
names to :class:`CustomType` capability objects.

Both build on :class:`dataknobs_common.registry.Registry`, whose mutation is
guarded by an ``RLock``; descriptors themselves are immutable and
can be used without locking once fetched.

Example:
    ```python
    from dataknobs_schema import SchemaBuilder, SchemaRegistry, types as t

    registry = SchemaRegistry()
    registry.register_schema(
        SchemaBuilder("Node")
        .field("value", t.integer())
        .field("children", t.array(t.ref("Node")), default=[])
        .build()
    )
    registry.get("Node").field_names
    # ('value', 'children')
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from dataknobs_common.exceptions import NotFoundError, OperationError
from dataknobs_common.registry import Registry

from .exceptions import RegistrationError, SchemaNotFoundError
from .types import TypeExpr

if TYPE_CHECKING:
    from .descriptor import SchemaDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _KeyedRegistry(Registry[T]):
    """Common registry raising this package's registration and lookup errors."""

    def register(
        self,
        key: str,
        item: T,
        metadata: dict[str, Any] | None = None,
        allow_overwrite: bool = False,
    ) -> None:
        """Register an item by key.

        Raises:
            RegistrationError: If the key is taken and allow_overwrite is False
        """
        try:
            super().register(key, item, metadata=metadata, allow_overwrite=allow_overwrite)
        except OperationError as e:
            raise RegistrationError(key, self.name) from e
        logger.debug("Registered '%s' in %s", key, self.name)

    def unregister(self, key: str) -> T:
        """Unregister and return an item by key.

        Raises:
            SchemaNotFoundError: If item not found
        """
        try:
            return super().unregister(key)
        except NotFoundError as e:
            raise SchemaNotFoundError(key, self.name) from e

    def get(self, key: str) -> T:
        """Get an item by key.

        Raises:
            SchemaNotFoundError: If item not found, listing the available keys
        """
        try:
            return super().get(key)
        except NotFoundError as e:
            raise SchemaNotFoundError(key, self.name, available=e.context.get("available_keys")) from e


class SchemaRegistry(_KeyedRegistry["SchemaDescriptor"]):
    """Registry of schema descriptors keyed by schema id."""

    def __init__(self, name: str = "schemas"):
        super().__init__(name)

    def register_schema(self, descriptor: SchemaDescriptor, allow_overwrite: bool = False) -> SchemaDescriptor:
        """Register ``descriptor`` under its own schema id and return it."""
        self.register(descriptor.schema_id, descriptor, allow_overwrite=allow_overwrite)
        return descriptor

    def closure(self, schema_id: str) -> tuple[list[SchemaDescriptor], list[str]]:
        """Collect a schema and every schema reachable from it through references.

        Args:
            schema_id: Id of the starting schema

        Returns:
            Tuple of (descriptors found in discovery order, ids that are not
            registered)
        """
        found: dict[str, SchemaDescriptor] = {}
        missing: list[str] = []
        pending = [schema_id]
        while pending:
            current = pending.pop(0)
            if current in found or current in missing:
                continue
            descriptor = self.get_optional(current)
            if descriptor is None:
                missing.append(current)
                continue
            found[current] = descriptor
            pending.extend(descriptor.referenced_schema_ids())
        return list(found.values()), missing


@dataclass(frozen=True)
class CustomType:
    """Capability object describing a user-defined type.

    Attributes:
        name: Name used by :class:`~dataknobs_schema.types.Custom` references
        validate: Receives the raw value; returns a ValidationResult or the
            accepted (possibly converted) value, or raises ValueError/TypeError
        base: Underlying representation; when given, the value is first
            matched against it and field constraints apply
        json_schema: JSON schema fragment describing the type
    """

    name: str
    validate: Callable[[Any], Any]
    base: TypeExpr | None = None
    json_schema: dict[str, Any] | None = field(default=None, hash=False, compare=False)


class TypeRegistry(_KeyedRegistry[CustomType]):
    """Registry of custom types keyed by name."""

    def __init__(self, name: str = "types"):
        super().__init__(name)

    def register_type(self, custom_type: CustomType, allow_overwrite: bool = False) -> CustomType:
        """Register ``custom_type`` under its own name and return it."""
        self.register(custom_type.name, custom_type, allow_overwrite=allow_overwrite)
        return custom_type
