"""Tests for record validation, the type matcher and error aggregation."""

import threading

import pytest

from dataknobs_schema import (
    CoercionMode,
    CustomType,
    ErrorCode,
    SchemaBuilder,
    SchemaConfigurationError,
    SchemaValidationError,
    SchemaValidator,
    TypeMatcher,
    TypeRegistry,
    types as t,
    validate,
)
from dataknobs_schema.constraints import Choices, Format, Gte, MaxLength, MinLength
from dataknobs_schema.matcher import run_callable


def codes_at(result):
    return [(error.code, error.path) for error in result.errors]


class TestFieldStage:
    """Test missing, default and present field handling."""

    def test_default_applied(self, user_schema):
        """Test that an absent optional field receives its default."""
        result = SchemaValidator(user_schema).validate({"name": "Ada"})
        assert result.valid
        assert result.value == {"name": "Ada", "age": 0}

    def test_independent_problems_all_reported(self, user_schema):
        """Test a missing field and a type mismatch are both reported, in order."""
        result = SchemaValidator(user_schema).validate({"age": "oops"})
        assert not result.valid
        assert codes_at(result) == [
            (ErrorCode.MISSING_FIELD, ("name",)),
            (ErrorCode.TYPE_MISMATCH, ("age",)),
        ]
        assert result.error_messages == ["name: field is required", "age: expected integer, got str"]

    def test_default_is_not_type_checked(self):
        """Test that defaults are used as declared."""
        schema = SchemaBuilder("D").field("level", t.integer(), default="unset").build()
        assert SchemaValidator(schema).validate({}).value == {"level": "unset"}

    def test_default_is_copied(self):
        """Test that mutable defaults are not shared between results."""
        schema = SchemaBuilder("D").field("tags", t.array(t.string()), default=[]).build()
        validator = SchemaValidator(schema)
        first = validator.validate({}).value
        first["tags"].append("x")
        assert validator.validate({}).value == {"tags": []}

    def test_optional_without_default_is_omitted(self):
        """Test that absent optional fields are left out."""
        schema = SchemaBuilder("O").field("nickname", t.string(), required=False).build()
        assert SchemaValidator(schema).validate({}).value == {}

    def test_explicit_none_is_type_checked(self):
        """Test that None is a present value, not a missing one."""
        schema = (
            SchemaBuilder("N")
            .field("a", t.string(), required=False)
            .field("b", t.optional(t.string()), required=False)
            .build()
        )
        result = SchemaValidator(schema).validate({"a": None, "b": None})
        assert codes_at(result) == [(ErrorCode.TYPE_MISMATCH, ("a",))]
        assert SchemaValidator(schema).validate({"b": None}).value == {"b": None}

    def test_constraints_are_collected(self):
        """Test that every failing constraint is reported."""
        schema = (
            SchemaBuilder("C")
            .field("code", t.string(), constraints=[MinLength(5), Choices(["alpha", "bravo"]), Format("email")])
            .build()
        )
        result = SchemaValidator(schema).validate({"code": "xy"})
        assert [e.context["constraint"] for e in result.errors] == ["min_length", "choices", "format"]
        assert all(e.path == ("code",) for e in result.errors)

    def test_constraints_run_after_coercion(self):
        """Test that constraints see the coerced value."""
        schema = SchemaBuilder("C").field("count", t.integer(), constraints=[Gte(10)]).build()
        validator = SchemaValidator(schema)
        assert validator.validate({"count": "12"}).value == {"count": 12}
        result = validator.validate({"count": "3"})
        assert result.errors[0].code is ErrorCode.CONSTRAINT_VIOLATION

    def test_unexpected_exception_in_custom_validator(self):
        """Test a custom validator raising something other than ValueError/TypeError."""
        codes = {"a": 1}
        types = TypeRegistry()
        types.register_type(CustomType("code", validate=lambda value: codes[value]))
        validator = SchemaValidator(SchemaBuilder("C").field("code", t.custom("code")).build(), types=types)

        assert validator.validate({"code": "a"}).value == {"code": 1}
        result = validator.validate({"code": "zz"})
        assert result.valid is False
        assert [(e.code, e.path) for e in result.errors] == [(ErrorCode.TYPE_MISMATCH, ("code",))]
        assert "KeyError" in result.errors[0].message

    def test_constraints_skipped_for_none(self):
        """Test that None accepted by an optional type skips constraints."""
        schema = SchemaBuilder("C").field("name", t.optional(t.string()), constraints=[MinLength(2)]).build()
        assert SchemaValidator(schema).validate({"name": None}).valid

    def test_non_mapping_input(self, user_schema):
        """Test that a non-object record is a type mismatch at the root."""
        result = SchemaValidator(user_schema).validate(["Ada"])
        assert codes_at(result) == [(ErrorCode.TYPE_MISMATCH, ())]


class TestCoercionModes:
    """Test per-call and per-schema coercion modes."""

    def test_modes(self):
        """Test the documented behavior of "123" and "12.5" per mode."""
        schema = SchemaBuilder("N").field("n", t.integer()).build()
        validator = SchemaValidator(schema)

        assert not validator.validate({"n": "123"}, coercion="none").valid
        assert validator.validate({"n": "123"}, coercion="safe").value == {"n": 123}
        assert not validator.validate({"n": "12.5"}, coercion="safe").valid

        result = validator.validate({"n": "12.5"}, coercion=CoercionMode.AGGRESSIVE)
        assert result.value == {"n": 12}
        assert result.warnings == ["truncated '12.5' to 12"]

    def test_schema_default_mode(self):
        """Test that the schema's configured mode applies when none is given."""
        schema = SchemaBuilder("N").preset("strict").field("n", t.integer()).build()
        assert not SchemaValidator(schema).validate({"n": "1"}).valid


class TestExtraPolicy:
    """Test handling of undeclared keys."""

    def test_allow_keeps_extra(self, user_schema):
        """Test the default policy keeps unknown keys."""
        result = SchemaValidator(user_schema).validate({"name": "Ada", "role": "admin"})
        assert result.value == {"name": "Ada", "age": 0, "role": "admin"}

    def test_ignore_drops_extra(self):
        """Test the ignore policy drops unknown keys."""
        schema = SchemaBuilder("I").configure(extra="ignore").field("a", t.integer()).build()
        assert SchemaValidator(schema).validate({"a": 1, "b": 2}).value == {"a": 1}

    def test_forbid_reports_each_key_after_field_errors(self):
        """Test unknown keys are reported after declared-field errors, in input order."""
        schema = SchemaBuilder("F").preset("strict").field("a", t.integer()).build()
        result = SchemaValidator(schema).validate({"z": 1, "a": "x", "y": 2})
        assert codes_at(result) == [
            (ErrorCode.TYPE_MISMATCH, ("a",)),
            (ErrorCode.UNKNOWN_FIELD, ("z",)),
            (ErrorCode.UNKNOWN_FIELD, ("y",)),
        ]


class TestNestedTypes:
    """Test arrays, maps, unions and references."""

    def test_array_errors_are_index_qualified(self):
        """Test every failing element is reported with its index."""
        schema = SchemaBuilder("A").field("scores", t.array(t.integer())).build()
        result = SchemaValidator(schema).validate({"scores": [1, "x", 3, "y"]})
        assert [e.path for e in result.errors] == [("scores", 1), ("scores", 3)]

    def test_array_rejects_non_list(self):
        """Test that a string is not an array."""
        schema = SchemaBuilder("A").field("tags", t.array(t.string())).build()
        result = SchemaValidator(schema).validate({"tags": "abc"})
        assert result.error_messages == ["tags: expected array, got str"]

    def test_tuple_becomes_list(self):
        """Test that tuples are accepted as arrays."""
        schema = SchemaBuilder("A").field("pair", t.array(t.integer())).build()
        assert SchemaValidator(schema).validate({"pair": (1, "2")}).value == {"pair": [1, 2]}

    def test_map_keys_are_not_coerced(self):
        """Test keys are checked without coercion while values are coerced."""
        schema = SchemaBuilder("M").field("counts", t.map_of(t.string(), t.integer())).build()
        validator = SchemaValidator(schema)
        assert validator.validate({"counts": {"a": "1"}}).value == {"counts": {"a": 1}}

        result = validator.validate({"counts": {1: 2}})
        assert codes_at(result) == [(ErrorCode.TYPE_MISMATCH, ("counts", 1))]

    def test_union_prefers_exact_match(self):
        """Test that an exact variant wins over an earlier coercible one."""
        schema = SchemaBuilder("U").field("v", t.union(t.integer(), t.string())).build()
        assert SchemaValidator(schema).validate({"v": "12"}).value == {"v": "12"}

    def test_union_falls_back_to_coercion(self):
        """Test the coercing pass runs when no variant matches exactly."""
        schema = SchemaBuilder("U").field("v", t.union(t.integer(), t.boolean())).build()
        assert SchemaValidator(schema).validate({"v": "true"}).value == {"v": True}

    def test_union_failure_is_one_error_with_variants(self):
        """Test that a failed union yields one error with per-variant detail."""
        schema = SchemaBuilder("U").field("v", t.union(t.integer(), t.null())).build()
        result = SchemaValidator(schema).validate({"v": "abc"})
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.code is ErrorCode.UNION_NO_VARIANT_MATCHED
        assert error.path == ("v",)
        assert [variant["type"] for variant in error.context["variants"]] == ["integer", "null"]

    def test_self_reference(self, node_registry):
        """Test recursive records through a reference."""
        validator = SchemaValidator(node_registry.get("Node"), node_registry)
        data = {"value": 1, "children": [{"value": "2"}, {"value": 3, "children": [{"value": 4}]}]}
        result = validator.validate(data)
        assert result.valid
        assert result.value == {
            "value": 1,
            "children": [
                {"value": 2, "children": []},
                {"value": 3, "children": [{"value": 4, "children": []}]},
            ],
        }

    def test_nested_errors_carry_full_path(self, node_registry):
        """Test error paths through nested records."""
        validator = SchemaValidator(node_registry.get("Node"), node_registry)
        result = validator.validate({"value": 1, "children": [{"children": [{"value": "x"}]}]})
        assert codes_at(result) == [
            (ErrorCode.MISSING_FIELD, ("children", 0, "value")),
            (ErrorCode.TYPE_MISMATCH, ("children", 0, "children", 0, "value")),
        ]

    def test_unregistered_root_can_reference_itself(self):
        """Test that the root descriptor resolves its own id."""
        schema = (
            SchemaBuilder("Tree")
            .field("name", t.string())
            .field("parent", t.optional(t.ref("Tree")), required=False)
            .build()
        )
        result = SchemaValidator(schema).validate({"name": "leaf", "parent": {"name": "root"}})
        assert result.value == {"name": "leaf", "parent": {"name": "root"}}


class TestCustomTypes:
    """Test custom types from the type registry."""

    def test_base_then_validate(self, type_registry):
        """Test the base representation is matched before the custom function."""
        schema = SchemaBuilder("C").field("email", t.custom("email")).build()
        validator = SchemaValidator(schema, types=type_registry)
        assert validator.validate({"email": "Ada@Example.com"}).value == {"email": "ada@example.com"}
        assert validator.validate({"email": ["a"]}).error_messages == ["email: expected string, got list"]

    def test_result_returning_validator(self, type_registry):
        """Test a custom type returning a ValidationResult."""
        schema = SchemaBuilder("C").field("n", t.custom("even")).build()
        validator = SchemaValidator(schema, types=type_registry)
        assert validator.validate({"n": 4}).valid
        assert validator.validate({"n": 3}).error_messages == ["n: value must be an even integer"]

    def test_constraints_apply_with_base(self, type_registry):
        """Test constraints run on custom types that declare a base."""
        schema = SchemaBuilder("C").field("email", t.custom("email"), constraints=[MaxLength(5)]).build()
        result = SchemaValidator(schema, types=type_registry).validate({"email": "long@example.com"})
        assert result.errors[0].code is ErrorCode.CONSTRAINT_VIOLATION


class TestConfigurationErrors:
    """Test problems detected when a validator is built."""

    def test_unresolved_references_and_types(self):
        """Test every missing reference and custom type is reported at once."""
        schema = (
            SchemaBuilder("Order")
            .field("customer", t.ref("Customer"))
            .field("items", t.array(t.ref("Item")))
            .field("code", t.custom("sku"))
            .build()
        )
        with pytest.raises(SchemaConfigurationError) as exc_info:
            SchemaValidator(schema)
        assert exc_info.value.problems == [
            "unresolved schema reference 'Customer' in 'Order'",
            "unresolved schema reference 'Item' in 'Order'",
            "unknown custom type 'sku' in 'Order'",
        ]

    def test_transitive_references_checked(self, node_registry):
        """Test references of referenced schemas are checked too."""
        node_registry.register_schema(
            SchemaBuilder("Forest").field("trees", t.array(t.ref("Node"))).field("owner", t.ref("Owner")).build()
        )
        wrapper = SchemaBuilder("Park").field("forest", t.ref("Forest")).build()
        with pytest.raises(SchemaConfigurationError, match="unresolved schema reference 'Owner' in 'Forest'"):
            SchemaValidator(wrapper, node_registry)

    def test_invalid_coercion_argument(self, user_schema):
        """Test an unknown per-call coercion mode is a configuration error."""
        with pytest.raises(SchemaConfigurationError, match="Invalid coercion mode 'loose'"):
            SchemaValidator(user_schema).validate({"name": "Ada"}, coercion="loose")


class TestEntryPoints:
    """Test throwing, batch and module-level entry points."""

    def test_validate_or_raise(self, user_schema):
        """Test the throwing variant carries the full error list."""
        validator = SchemaValidator(user_schema)
        assert validator.validate_or_raise({"name": "Ada", "age": "3"}) == {"name": "Ada", "age": 3}
        with pytest.raises(SchemaValidationError) as exc_info:
            validator.validate_or_raise({"age": "oops"})
        assert len(exc_info.value.errors) == 2
        assert exc_info.value.schema_id == "User"

    def test_validate_many_preserves_order(self, user_schema):
        """Test batch results line up with their records on a thread pool."""
        records = [{"name": f"user{i}", "age": i} if i % 3 else {"age": i} for i in range(30)]
        results = SchemaValidator(user_schema).validate_many(records, max_workers=4)
        assert len(results) == 30
        for i, result in enumerate(results):
            assert result.valid == bool(i % 3)
            if result.valid:
                assert result.value["name"] == f"user{i}"

    def test_shared_validator_across_threads(self, user_schema):
        """Test a validator can be shared by concurrent callers."""
        validator = SchemaValidator(user_schema)
        outcomes = []

        def worker(n):
            outcomes.append(validator.validate({"name": "x", "age": n}).value["age"] == n)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert outcomes == [True] * 8

    def test_module_level_validate(self, user_schema):
        """Test the one-shot validate function."""
        assert validate(user_schema, {"name": "Ada"}).value == {"name": "Ada", "age": 0}

    def test_deterministic(self, user_schema):
        """Test identical input produces identical results."""
        validator = SchemaValidator(user_schema)
        first = validator.validate({"age": "x", "extra": 1})
        second = validator.validate({"age": "x", "extra": 1})
        assert first.errors == second.errors


class TestTypeMatcher:
    """Test the matcher directly."""

    def test_match_with_path(self):
        """Test errors are located under the given path."""
        matcher = TypeMatcher()
        result = matcher.match(t.array(t.integer()), [1, "a"], CoercionMode.NONE, ("root",))
        assert [e.path for e in result.errors] == [("root", 1)]

    def test_unresolved_reference_raises(self):
        """Test that a reference without a registry is a configuration error."""
        with pytest.raises(SchemaConfigurationError):
            TypeMatcher().match(t.ref("Missing"), {})


class TestRunCallable:
    """Test normalization of user function outcomes."""

    def test_plain_value(self):
        """Test a returned value is the accepted value."""
        result = run_callable(str.upper, "ab", ErrorCode.TYPE_MISMATCH, ("x",))
        assert result.valid and result.value == "AB"

    def test_value_error_message(self):
        """Test a ValueError message becomes the error message."""

        def reject(value):
            raise ValueError("not allowed")

        result = run_callable(reject, 1, ErrorCode.TYPE_MISMATCH, ("x",))
        assert result.error_messages == ["x: not allowed"]

    def test_other_exception(self):
        """Test any other exception is reported under the path instead of raised."""

        def explode(value):
            raise RuntimeError("backend unavailable")

        result = run_callable(explode, 1, ErrorCode.TYPE_MISMATCH, ("x",))
        assert result.valid is False
        assert result.value == 1
        error = result.errors[0]
        assert error.path == ("x",)
        assert "RuntimeError: backend unavailable" in error.message
        assert error.context["validator"].endswith("explode")
