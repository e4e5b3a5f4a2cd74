"""Tests for model validators and computed fields."""

from dataknobs_schema import (
    ComputedField,
    ComputedFieldEngine,
    CustomType,
    Error,
    ErrorCode,
    ModelValidator,
    ModelValidatorPipeline,
    SchemaBuilder,
    SchemaRegistry,
    SchemaValidator,
    TypeMatcher,
    TypeRegistry,
    ValidationResult,
    types as t,
)

SIGNUP = {"first": "Ada", "last": "Lovelace", "password": "s3cret", "confirm": "s3cret"}


class TestSignupScenario:
    """End-to-end checks of the post-field stages."""

    def test_success_adds_computed_field(self, signup_builder):
        """Test a valid record gains its computed field."""
        result = SchemaValidator(signup_builder.build()).validate(SIGNUP)
        assert result.valid
        assert result.value["full_name"] == "Ada Lovelace"

    def test_failed_model_validator_skips_computed_fields(self, signup_builder):
        """Test one model error is reported and no computed field is added."""
        result = SchemaValidator(signup_builder.build()).validate({**SIGNUP, "confirm": "other"})
        assert not result.valid
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.code is ErrorCode.MODEL_VALIDATION_FAILED
        assert error.path == ()
        assert error.message == "passwords do not match"
        assert error.context["validator"].endswith("passwords_match")
        assert "full_name" not in result.value

    def test_field_errors_skip_model_validators(self, signup_builder):
        """Test model validators only run after the field stage succeeds."""
        calls = []
        builder = signup_builder.model_validator(lambda r: calls.append(r) or r, name="spy")
        result = SchemaValidator(builder.build()).validate({"first": "Ada"})
        assert [e.code for e in result.errors] == [ErrorCode.MISSING_FIELD] * 3
        assert calls == []

    def test_computed_type_mismatch(self):
        """Test a computed value of the wrong type is reported at its field."""
        schema = (
            SchemaBuilder("P")
            .field("first", t.string())
            .computed_field("full_name", t.string(), lambda r: 42)
            .build()
        )
        result = SchemaValidator(schema).validate({"first": "Ada"})
        assert [(e.code, e.path) for e in result.errors] == [
            (ErrorCode.COMPUTED_FIELD_TYPE_MISMATCH, ("full_name",))
        ]
        assert result.errors[0].context["errors"][0]["code"] == "type_mismatch"

    def test_computed_values_are_not_coerced(self):
        """Test re-validation uses exact matching."""
        schema = SchemaBuilder("P").computed_field("count", t.integer(), lambda r: "3").build()
        result = SchemaValidator(schema).validate({}, coercion="aggressive")
        assert result.errors[0].code is ErrorCode.COMPUTED_FIELD_TYPE_MISMATCH

    def test_nested_record_stages_use_nested_path(self):
        """Test model errors inside a referenced record carry its path."""
        inner = SchemaBuilder("Range").field("low", t.integer()).field("high", t.integer())
        inner.model_validator(lambda r: r if r["low"] <= r["high"] else ValidationResult.failure(r, "low > high"))
        registry = SchemaRegistry()
        registry.register_schema(inner.build())
        outer = SchemaBuilder("Window").field("range", t.ref("Range")).build()
        result = SchemaValidator(outer, registry).validate({"range": {"low": 5, "high": 1}})
        assert [(e.code, e.path) for e in result.errors] == [
            (ErrorCode.MODEL_VALIDATION_FAILED, ("range",))
        ]


class TestModelValidatorPipeline:
    """Test the pipeline contract directly."""

    def test_validators_chain(self):
        """Test each validator receives the previous output."""
        pipeline = ModelValidatorPipeline(
            [
                ModelValidator(lambda r: {**r, "a": r["a"] + 1}),
                ModelValidator(lambda r: {**r, "b": r["a"] * 10}),
            ]
        )
        result = pipeline.apply({"a": 1})
        assert result.value == {"a": 2, "b": 20}

    def test_first_failure_halts(self):
        """Test later validators do not run after a failure."""
        calls = []

        def fail(record):
            raise TypeError("bad")

        pipeline = ModelValidatorPipeline([ModelValidator(fail), ModelValidator(lambda r: calls.append(1) or r)])
        result = pipeline.apply({})
        assert result.error_messages == ["bad"]
        assert calls == []

    def test_result_errors_are_recoded_and_prefixed(self):
        """Test reasons from a ValidationResult are normalized under the path."""
        def check(record):
            return ValidationResult(
                False,
                record,
                [Error(("end",), ErrorCode.CONSTRAINT_VIOLATION, "end before start"), Error((), ErrorCode.TYPE_MISMATCH, "x")],
            )

        result = ModelValidatorPipeline([ModelValidator(check, name="dates")]).apply({}, ("event",))
        assert [(e.code, e.path) for e in result.errors] == [
            (ErrorCode.MODEL_VALIDATION_FAILED, ("event", "end")),
            (ErrorCode.MODEL_VALIDATION_FAILED, ("event",)),
        ]
        assert result.errors[0].context["reason_code"] == "constraint_violation"
        assert result.errors[0].context["validator"] == "dates"

    def test_non_mapping_return(self):
        """Test that returning something other than a record is an error."""
        result = ModelValidatorPipeline([ModelValidator(lambda r: None, name="noop")]).apply({})
        assert result.error_messages == ["model validator noop returned null, expected a record"]

    def test_unexpected_exception(self):
        """Test that unexpected exceptions become errors."""
        result = ModelValidatorPipeline([ModelValidator(lambda r: r["missing"], name="lookup")]).apply({})
        assert result.errors[0].code is ErrorCode.MODEL_VALIDATION_FAILED
        assert "KeyError" in result.errors[0].message


class TestComputedFieldEngine:
    """Test the computed field contract directly."""

    def test_later_fields_see_earlier_values(self):
        """Test computed fields run in order over the growing record."""
        engine = ComputedFieldEngine(
            [
                ComputedField("double", t.integer(), lambda r: r["n"] * 2),
                ComputedField("quad", t.integer(), lambda r: r["double"] * 2),
            ],
            TypeMatcher(),
        )
        assert engine.apply({"n": 2}).value == {"n": 2, "double": 4, "quad": 8}

    def test_overwrites_existing_key(self):
        """Test a computed field replaces a same-named input value."""
        engine = ComputedFieldEngine([ComputedField("n", t.integer(), lambda r: 7)], TypeMatcher())
        assert engine.apply({"n": 1}).value == {"n": 7}

    def test_exception_becomes_error(self):
        """Test a raising function is reported at the field."""
        engine = ComputedFieldEngine([ComputedField("ratio", t.float_(), lambda r: 1 / 0)], TypeMatcher())
        result = engine.apply({}, ("stats",))
        assert [(e.code, e.path) for e in result.errors] == [
            (ErrorCode.COMPUTED_FIELD_FAILED, ("stats", "ratio"))
        ]
        assert "ZeroDivisionError" in result.errors[0].message

    def test_failed_result_becomes_error(self):
        """Test a failed ValidationResult is reported at the field."""
        engine = ComputedFieldEngine(
            [ComputedField("x", t.integer(), lambda r: ValidationResult.failure(None, "cannot compute"))],
            TypeMatcher(),
        )
        result = engine.apply({})
        assert result.errors[0].code is ErrorCode.COMPUTED_FIELD_FAILED
        assert result.error_messages == ["x: cannot compute"]

    def test_unexpected_exception_during_type_check(self):
        """Test a custom type raising while checking a computed value."""

        def check(value):
            raise RuntimeError("lookup table missing")

        types = TypeRegistry()
        types.register_type(CustomType("code", validate=check))
        engine = ComputedFieldEngine([ComputedField("c", t.custom("code"), lambda r: "x")], TypeMatcher(types=types))
        result = engine.apply({})
        assert [(e.code, e.path) for e in result.errors] == [(ErrorCode.COMPUTED_FIELD_TYPE_MISMATCH, ("c",))]
        assert "RuntimeError" in result.errors[0].context["errors"][0]["message"]
