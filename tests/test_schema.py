"""Tests for leaf schemas, combinators and the check/explain/validate entry points."""
import datetime
import re
import uuid
from collections.abc import Sized
from typing import Protocol

import pytest

from shapeguard import (
    check,
    explain,
    validate,
    as_schema,
    ClassSchema,
    Predicate,
    RegexSchema,
    EqualTo,
    OneOf,
    Satisfies,
    Either,
    Both,
    Maybe,
    Named,
    Conditional,
    Recursive,
    One,
    Int,
    Num,
    Str,
    Bool,
    Inst,
    Uuid,
    Anything,
    ValidationError,
    NamedError,
    SchemaDefinitionError,
    SchemaValidationError,
)
from shapeguard.validation import THROWS


def positive(value):
    return value > 0


class TestLeafSchemas:
    """Tests for leaf schemas."""

    def test_int(self):
        """Test integer schema rejects floats and booleans."""
        assert check(Int, 3) is None
        assert check(Int, 1.5) is not None
        assert check(Int, True) is not None
        assert str(check(Int, 1.5)) == "not integer(1.5)"

    def test_num(self):
        """Test number schema."""
        assert check(Num, 2.5) is None
        assert check(Num, 2) is None
        assert check(Num, '2') is not None
        assert check(Num, False) is not None

    def test_class_schema(self):
        """Test plain classes act as isinstance schemas."""
        assert check(str, 'a') is None
        assert check(Str, 'a') is None
        assert str(check(Str, 1)) == "not isinstance(1, str)"
        assert check(Bool, True) is None
        assert check(Bool, 1) is not None

    def test_inst_and_uuid(self):
        """Test datetime and UUID schemas."""
        assert check(Inst, datetime.datetime(2024, 1, 1)) is None
        assert check(Inst, '2024-01-01') is not None
        assert check(Uuid, uuid.uuid4()) is None
        assert check(Uuid, str(uuid.uuid4())) is not None

    def test_anything(self):
        """Test Anything matches every value."""
        for value in [None, 1, 'x', [], {}]:
            assert check(Anything, value) is None
        assert explain(Anything) == 'Any'

    def test_equal_to(self):
        """Test EqualTo."""
        assert check(EqualTo(3), 3) is None
        assert str(check(EqualTo(3), 4)) == "not 4 == 3"
        assert explain(EqualTo('x')) == ('eq', 'x')

    def test_one_of(self):
        """Test OneOf, including unhashable values."""
        schema = OneOf('a', 'b')
        assert check(schema, 'a') is None
        assert str(check(schema, 'c')) == "not 'c' in {'a', 'b'}"
        assert check(schema, ['a']) is not None
        assert explain(OneOf('b', 'a')) == ('enum', 'a', 'b')

    def test_one_of_requires_values(self):
        """Test OneOf with no values is a schema error."""
        with pytest.raises(SchemaDefinitionError):
            OneOf()

    def test_predicate(self):
        """Test predicate schemas use their name in errors."""
        schema = Predicate(positive, 'positive')
        assert check(schema, 2) is None
        assert str(check(schema, -1)) == "not positive(-1)"
        assert explain(schema) == 'positive'
        assert explain(Predicate(positive)) == 'positive'

    def test_predicate_that_raises(self):
        """Test a raising predicate is reported as a throws failure."""
        error = check(Predicate(positive, 'positive'), 'x')
        assert isinstance(error, ValidationError)
        assert error.fail_explanation == THROWS
        assert str(error).startswith("throws: positive('x') raised TypeError(")

    def test_predicate_requires_callable(self):
        """Test a non-callable predicate is a schema error."""
        with pytest.raises(SchemaDefinitionError):
            Predicate(3)

    def test_regex(self):
        """Test compiled patterns match strings."""
        pattern = re.compile(r'^\d+$')
        assert isinstance(as_schema(pattern), RegexSchema)
        assert check(pattern, '12') is None
        assert check(pattern, '1a') is not None
        assert check(pattern, 12) is not None
        assert explain(pattern) == ('regex', r'^\d+$')

    def test_satisfies(self):
        """Test capability schemas."""
        assert check(Satisfies(Sized), [1]) is None
        assert check(Satisfies(Sized), 3) is not None

    def test_satisfies_requires_runtime_protocol(self):
        """Test a protocol that cannot be checked at runtime is rejected."""
        class Closeable(Protocol):
            def close(self): ...

        with pytest.raises(SchemaDefinitionError):
            Satisfies(Closeable)

    def test_not_a_schema(self):
        """Test values that cannot be schemas raise."""
        with pytest.raises(SchemaDefinitionError):
            as_schema(42)
        with pytest.raises(SchemaDefinitionError):
            ClassSchema('str')


class TestCombinators:
    """Tests for schema combinators."""

    def test_either(self):
        """Test union schema."""
        schema = Either(Int, Str)
        assert check(schema, 1) is None
        assert check(schema, 'a') is None
        assert str(check(schema, 1.5)) == "not matches_any_branch(1.5)"
        assert explain(schema) == ('either', 'integer', 'str')

    def test_both(self):
        """Test intersection schema returns the first failing branch's error."""
        schema = Both(Num, Predicate(positive, 'positive'))
        assert check(schema, 2) is None
        assert str(check(schema, -1)) == "not positive(-1)"
        assert str(check(schema, 'a')) == "not number('a')"

    def test_maybe(self):
        """Test optional schema."""
        assert check(Maybe(Int), None) is None
        assert check(Maybe(Int), 1) is None
        assert check(Maybe(Int), 'x') is not None
        assert explain(Maybe(Int)) == ('maybe', 'integer')

    def test_named(self):
        """Test named schema tags errors."""
        error = check(Named(Int, 'count'), 'x')
        assert isinstance(error, NamedError)
        assert error.name == 'count'
        assert str(error) == "count: <not integer('x')>"
        assert check(Named(Int, 'count'), 1) is None

    def test_conditional(self):
        """Test predicate dispatch."""
        schema = Conditional(
            lambda v: isinstance(v, int), Int,
            lambda v: isinstance(v, str), re.compile('^a')
        )
        assert check(schema, 1) is None
        assert check(schema, 'abc') is None
        assert check(schema, 'xyz') is not None
        assert str(check(schema, 1.5)) == "not matches_some_condition(1.5)"

    def test_conditional_malformed(self):
        """Test conditional needs predicate/schema pairs."""
        with pytest.raises(SchemaDefinitionError):
            Conditional()
        with pytest.raises(SchemaDefinitionError):
            Conditional(lambda v: True)
        with pytest.raises(SchemaDefinitionError):
            Conditional('not callable', Int)

    def test_recursive(self):
        """Test late-bound self-referential schemas."""
        tree = [One(Int, 'value'), Recursive(lambda: tree, 'tree')]

        assert check(tree, [1, [2], [3, [4]]]) is None

        error = check(tree, [1, [2.5]])
        assert error[0] is None
        assert isinstance(error[1][0], NamedError)
        assert error[1][0].name == 'value'
        assert explain(tree) == [('one', 'integer', 'value'), ('recursive', 'tree')]

    def test_branches_share_iterator(self):
        """Test each branch of a combinator sees the whole of a one-shot iterator."""
        assert check(Either([One(Str, 'a')], [One(Int, 'a')]), iter([1])) is None
        assert check(Both([Num], [Int]), (x for x in [1, 2])) is None
        assert check(Conditional(lambda v: isinstance(v, list), [Int]), iter([1, 2])) is None
        assert check(Either([One(Str, 'a')], [One(Int, 'a')]), iter(['x', 1])) is not None


class TestValidate:
    """Tests for validate and error rendering."""

    def test_validate_returns_value(self):
        """Test validate passes matching values through."""
        value = {'a': 1}
        assert validate({'a': Int}, value) is value

    def test_validate_raises(self):
        """Test validate raises with the structured error attached."""
        with pytest.raises(SchemaValidationError) as exc_info:
            validate(Int, 'x', 'Input to parse')

        exc = exc_info.value
        assert str(exc).startswith("Input to parse does not match schema")
        assert exc.error == check(Int, 'x')
        assert exc.value == 'x'
        assert exc.to_dict()['error'] == "<not integer('x')>"

    def test_schema_validate_method(self):
        """Test the method form of validate."""
        assert Int.validate(3) == 3
        with pytest.raises(SchemaValidationError):
            Int.validate('3')

    def test_error_repr(self):
        """Test validation errors print inside angle brackets."""
        assert repr(check(Int, 'x')) == "<not integer('x')>"

    def test_long_values_print_as_type(self):
        """Test large values are abbreviated in expectations."""
        error = check(Int, 'x' * 100)
        assert str(error) == "not integer(<str>)"

    def test_error_equality(self):
        """Test errors compare by schema, value and expectation."""
        assert check(Int, 'x') == check(Int, 'x')
        assert check(Int, 'x') != check(Int, 'y')
