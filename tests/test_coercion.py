"""Tests for coercer compilation and the reference matchers."""
import datetime
import enum
import threading
import uuid
from dataclasses import dataclass, field

import numpy as np
import pytest

from shapeguard import (
    build_coercer,
    check,
    json_coercion_matcher,
    string_coercion_matcher,
    first_matcher,
    schema_record,
    declare_class_schema,
    identity_matcher,
    Record,
    Recursive,
    Coercer,
    Either,
    Both,
    Maybe,
    Named,
    OneOf,
    One,
    OptionalKey,
    Predicate,
    Int,
    Num,
    Str,
    Bool,
    Inst,
    Uuid,
    Failure,
    NamedError,
    is_error,
    error_val,
    SchemaValidationError,
)
from shapeguard.coercion import WalkerBuilder
from shapeguard.validation import COERCION_FAILED, DUPLICATE_KEY


class Color(enum.Enum):
    RED = 'red'
    GREEN = 'green'


class TestCoercer:
    """Tests for the compiled coercer."""

    def test_json_numbers(self):
        """Test integral floats become ints where an integer is expected."""
        coerce = build_coercer({'i': Int, 'n': Num}, json_coercion_matcher)

        result = coerce({'i': 1.0, 'n': 3.0})

        assert result == {'i': 1, 'n': 3.0}
        assert type(result['i']) is int

    def test_json_failure_is_keyed(self):
        """Test a failed coercion reports only the failing key."""
        coerce = build_coercer({'i': Int, OptionalKey('n'): Num}, json_coercion_matcher)

        result = coerce({'i': 1.1})

        assert is_error(result)
        error = error_val(result)
        assert list(error) == ['i']
        assert str(error['i']) == "not integer(1.1)"

    def test_successful_result_is_not_error(self):
        """Test error_val of a coerced value is None."""
        result = build_coercer(Int, json_coercion_matcher)(2.0)
        assert not is_error(result)
        assert error_val(result) is None

    def test_identity_coercion_is_checking(self):
        """Test without a matcher coercion only checks."""
        coerce = build_coercer({'a': Int})
        assert coerce({'a': 1}) == {'a': 1}
        assert isinstance(coerce({'a': '1'}), Failure)

    def test_recursive_raw_schema(self):
        """Test a schema list containing itself."""
        tree = [One(Num, 'n')]
        tree.append(tree)
        coerce = build_coercer(tree, string_coercion_matcher)

        assert coerce(["1", ["2", ["3"], ["4"]]]) == [1, [2, [3], [4]]]
        assert check(tree, [1, [2, [3], [4]]]) is None

    def test_idempotent(self):
        """Test coercing a coerced value returns it unchanged."""
        coerce = build_coercer(
            {'i': Int, 'tags': [Str], 'when': Inst},
            string_coercion_matcher
        )
        once = coerce({'i': '3', 'tags': ['a'], 'when': '2024-01-02T03:04:05'})
        assert coerce(once) == once

    def test_coerced_values_check(self):
        """Test coerced output matches the schema."""
        schema = {'i': Int, 'flags': {Bool}, 'pair': [One(Int, 'a'), One(Num, 'b')]}
        coerce = build_coercer(schema, json_coercion_matcher)

        result = coerce({'i': 2.0, 'flags': ['true', False], 'pair': (1.0, 2.5)})

        assert result == {'i': 2, 'flags': {True, False}, 'pair': (1, 2.5)}
        assert check(schema, result) is None

    def test_tuple_type_preserved(self):
        """Test tuple input coerces to a tuple."""
        coerce = build_coercer([Int], json_coercion_matcher)
        assert coerce((1.0, 2.0)) == (1, 2)
        assert coerce([1.0]) == [1]

    def test_generator_input(self):
        """Test one-shot iterables coerce to lists."""
        coerce = build_coercer([Int], json_coercion_matcher)
        assert coerce(x for x in [1.0, 2.0]) == [1, 2]

    def test_positional_errors_named(self):
        """Test sequence failures under coercion carry position names."""
        coerce = build_coercer([One(Int, 'x')], json_coercion_matcher)
        error = error_val(coerce([1.5]))
        assert isinstance(error[0], NamedError)
        assert error[0].name == 'x'

    def test_validate(self):
        """Test the raising form of a coercer."""
        coerce = build_coercer({'a': Int}, json_coercion_matcher)
        assert coerce.validate({'a': 2.0}) == {'a': 2}

        with pytest.raises(SchemaValidationError) as exc_info:
            coerce.validate({'a': 'x'}, 'Request body')
        assert str(exc_info.value).startswith("Request body could not be coerced")

    def test_walkers_memoized(self):
        """Test shared schema nodes compile once."""
        builder = WalkerBuilder()
        builder.walker({'a': Int, 'b': Int})
        assert builder.size == 2

    def test_concurrent_use(self):
        """Test a coercer can be shared between threads."""
        coerce = build_coercer([Int], string_coercion_matcher)
        results = []

        def worker(n):
            results.append(coerce([str(i) for i in range(n)]))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 9)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(len(r) for r in results) == list(range(1, 9))
        assert all(check([Int], r) is None for r in results)


class TestCombinatorCoercion:
    """Tests for coercion through combinators."""

    def test_either_first_success(self):
        """Test the first branch that coerces wins."""
        coerce = build_coercer(Either(Int, Str), string_coercion_matcher)
        assert coerce("5") == 5
        assert coerce("abc") == "abc"
        assert is_error(coerce(1.5))

    def test_both_chains(self):
        """Test intersection branches see the previous branch's output."""
        schema = Both(Int, Predicate(lambda v: v > 0, 'positive'))
        coerce = build_coercer(schema, string_coercion_matcher)
        assert coerce("3") == 3
        assert is_error(coerce("-3"))

    def test_maybe(self):
        """Test None passes through optional schemas."""
        coerce = build_coercer(Maybe(Int), string_coercion_matcher)
        assert coerce(None) is None
        assert coerce("4") == 4

    def test_named(self):
        """Test named schema errors under coercion."""
        coerce = build_coercer(Named(Int, 'count'), string_coercion_matcher)
        error = error_val(coerce("x"))
        assert isinstance(error, NamedError)
        assert error.name == 'count'

    def test_custom_matcher_first(self):
        """Test a user matcher placed first overrides the reference one."""
        def upper(schema):
            if schema == Str:
                return str.upper
            return None

        coerce = build_coercer({'name': Str, 'n': Int}, first_matcher(upper, json_coercion_matcher))
        assert coerce({'name': 'ab', 'n': 2.0}) == {'name': 'AB', 'n': 2}


class TestStringMatcher:
    """Tests for the string coercion matcher."""

    def test_scalars(self):
        """Test text to numbers, booleans, datetimes and UUIDs."""
        ident = uuid.uuid4()
        schema = {'count': Int, 'ratio': Num, 'flag': Bool, 'when': Inst, 'id': Uuid}
        coerce = build_coercer(schema, string_coercion_matcher)

        result = coerce({
            'count': '12',
            'ratio': '0.5',
            'flag': 'TRUE',
            'when': '2024-01-02T03:04:05',
            'id': str(ident),
        })

        assert result == {
            'count': 12,
            'ratio': 0.5,
            'flag': True,
            'when': datetime.datetime(2024, 1, 2, 3, 4, 5),
            'id': ident,
        }

    def test_whole_numbers_stay_ints(self):
        """Test number text without a fraction parses as int."""
        coerce = build_coercer(Num, string_coercion_matcher)
        assert type(coerce('7')) is int
        assert coerce('7.25') == 7.25

    def test_float_class(self):
        """Test the float class parses text as float."""
        coerce = build_coercer(float, string_coercion_matcher)
        assert coerce('7') == 7.0
        assert type(coerce('7')) is float

    def test_unparseable(self):
        """Test unparseable text is a coercion failure."""
        coerce = build_coercer({'count': Int}, string_coercion_matcher)

        error = error_val(coerce({'count': 'abc'}))

        assert error['count'].fail_explanation == COERCION_FAILED
        assert str(error['count']).startswith("coercion failed: string_to_int('abc') raised ValueError")

    def test_bad_boolean(self):
        """Test booleans accept only true and false."""
        coerce = build_coercer(Bool, string_coercion_matcher)
        assert coerce('false') is False
        assert is_error(coerce('yes'))

    def test_one_of(self):
        """Test text maps onto enumerated values."""
        coerce = build_coercer(OneOf(1, 2, 3), string_coercion_matcher)
        assert coerce('2') == 2
        assert is_error(coerce('4'))

    def test_json_one_of_does_not_parse(self):
        """Test the JSON matcher leaves text for non-enum members alone."""
        coerce = build_coercer(OneOf(1, 2, 3), json_coercion_matcher)
        assert is_error(coerce('2'))


class TestJsonMatcher:
    """Tests for the JSON coercion matcher."""

    def test_bool_case_sensitive(self):
        """Test JSON booleans are case-sensitive."""
        coerce = build_coercer(Bool, json_coercion_matcher)
        assert coerce('true') is True
        assert coerce('false') is False
        assert is_error(coerce('True'))

    def test_enum(self):
        """Test enum members from values and names."""
        coerce = build_coercer({'c': Color}, json_coercion_matcher)
        assert coerce({'c': 'red'}) == {'c': Color.RED}
        assert coerce({'c': 'GREEN'}) == {'c': Color.GREEN}
        assert coerce({'c': Color.RED}) == {'c': Color.RED}

        error = error_val(coerce({'c': 'blue'}))
        assert error['c'].fail_explanation == COERCION_FAILED

    def test_sets_from_lists(self):
        """Test JSON arrays become sets."""
        coerce = build_coercer({Int}, json_coercion_matcher)
        assert coerce([1.0, 2.0]) == {1, 2}
        assert coerce(frozenset([1])) == frozenset([1])

    def test_numpy_scalars(self):
        """Test numpy scalars become native Python values."""
        coerce = build_coercer({'i': Int, 'x': Num, 'b': Bool}, json_coercion_matcher)

        result = coerce({'i': np.int64(3), 'x': np.float32(0.5), 'b': np.bool_(True)})

        assert result == {'i': 3, 'x': 0.5, 'b': True}
        assert type(result['i']) is int
        assert type(result['x']) is float
        assert type(result['b']) is bool


class TestRecordCoercion:
    """Tests for coercing into declared records."""

    def test_record_from_dict(self):
        """Test a mapping coerces into a declared record."""
        @schema_record({'x': Int, 'y': Int})
        class Vec:
            x: int
            y: int

        coerce = build_coercer(Vec, json_coercion_matcher)

        assert coerce({'x': 1.0, 'y': 2}) == Vec(1, 2)
        assert coerce(Vec(1.0, 2)) == Vec(1, 2)
        assert is_error(coerce({'x': 1}))
        assert is_error(coerce([1, 2]))

    def test_nested_records(self):
        """Test records inside containers."""
        @schema_record({'name': Str, 'size': Int})
        class Item:
            name: str
            size: int

        coerce = build_coercer({'items': [Item]}, string_coercion_matcher)

        result = coerce({'items': [{'name': 'a', 'size': '1'}, {'name': 'b', 'size': '2'}]})

        assert result == {'items': [Item('a', 1), Item('b', 2)]}

    def test_extra_validator(self):
        """Test the record validator runs on the built instance."""
        @schema_record({'lo': Int, 'hi': Int}, extra_validator=lambda r: r.lo <= r.hi)
        class Span:
            lo: int
            hi: int

        coerce = build_coercer(Span, string_coercion_matcher)
        assert coerce({'lo': '1', 'hi': '2'}) == Span(1, 2)
        assert is_error(coerce({'lo': '3', 'hi': '2'}))

    def test_coercer_type(self):
        """Test build_coercer returns a Coercer."""
        assert isinstance(build_coercer(Int), Coercer)

    def test_plain_class_round_trip(self):
        """Test a valid instance of a plain record class comes back unchanged."""
        class Pair:
            def __init__(self, a):
                self.a = a
                self.b = a * 2

        declare_class_schema(Pair, Record(Pair, {'a': Int, 'b': Int}))
        pair = Pair(1)

        assert check(Pair, pair) is None
        assert build_coercer(Pair, identity_matcher)(pair) is pair

    def test_plain_class_coerced_copy(self):
        """Test coerced fields go onto a copy without calling __init__."""
        class Span:
            def __init__(self, start):
                self.start = start
                self.end = start + 1

        declare_class_schema(Span, Record(Span, {'start': Int, 'end': Int}))
        span = Span(1.0)

        result = build_coercer(Span, json_coercion_matcher)(span)

        assert result is not span
        assert type(result.start) is int
        assert (result.start, result.end) == (1, 2)
        assert span.start == 1.0

    def test_init_false_field(self):
        """Test dataclass fields excluded from __init__."""
        @schema_record({'a': Int, 'b': Int})
        @dataclass
        class Counter:
            a: int
            b: int = field(init=False, default=0)

        coerce = build_coercer(Counter, json_coercion_matcher)

        assert check(Counter, Counter(1)) is None
        from_dict = coerce({'a': 1.0, 'b': 3})
        assert (from_dict.a, from_dict.b) == (1, 3)
        from_instance = coerce(Counter(2.0))
        assert (from_instance.a, from_instance.b) == (2, 0)
        assert type(from_instance.a) is int


class TestLazyInput:
    """Tests for one-shot iterables under branching schemas."""

    def test_either_generator(self):
        """Test every branch of a union sees the whole iterator."""
        schema = Either([One(Str, 'a')], [One(Int, 'a')])
        coerce = build_coercer(schema, json_coercion_matcher)
        assert coerce(iter([1.0])) == [1]
        assert is_error(coerce(iter([1.5])))

    def test_both_generator(self):
        """Test every branch of an intersection sees the whole iterator."""
        schema = Both([Num], [Int])
        coerce = build_coercer(schema, json_coercion_matcher)
        assert coerce(x for x in [1.0, 2.0]) == [1, 2]


class TestKeyCoercion:
    """Tests for catch-all keys under coercion."""

    def test_coerced_keys(self):
        """Test text keys coerce to integer keys."""
        coerce = build_coercer({Int: Str}, string_coercion_matcher)
        assert coerce({'1': 'a', '2': 'b'}) == {1: 'a', 2: 'b'}

    def test_colliding_keys(self):
        """Test two keys that coerce to the same key are reported."""
        coerce = build_coercer({Int: Str}, string_coercion_matcher)

        error = error_val(coerce({'1': 'a', 1: 'b'}))

        assert list(error) == [1]
        assert error[1].fail_explanation == DUPLICATE_KEY
        assert str(error[1]) == "duplicate key: 1 and '1' both give key 1"


class TestRecursiveCoercion:
    """Tests for late-bound recursive schemas under coercion."""

    def test_recursive_reference(self):
        """Test a getter returning the same schema object coerces nested input."""
        tree = [One(Int, 'value'), Recursive(lambda: tree, 'tree')]
        coerce = build_coercer(tree, string_coercion_matcher)
        assert coerce(["1", ["2"], ["3", ["4"]]]) == [1, [2], [3, [4]]]
