"""
Function schemas and call-time validation.

A function schema describes a callable: its output schema and one input
sequence schema per arity. Schemas are descriptive; they are enforced only by
wrapping a function with ``schematized``, and then only while the validation
flag is on.
"""
import dataclasses
import functools
import inspect
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple
from shapeguard.utils.logging_config import get_logger
from shapeguard.utils.exceptions import SchemaDefinitionError
from .errors import ValidationError, value_name
from .registry import ValidationFlag, declare_class_schema, get_validation_flag
from .schema import Schema, as_schema, explain, validate
from .structures import One, OptionalKey, Record, SequenceOf, is_schema_key

logger = get_logger(__name__)

VARIADIC = sys.maxsize


def input_schema_arity(input_schema: Any) -> int:
    """Number of positional arguments an input schema takes; VARIADIC if it has a rest schema."""
    sequence = as_schema(input_schema)
    if sequence.has_rest:
        return VARIADIC
    return len(sequence.singles)


@dataclass(frozen=True, init=False)
class FnSchema(Schema):
    """Callables with the given output schema and input arities."""

    output_schema: Any
    input_schemas: Tuple[Any, ...]

    def __init__(self, output_schema: Any, input_schemas: Any):
        input_schemas = list(input_schemas)
        if not input_schemas:
            raise SchemaDefinitionError("A function schema needs at least one arity")
        for input_schema in input_schemas:
            if not isinstance(as_schema(input_schema), SequenceOf):
                raise SchemaDefinitionError(
                    f"Function input schemas must be sequence schemas, got {input_schema!r}"
                )
        object.__setattr__(self, 'output_schema', output_schema)
        object.__setattr__(self, 'input_schemas', tuple(sorted(input_schemas, key=input_schema_arity)))

    def input_schema_for(self, count: int) -> Any:
        """The input schema to check a call with ``count`` positional arguments against."""
        for input_schema in self.input_schemas:
            sequence = as_schema(input_schema)
            if not sequence.has_rest and len(sequence.singles) == count:
                return input_schema
        for input_schema in self.input_schemas:
            sequence = as_schema(input_schema)
            if sequence.has_rest and len(sequence.singles) <= count:
                return input_schema
        # No arity fits; checking reports the element count mismatch.
        return self.input_schemas[-1]

    def check(self, value: Any) -> Any:
        if not callable(value):
            return ValidationError(self, value, lambda: f"callable({value_name(value)})")
        return None

    def explain(self) -> Any:
        return ('=>', explain(self.output_schema)) + tuple(explain(s) for s in self.input_schemas)


def arity(*schemas: Any, rest: Any = None) -> list:
    """
    Build the input schema for one arity.

    Each positional schema becomes ``One(schema, 'arg<i>')`` unless it already
    is a One. ``rest`` is a sequence schema for the remaining arguments and is
    spliced onto the end.
    """
    elements = [
        s if isinstance(s, One) else One(s, f"arg{i}")
        for i, s in enumerate(schemas)
    ]
    if rest is not None:
        if not isinstance(rest, list):
            raise SchemaDefinitionError(
                f"Rest arguments need a sequence schema, got {rest!r}"
            )
        elements.extend(rest)
    SequenceOf(elements)
    return elements


def arrow(output_schema: Any, *schemas: Any, rest: Any = None) -> FnSchema:
    """Single-arity function schema: ``arrow(Int, Int, Num)``."""
    return FnSchema(output_schema, [arity(*schemas, rest=rest)])


def fn_schema(output_schema: Any, *arities: Any) -> FnSchema:
    """Multi-arity function schema: ``fn_schema(Int, arity(Int), arity(Int, Int))``."""
    return FnSchema(output_schema, arities)


def schematized(
    schema: FnSchema,
    name: Optional[str] = None,
    flag: Optional[ValidationFlag] = None
) -> Callable:
    """
    Decorator validating calls against a function schema.

    While ``flag`` (the process-wide flag by default) is on, the positional
    arguments are validated against the matching arity before the call and
    the result against the output schema after it. While it is off the
    wrapper only reads the flag.

    Args:
        schema: Function schema for the decorated function
        name: Name used in error messages, defaults to the function's
        flag: Flag to consult on each call
    """
    if not isinstance(schema, FnSchema):
        raise SchemaDefinitionError(
            f"schematized requires a FnSchema, got {type(schema).__name__}"
        )

    def decorator(func: Callable) -> Callable:
        label = name or func.__qualname__
        signature = inspect.signature(func)
        validation_flag = flag if flag is not None else get_validation_flag()

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            if not validation_flag.is_enabled():
                return func(*args, **kwargs)

            bound = signature.bind(*args, **kwargs)
            positional = list(bound.args)
            validate(schema.input_schema_for(len(positional)), positional, f"Input to {label}")

            result = func(*args, **kwargs)

            validate(schema.output_schema, result, f"Output of {label}")
            return result

        wrapper.__schema__ = schema
        return wrapper

    return decorator


def fn_schema_of(func: Callable) -> Optional[FnSchema]:
    """The schema attached to a schematized function, or None."""
    return getattr(func, '__schema__', None)


@contextmanager
def with_fn_validation(flag: Optional[ValidationFlag] = None):
    """Turn function validation on for the block, restoring the previous state after."""
    validation_flag = flag if flag is not None else get_validation_flag()
    previous = validation_flag.is_enabled()
    validation_flag.enable()
    try:
        yield validation_flag
    finally:
        validation_flag.set(previous)


def schema_record(
    fields: Dict[Any, Any],
    extra_keys: Optional[Dict[Any, Any]] = None,
    extra_validator: Optional[Callable[[Any], Any]] = None
) -> Callable:
    """
    Class decorator declaring a record schema for a dataclass.

    The class is made a dataclass if it is not one already. ``fields`` maps
    each dataclass field to its schema; ``extra_keys`` is a map schema for
    additional attributes and may not contain required keys.

    The class also gets two factories: ``from_map(data)`` builds an instance
    without validation (extra keys become attributes) and
    ``strict_from_map(data, drop_extra_keys=False)`` requires exactly the
    dataclass fields as keys.

    Example:
        >>> @schema_record({'x': Int, 'label': Str})
        ... class Point:
        ...     x: int
        ...     label: str
        >>> check(Point, Point(1.5, 'a'))
        {'x': <not integer(1.5)>}
    """
    extra_keys = extra_keys or {}
    required = [
        k for k in extra_keys
        if not is_schema_key(k) and not isinstance(k, OptionalKey)
    ]
    if required:
        raise SchemaDefinitionError(
            f"extra_keys can not contain required keys: {required!r}"
        )
    if extra_validator is not None and not callable(extra_validator):
        raise SchemaDefinitionError(
            f"extra_validator is not callable: {type(extra_validator).__name__}"
        )

    def decorator(cls: type) -> type:
        if not dataclasses.is_dataclass(cls):
            cls = dataclass(cls)
        names = {f.name for f in dataclasses.fields(cls)}
        unknown = set(fields) - names
        if unknown:
            raise SchemaDefinitionError(
                f"Schema fields {sorted(map(str, unknown))} are not fields of {cls.__name__}"
            )
        record = Record(cls, {**fields, **extra_keys}, extra_validator)
        declare_class_schema(cls, record)
        cls.from_map = staticmethod(record.from_map)
        cls.strict_from_map = staticmethod(record.strict_from_map)
        return cls

    return decorator
