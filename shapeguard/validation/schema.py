"""
Schema variants and the check/explain/validate entry points.

Plain Python values act as schemas too (see ``as_schema``): a class checks
``isinstance``, a dict is a map schema, a list a sequence schema, a
one-element set a set schema and a compiled regex matches strings.
"""
import datetime
import numbers
import re
import uuid
from collections.abc import Iterator
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple
from shapeguard.utils.logging_config import get_logger
from shapeguard.utils.exceptions import SchemaDefinitionError, SchemaValidationError
from .errors import ValidationError, NamedError, THROWS, value_name, fn_name
from .registry import class_schema

logger = get_logger(__name__)


class Schema(ABC):
    """Base class for schema variants."""

    @abstractmethod
    def check(self, value: Any) -> Any:
        """Return None if ``value`` matches, else a structured error."""

    @abstractmethod
    def explain(self) -> Any:
        """Return a printable description mirroring the schema's shape."""

    def validate(self, value: Any, context: Optional[str] = None) -> Any:
        """Return ``value`` unchanged, or raise SchemaValidationError."""
        return validate(self, value, context)


def as_schema(schema: Any) -> Schema:
    """Normalize a schema written with plain Python values into a Schema."""
    if isinstance(schema, Schema):
        return schema
    if isinstance(schema, type):
        return ClassSchema(schema)
    if isinstance(schema, dict):
        return MapOf(schema)
    if isinstance(schema, list):
        return SequenceOf(schema)
    if isinstance(schema, (set, frozenset)):
        return SetOf.from_set(schema)
    if isinstance(schema, re.Pattern):
        return RegexSchema(schema)
    raise SchemaDefinitionError(
        f"Not a schema: {schema!r}",
        details={'schema_type': type(schema).__name__}
    )


def check(schema: Any, value: Any) -> Any:
    """
    Check ``value`` against ``schema``.

    Returns None when the value matches. Otherwise returns an error shaped
    like the value, with ValidationError/NamedError at each failing leaf.
    Only malformed schemas raise.
    """
    return as_schema(schema).check(value)


def explain(schema: Any) -> Any:
    """Return a printable description of ``schema``."""
    return as_schema(schema).explain()


def validate(schema: Any, value: Any, context: Optional[str] = None) -> Any:
    """
    Return ``value`` if it matches ``schema``, else raise SchemaValidationError.

    Args:
        schema: Schema to check against
        value: Value to check
        context: Prefix for the error message, e.g. "Input to parse"
    """
    error = check(schema, value)
    if error is not None:
        message = f"{context or 'Value'} does not match schema: {error!r}"
        logger.debug(message)
        raise SchemaValidationError(
            message,
            error=error,
            value=value,
            details={'context': context}
        )
    return value


def replayable(value: Any) -> Any:
    """A one-shot iterator as a list, so that several branches can walk it."""
    if isinstance(value, Iterator):
        return list(value)
    return value


# Leaf schemas

@dataclass(frozen=True)
class ClassSchema(Schema):
    """Instances of ``klass``, refined by the schema declared for it, if any."""

    klass: type

    def __post_init__(self):
        if not isinstance(self.klass, type):
            raise SchemaDefinitionError(
                f"ClassSchema requires a class, got {self.klass!r}",
                details={'schema_type': type(self.klass).__name__}
            )

    def check(self, value: Any) -> Any:
        if not isinstance(value, self.klass):
            return ValidationError(
                self, value,
                lambda: f"isinstance({value_name(value)}, {self.klass.__name__})"
            )
        declared = class_schema(self.klass)
        if declared is not None:
            return check(declared, value)
        return None

    def explain(self) -> Any:
        declared = class_schema(self.klass)
        if declared is not None:
            return explain(declared)
        return self.klass.__name__


@dataclass(frozen=True)
class AnythingSchema(Schema):
    """Matches every value."""

    def check(self, value: Any) -> Any:
        return None

    def explain(self) -> Any:
        return 'Any'


@dataclass(frozen=True)
class Predicate(Schema):
    """
    Values for which ``pred`` returns a truthy result.

    A predicate that raises is reported as a ``throws`` failure rather
    than a plain mismatch.
    """

    pred: Callable[[Any], Any]
    name: Optional[str] = None

    def __post_init__(self):
        if not callable(self.pred):
            raise SchemaDefinitionError(f"Predicate requires a callable, got {self.pred!r}")

    @property
    def pred_name(self) -> str:
        return self.name or fn_name(self.pred)

    def check(self, value: Any) -> Any:
        try:
            matched = self.pred(value)
        except Exception as e:
            raised = repr(e)
            return ValidationError(
                self, value,
                lambda: f"{self.pred_name}({value_name(value)}) raised {raised}",
                THROWS
            )
        if not matched:
            return ValidationError(
                self, value, lambda: f"{self.pred_name}({value_name(value)})"
            )
        return None

    def explain(self) -> Any:
        return self.pred_name


@dataclass(frozen=True)
class RegexSchema(Schema):
    """Strings in which ``pattern`` finds a match."""

    pattern: re.Pattern

    def check(self, value: Any) -> Any:
        if not isinstance(value, str):
            return ValidationError(self, value, lambda: f"isinstance({value_name(value)}, str)")
        if self.pattern.search(value) is None:
            return ValidationError(
                self, value,
                lambda: f"re.search({self.pattern.pattern!r}, {value_name(value)})"
            )
        return None

    def explain(self) -> Any:
        return ('regex', self.pattern.pattern)


@dataclass(frozen=True)
class EqualTo(Schema):
    """A single permitted value."""

    expected: Any

    def check(self, value: Any) -> Any:
        if value != self.expected:
            return ValidationError(
                self, value,
                lambda: f"{value_name(value)} == {value_name(self.expected)}"
            )
        return None

    def explain(self) -> Any:
        return ('eq', self.expected)


@dataclass(frozen=True, init=False)
class OneOf(Schema):
    """Any of a fixed set of values."""

    values: frozenset

    def __init__(self, *values: Any):
        if not values:
            raise SchemaDefinitionError("OneOf requires at least one value")
        object.__setattr__(self, 'values', frozenset(values))

    def check(self, value: Any) -> Any:
        try:
            found = value in self.values
        except TypeError:
            found = False
        if not found:
            return ValidationError(
                self, value,
                lambda: f"{value_name(value)} in {{{', '.join(self._names())}}}"
            )
        return None

    def _names(self):
        return sorted(value_name(v) for v in self.values)

    def explain(self) -> Any:
        return ('enum',) + tuple(sorted(self.values, key=repr))


@dataclass(frozen=True)
class Satisfies(Schema):
    """Values implementing a capability: an ABC or a runtime-checkable Protocol."""

    protocol: type

    def __post_init__(self):
        if not isinstance(self.protocol, type):
            raise SchemaDefinitionError(
                f"Satisfies requires a class, got {self.protocol!r}",
                details={'schema_type': type(self.protocol).__name__}
            )
        if getattr(self.protocol, '_is_protocol', False) and \
                not getattr(self.protocol, '_is_runtime_protocol', False):
            raise SchemaDefinitionError(
                f"Protocol {self.protocol.__name__} must be decorated with @runtime_checkable"
            )

    def check(self, value: Any) -> Any:
        if not isinstance(value, self.protocol):
            return ValidationError(
                self, value,
                lambda: f"satisfies({self.protocol.__name__}, {value_name(value)})"
            )
        return None

    def explain(self) -> Any:
        return ('protocol', self.protocol.__name__)


# Combinators

@dataclass(frozen=True, init=False)
class Either(Schema):
    """Union: matches if any branch matches."""

    schemas: Tuple[Any, ...]

    def __init__(self, *schemas: Any):
        if not schemas:
            raise SchemaDefinitionError("Either requires at least one schema")
        object.__setattr__(self, 'schemas', schemas)

    def check(self, value: Any) -> Any:
        value = replayable(value)
        for schema in self.schemas:
            if check(schema, value) is None:
                return None
        return ValidationError(
            self, value, lambda: f"matches_any_branch({value_name(value)})"
        )

    def explain(self) -> Any:
        return ('either',) + tuple(explain(s) for s in self.schemas)


@dataclass(frozen=True, init=False)
class Both(Schema):
    """Intersection: matches only if every branch matches."""

    schemas: Tuple[Any, ...]

    def __init__(self, *schemas: Any):
        if not schemas:
            raise SchemaDefinitionError("Both requires at least one schema")
        object.__setattr__(self, 'schemas', schemas)

    def check(self, value: Any) -> Any:
        value = replayable(value)
        for schema in self.schemas:
            error = check(schema, value)
            if error is not None:
                return error
        return None

    def explain(self) -> Any:
        return ('both',) + tuple(explain(s) for s in self.schemas)


@dataclass(frozen=True)
class Maybe(Schema):
    """``schema`` or None."""

    schema: Any

    def check(self, value: Any) -> Any:
        if value is None:
            return None
        return check(self.schema, value)

    def explain(self) -> Any:
        return ('maybe', explain(self.schema))


@dataclass(frozen=True)
class Named(Schema):
    """``schema`` with a label that tags its errors."""

    schema: Any
    name: Any

    def check(self, value: Any) -> Any:
        error = check(self.schema, value)
        if error is not None:
            return NamedError(self.name, error)
        return None

    def explain(self) -> Any:
        return ('named', explain(self.schema), self.name)


@dataclass(frozen=True, init=False)
class Conditional(Schema):
    """
    Dispatch on predicates: ``Conditional(pred1, schema1, pred2, schema2, ...)``.

    The schema paired with the first predicate that accepts the value is
    checked. A value no predicate accepts is an error.
    """

    pairs: Tuple[Tuple[Callable[[Any], Any], Any], ...]

    def __init__(self, *preds_and_schemas: Any):
        if not preds_and_schemas or len(preds_and_schemas) % 2:
            raise SchemaDefinitionError(
                "Conditional expects a non-empty, even number of arguments",
                details={'count': len(preds_and_schemas)}
            )
        pairs = tuple(zip(preds_and_schemas[::2], preds_and_schemas[1::2]))
        for pred, _ in pairs:
            if not callable(pred):
                raise SchemaDefinitionError(f"Conditional predicate is not callable: {pred!r}")
        object.__setattr__(self, 'pairs', pairs)

    def select(self, value: Any) -> Tuple[bool, Any]:
        """Return (True, schema) for the first matching predicate, else (False, None)."""
        for pred, schema in self.pairs:
            if pred(value):
                return True, schema
        return False, None

    def no_match(self, value: Any) -> ValidationError:
        return ValidationError(
            self, value, lambda: f"matches_some_condition({value_name(value)})"
        )

    def check(self, value: Any) -> Any:
        value = replayable(value)
        matched, schema = self.select(value)
        if not matched:
            return self.no_match(value)
        return check(schema, value)

    def explain(self) -> Any:
        described = []
        for pred, schema in self.pairs:
            described.extend([fn_name(pred), explain(schema)])
        return ('conditional',) + tuple(described)


@dataclass(frozen=True, eq=False)
class Recursive(Schema):
    """
    Late-bound reference for self-referential schemas.

    ``getter`` is called each time the schema is needed, so it may refer to
    a module-level name defined after this schema is built::

        TREE = [One(Int, 'value'), Recursive(lambda: TREE, 'tree')]

    The getter must return the same schema object on every call: coercers
    memoize walkers by node identity, and a getter that builds a fresh
    schema each time never reaches an already-built node.
    """

    getter: Callable[[], Any]
    name: Optional[str] = None

    def deref(self) -> Any:
        return self.getter()

    def check(self, value: Any) -> Any:
        return check(self.deref(), value)

    def explain(self) -> Any:
        return ('recursive', self.name or fn_name(self.getter))


def _is_integer(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, bool)


Int = Predicate(_is_integer, 'integer')
Num = Predicate(_is_number, 'number')
Str = ClassSchema(str)
Bool = ClassSchema(bool)
Inst = ClassSchema(datetime.datetime)
Uuid = ClassSchema(uuid.UUID)
Anything = AnythingSchema()


# Import collection schemas for use in as_schema
from .structures import MapOf, SequenceOf, SetOf  # noqa: E402
