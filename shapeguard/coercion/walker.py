"""
Coercion walker compiler.

``build_coercer(schema, matcher)`` compiles a schema into a ``Coercer``: a
reusable function that converts loosely-typed input into the schema's strict
shape while checking it. The matcher maps each schema node to an optional
transform that runs before the node is walked structurally.

Walkers are built once per distinct schema node, memoized by node identity
for the duration of the build. A node reached again while it is still being
built (a self-referential schema) resolves to a lazy cell, so recursion
happens when values are walked rather than while building.
"""
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Type
from shapeguard.utils.logging_config import get_logger
from shapeguard.utils.exceptions import SchemaValidationError
from shapeguard.validation.errors import (
    ValidationError,
    NamedError,
    Failure,
    COERCION_FAILED,
    fn_name,
    value_name,
)
from shapeguard.validation.registry import class_schema
from shapeguard.validation.schema import (
    Schema,
    as_schema,
    replayable,
    ClassSchema,
    Either,
    Both,
    Maybe,
    Named,
    Conditional,
    Recursive,
)
from shapeguard.validation.structures import (
    MapOf,
    SequenceOf,
    SetOf,
    Record,
    checking_walker,
    record_fields,
    walk_map,
    walk_sequence,
    walk_set,
)

logger = get_logger(__name__)

Walker = Callable[[Any], Any]
Transform = Callable[[Any], Any]
Matcher = Callable[[Schema], Optional[Transform]]

# Raised by a matcher transform that cannot convert its input.
COERCION_ERRORS = (ValueError, TypeError, ArithmeticError, LookupError)

_WALKER_BUILDERS: Dict[Type[Schema], Callable[['WalkerBuilder', Any], Walker]] = {}


def register_walker(schema_type: Type[Schema]):
    """Decorator for registering the structural walker builder of a schema type."""
    def decorator(builder: Callable[['WalkerBuilder', Any], Walker]):
        _WALKER_BUILDERS[schema_type] = builder
        logger.debug(f"Registered walker for {schema_type.__name__}")
        return builder
    return decorator


class _LazyWalker:
    """Walker cell filled in once its node has been built."""

    __slots__ = ('target',)

    def __init__(self):
        self.target: Optional[Walker] = None

    def __call__(self, value: Any) -> Any:
        return self.target(value)


class WalkerBuilder:
    """Builds and memoizes the walkers of one schema graph for one matcher."""

    def __init__(self, matcher: Optional[Matcher] = None):
        self.matcher = matcher
        self._walkers: Dict[int, _LazyWalker] = {}
        # Keeps visited nodes alive so their ids stay unique during the build.
        self._nodes: List[Any] = []

    def walker(self, node: Any) -> Walker:
        """Return the walker for ``node``, building it on first use."""
        key = id(node)
        cell = self._walkers.get(key)
        if cell is not None:
            return cell

        cell = _LazyWalker()
        self._walkers[key] = cell
        self._nodes.append(node)
        cell.target = self._build(node)
        return cell

    def _build(self, node: Any) -> Walker:
        schema = as_schema(node)
        structural = self._structural(schema)
        transform = self.matcher(schema) if self.matcher is not None else None
        if transform is None:
            return structural

        def walk(value):
            try:
                coerced = transform(value)
            except COERCION_ERRORS as e:
                raised = repr(e)
                return Failure(ValidationError(
                    schema, value,
                    lambda: f"{fn_name(transform)}({value_name(value)}) raised {raised}",
                    COERCION_FAILED
                ))
            if isinstance(coerced, Failure):
                return coerced
            return structural(coerced)

        return walk

    def _structural(self, schema: Schema) -> Walker:
        for schema_type in type(schema).__mro__:
            builder = _WALKER_BUILDERS.get(schema_type)
            if builder is not None:
                return builder(self, schema)
        return checking_walker(schema)

    @property
    def size(self) -> int:
        return len(self._walkers)


@register_walker(MapOf)
def _map_walker(builder: WalkerBuilder, schema: MapOf) -> Walker:
    entry_walkers, key_walker, value_walker = schema.walkers(builder.walker)

    def walk(value):
        return walk_map(schema, value, entry_walkers, key_walker, value_walker)
    return walk


@register_walker(SequenceOf)
def _sequence_walker(builder: WalkerBuilder, schema: SequenceOf) -> Walker:
    single_walkers, rest_walker = schema.walkers(builder.walker)

    def walk(value):
        return walk_sequence(schema, value, single_walkers, rest_walker)
    return walk


@register_walker(SetOf)
def _set_walker(builder: WalkerBuilder, schema: SetOf) -> Walker:
    element_walker = builder.walker(schema.element)

    def walk(value):
        return walk_set(schema, value, element_walker)
    return walk


@register_walker(Record)
def _record_walker(builder: WalkerBuilder, schema: Record) -> Walker:
    fields_walker = builder.walker(schema.map_schema)

    def walk(value):
        if isinstance(value, schema.klass):
            original = value
            fields = record_fields(value)
        elif isinstance(value, Mapping):
            original = None
            fields = value
        else:
            return Failure(schema.type_error(value))

        coerced = fields_walker(fields)
        if isinstance(coerced, Failure):
            return coerced
        instance = schema.build(coerced, original)
        if isinstance(instance, Failure):
            return instance
        error = schema.extra_error(instance)
        if error is not None:
            return Failure(error)
        return instance
    return walk


@register_walker(ClassSchema)
def _class_walker(builder: WalkerBuilder, schema: ClassSchema) -> Walker:
    declared = class_schema(schema.klass)
    if declared is None:
        return checking_walker(schema)

    declared_walker = builder.walker(declared)
    if isinstance(as_schema(declared), Record):
        # Records check the instance type themselves and may build it from a dict.
        return declared_walker

    def walk(value):
        if not isinstance(value, schema.klass):
            return Failure(schema.check(value))
        return declared_walker(value)
    return walk


@register_walker(Either)
def _either_walker(builder: WalkerBuilder, schema: Either) -> Walker:
    branch_walkers = [builder.walker(s) for s in schema.schemas]

    def walk(value):
        value = replayable(value)
        for branch_walker in branch_walkers:
            result = branch_walker(value)
            if not isinstance(result, Failure):
                return result
        return Failure(schema.check(value) or ValidationError(
            schema, value, lambda: f"matches_any_branch({value_name(value)})"
        ))
    return walk


@register_walker(Both)
def _both_walker(builder: WalkerBuilder, schema: Both) -> Walker:
    branch_walkers = [builder.walker(s) for s in schema.schemas]

    def walk(value):
        value = replayable(value)
        for branch_walker in branch_walkers:
            value = branch_walker(value)
            if isinstance(value, Failure):
                return value
        return value
    return walk


@register_walker(Maybe)
def _maybe_walker(builder: WalkerBuilder, schema: Maybe) -> Walker:
    inner_walker = builder.walker(schema.schema)

    def walk(value):
        if value is None:
            return None
        return inner_walker(value)
    return walk


@register_walker(Named)
def _named_walker(builder: WalkerBuilder, schema: Named) -> Walker:
    inner_walker = builder.walker(schema.schema)

    def walk(value):
        result = inner_walker(value)
        if isinstance(result, Failure):
            return Failure(NamedError(schema.name, result.error))
        return result
    return walk


@register_walker(Conditional)
def _conditional_walker(builder: WalkerBuilder, schema: Conditional) -> Walker:
    branches = [(pred, builder.walker(s)) for pred, s in schema.pairs]

    def walk(value):
        value = replayable(value)
        for pred, branch_walker in branches:
            if pred(value):
                return branch_walker(value)
        return Failure(schema.no_match(value))
    return walk


@register_walker(Recursive)
def _recursive_walker(builder: WalkerBuilder, schema: Recursive) -> Walker:
    return builder.walker(schema.deref())


class Coercer:
    """
    Reusable coercion function compiled from a schema and a matcher.

    Calling a coercer returns the coerced value, or a ``Failure`` carrying
    an error tree shaped like the input. A built coercer holds no mutable
    state and may be called concurrently.
    """

    def __init__(self, schema: Any, matcher: Optional[Matcher] = None):
        self.schema = schema
        self.matcher = matcher
        builder = WalkerBuilder(matcher)
        self._walk = builder.walker(schema)
        logger.debug(
            f"Built coercer for {type(as_schema(schema)).__name__} "
            f"({builder.size} nodes, matcher={fn_name(matcher) if matcher else None})"
        )

    def __call__(self, value: Any) -> Any:
        return self._walk(value)

    def validate(self, value: Any, context: Optional[str] = None) -> Any:
        """Return the coerced value or raise SchemaValidationError."""
        result = self._walk(value)
        if isinstance(result, Failure):
            message = f"{context or 'Value'} could not be coerced: {result.error!r}"
            logger.debug(message)
            raise SchemaValidationError(
                message,
                error=result.error,
                value=value,
                details={'context': context}
            )
        return result


def build_coercer(schema: Any, matcher: Optional[Matcher] = None) -> Coercer:
    """Compile ``schema`` and ``matcher`` into a reusable Coercer."""
    return Coercer(schema, matcher)
