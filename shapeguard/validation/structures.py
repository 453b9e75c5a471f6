"""
Map, sequence, set and record schemas.

The walk functions below implement the structural algorithms once. Each
takes sub-walkers (callables returning the possibly transformed value or a
``Failure``), so ``check`` and the coercion walker compiler share the same
key classification, element positioning and error attribution.
"""
import copy
import dataclasses
import re
from collections.abc import Iterable, Mapping, Set
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple
from shapeguard.utils.exceptions import SchemaDefinitionError, SchemaValidationError
from .errors import (
    ValidationError,
    NamedError,
    Failure,
    MISSING_REQUIRED_KEY,
    DISALLOWED_KEY,
    INVALID_KEY,
    DUPLICATE_KEY,
    NOT_ENOUGH_ELEMENTS,
    TOO_MANY_ELEMENTS,
    COERCION_FAILED,
    error_collection,
    error_val,
    value_name,
    fn_name,
)
from .schema import Schema, as_schema, check, explain

Walker = Callable[[Any], Any]

_END = object()


def checking_walker(schema: Any) -> Walker:
    """A walker that checks without transforming."""
    def walk(value):
        error = check(schema, value)
        if error is None:
            return value
        return Failure(error)
    return walk


# Map schemas

@dataclass(frozen=True)
class RequiredKey:
    """A map key that must be present."""
    key: Any


@dataclass(frozen=True)
class OptionalKey:
    """A map key that may be absent."""
    key: Any


def is_schema_key(key: Any) -> bool:
    """Whether a map schema key is a schema (catch-all) rather than a literal."""
    if isinstance(key, (RequiredKey, OptionalKey)):
        return False
    return isinstance(key, (Schema, type, re.Pattern))


def explicit_key(key: Any) -> Any:
    if isinstance(key, (RequiredKey, OptionalKey)):
        return key.key
    return key


def _explain_key(key: Any) -> Any:
    if isinstance(key, OptionalKey):
        return ('optional-key', key.key)
    if isinstance(key, RequiredKey):
        return key.key
    if is_schema_key(key):
        return explain(key)
    return key


@dataclass(frozen=True)
class MapEntry:
    key: Any
    required: bool
    schema: Any


@dataclass(frozen=True)
class MapOf(Schema):
    """
    Mappings with literal keys and at most one catch-all key schema.

    ``{'a': Int, OptionalKey('b'): Str, str: Num}`` requires ``'a'``, allows
    ``'b'``, and lets any other string key map to a number.
    """

    entries: dict

    def __post_init__(self):
        explicit = []
        extra = None
        for key, val_schema in self.entries.items():
            if is_schema_key(key):
                if extra is not None:
                    raise SchemaDefinitionError(
                        "A map schema may have at most one non-literal key schema",
                        details={'keys': [repr(extra[0]), repr(key)]}
                    )
                extra = (key, val_schema)
                continue
            explicit.append(MapEntry(explicit_key(key), not isinstance(key, OptionalKey), val_schema))

        positions = {}
        for position, entry in enumerate(explicit):
            if entry.key in positions:
                raise SchemaDefinitionError(f"Duplicate key {entry.key!r} in map schema")
            positions[entry.key] = position

        object.__setattr__(self, 'explicit', tuple(explicit))
        object.__setattr__(self, 'positions', positions)
        object.__setattr__(self, 'extra', extra)
        object.__setattr__(self, '_checkers', self.walkers(checking_walker))

    def walkers(self, build: Callable[[Any], Walker]) -> Tuple[List[Walker], Optional[Walker], Optional[Walker]]:
        """Sub-walkers for explicit values, the catch-all key and the catch-all value."""
        entry_walkers = [build(entry.schema) for entry in self.explicit]
        if self.extra is None:
            return entry_walkers, None, None
        return entry_walkers, build(self.extra[0]), build(self.extra[1])

    def check(self, value: Any) -> Any:
        return error_val(walk_map(self, value, *self._checkers))

    def explain(self) -> Any:
        return {_explain_key(k): explain(v) for k, v in self.entries.items()}


def _error_key(error: Any, key: Any) -> Any:
    try:
        hash(error)
    except TypeError:
        return key
    return error


def _duplicate_key(schema: MapOf, key: Any, other: Any, coerced: Any) -> ValidationError:
    return ValidationError(
        schema, key,
        lambda: f"{value_name(key)} and {value_name(other)} both give key {value_name(coerced)}",
        DUPLICATE_KEY
    )


def walk_map(
    schema: MapOf,
    value: Any,
    entry_walkers: Sequence[Walker],
    key_walker: Optional[Walker],
    value_walker: Optional[Walker]
) -> Any:
    """
    Walk a mapping against a map schema.

    Every failing key is reported: missing required keys, disallowed keys,
    keys rejected by the catch-all key schema (keyed by the key's error) and
    values that fail their schema. A key whose coerced form collides with
    another key already walked is a duplicate key. Returns a dict or a Failure.
    """
    if not isinstance(value, Mapping):
        return Failure(ValidationError(
            schema, value, lambda: f"isinstance({value_name(value)}, Mapping)"
        ))

    out = {}
    errors = {}
    # Output key -> the input key that produced it.
    sources = {}
    for key, item in value.items():
        position = schema.positions.get(key)
        if position is not None:
            if key in sources:
                errors[key] = _duplicate_key(schema, key, sources[key], key)
                continue
            sources[key] = key
            result = entry_walkers[position](item)
            if isinstance(result, Failure):
                errors[key] = result.error
            else:
                out[key] = result
            continue

        if schema.extra is None:
            errors[key] = ValidationError(schema, item, value_name(key), DISALLOWED_KEY)
            continue

        key_result = key_walker(key)
        if isinstance(key_result, Failure):
            errors[_error_key(key_result.error, key)] = ValidationError(
                schema.extra[0], key, value_name(key), INVALID_KEY
            )
            continue
        if key_result in sources:
            errors[key] = _duplicate_key(schema, key, sources[key_result], key_result)
            continue
        sources[key_result] = key

        result = value_walker(item)
        if isinstance(result, Failure):
            errors[key] = result.error
        else:
            out[key_result] = result

    for entry in schema.explicit:
        if entry.required and entry.key not in value:
            errors[entry.key] = ValidationError(
                entry.schema, None, value_name(entry.key), MISSING_REQUIRED_KEY
            )

    if errors:
        return Failure(errors)
    return out


# Sequence schemas

@dataclass(frozen=True)
class One:
    """A single named positional element of a sequence schema."""

    schema: Any
    name: Any

    def explain(self) -> Any:
        return ('one', explain(self.schema), self.name)


@dataclass(frozen=True)
class SequenceOf(Schema):
    """
    Sequences: a prefix of ``One`` positions, then optionally one schema
    that every remaining element must match.

    ``[One(Int, 'x'), One(Str, 'y')]`` is exactly an int and a str;
    ``[One(Int, 'x'), Str]`` is an int followed by any number of strs.
    """

    elements: list

    def __post_init__(self):
        singles = []
        for element in self.elements:
            if not isinstance(element, One):
                break
            singles.append(element)
        remaining = self.elements[len(singles):]
        if len(remaining) > 1 or any(isinstance(e, One) for e in remaining):
            raise SchemaDefinitionError(
                "A sequence schema takes One() elements followed by at most one "
                "repeated element schema",
                details={'elements': len(self.elements)}
            )
        object.__setattr__(self, 'singles', tuple(singles))
        object.__setattr__(self, 'rest', remaining[0] if remaining else None)

    @property
    def has_rest(self) -> bool:
        return len(self.singles) < len(self.elements)

    def walkers(self, build: Callable[[Any], Walker]) -> Tuple[List[Walker], Optional[Walker]]:
        single_walkers = [build(one.schema) for one in self.singles]
        if not self.has_rest:
            return single_walkers, None
        return single_walkers, build(self.rest)

    def check(self, value: Any) -> Any:
        # Built per call: a self-referential schema must not unfold eagerly.
        return error_val(walk_sequence(self, value, *self.walkers(checking_walker)))

    def explain(self) -> Any:
        described = [one.explain() for one in self.singles]
        if self.has_rest:
            described.append(explain(self.rest))
        return described


def is_sequential(value: Any) -> bool:
    if isinstance(value, (Mapping, Set, str, bytes, bytearray)):
        return False
    return isinstance(value, Iterable)


def walk_sequence(
    schema: SequenceOf,
    value: Any,
    single_walkers: Sequence[Walker],
    rest_walker: Optional[Walker]
) -> Any:
    """
    Walk an iterable against a sequence schema, consuming it exactly once.

    Returns a list (a tuple for tuple input) or a Failure whose error lists
    one result per consumed position (None where it passed), followed by a
    single error for a missing or surplus tail.
    """
    if not is_sequential(value):
        return Failure(ValidationError(
            schema, value, lambda: f"sequential({value_name(value)})"
        ))

    items = iter(value)
    out = []
    errors = []
    failed = False

    for position, (one, walker) in enumerate(zip(schema.singles, single_walkers)):
        item = next(items, _END)
        if item is _END:
            missing = schema.singles[position:]
            names = ', '.join(str(m.name) for m in missing)
            errors.append(ValidationError(
                list(missing), None,
                f"expected {len(schema.singles)}, got {position} (missing {names})",
                NOT_ENOUGH_ELEMENTS
            ))
            return Failure(errors)
        result = walker(item)
        if isinstance(result, Failure):
            errors.append(NamedError(one.name, result.error))
            failed = True
        else:
            errors.append(None)
            out.append(result)

    if rest_walker is not None:
        for item in items:
            result = rest_walker(item)
            if isinstance(result, Failure):
                errors.append(result.error)
                failed = True
            else:
                errors.append(None)
                out.append(result)
    else:
        surplus = list(items)
        if surplus:
            expected = len(schema.singles)
            errors.append(ValidationError(
                schema, surplus,
                f"expected {expected}, got {expected + len(surplus)}",
                TOO_MANY_ELEMENTS
            ))
            failed = True

    if failed:
        return Failure(errors)
    if type(value) is tuple:
        return tuple(out)
    return out


# Set schemas

@dataclass(frozen=True)
class SetOf(Schema):
    """Sets whose every element matches ``element``."""

    element: Any

    @classmethod
    def from_set(cls, schemas: Any) -> 'SetOf':
        if len(schemas) != 1:
            raise SchemaDefinitionError(
                f"A set schema takes exactly one element schema, got {len(schemas)}",
                details={'count': len(schemas)}
            )
        return cls(next(iter(schemas)))

    def check(self, value: Any) -> Any:
        return error_val(walk_set(self, value, checking_walker(self.element)))

    def explain(self) -> Any:
        return ('set', explain(self.element))


def walk_set(schema: SetOf, value: Any, element_walker: Walker) -> Any:
    """Walk a set; failures are reported as a collection without positions."""
    if not isinstance(value, Set):
        return Failure(ValidationError(
            schema, value, lambda: f"isinstance({value_name(value)}, Set)"
        ))

    out = []
    errors = []
    for item in value:
        result = element_walker(item)
        if isinstance(result, Failure):
            errors.append(result.error)
        else:
            out.append(result)

    if errors:
        return Failure(error_collection(errors))
    if isinstance(value, frozenset):
        return frozenset(out)
    return set(out)


# Record schemas

def record_fields(value: Any) -> dict:
    """The attribute mapping of a record instance, extra attributes included."""
    if dataclasses.is_dataclass(value):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        for name, item in getattr(value, '__dict__', {}).items():
            fields.setdefault(name, item)
        return fields
    if hasattr(value, '__dict__'):
        return dict(vars(value))
    if hasattr(value, '_asdict'):
        return dict(value._asdict())
    raise SchemaDefinitionError(
        f"Cannot read fields of {type(value).__name__}",
        details={'record_type': type(value).__name__}
    )


def with_fields(instance: Any, fields: dict) -> Any:
    """Set ``fields`` on ``instance`` directly; frozen dataclasses included."""
    for name, value in fields.items():
        object.__setattr__(instance, name, value)
    return instance


def construct(klass: type, fields: dict) -> Any:
    """
    Build a ``klass`` instance from a field mapping.

    Dataclass fields declared with ``init=False`` are set after construction.
    """
    if dataclasses.is_dataclass(klass):
        init = {f.name for f in dataclasses.fields(klass) if f.init}
        instance = klass(**{k: v for k, v in fields.items() if k in init})
        return with_fields(instance, {k: v for k, v in fields.items() if k not in init})
    return klass(**fields)


def _has_default(klass: type, name: str) -> bool:
    if not dataclasses.is_dataclass(klass):
        return False
    for f in dataclasses.fields(klass):
        if f.name == name:
            return f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
    return False


def _unchanged(before: Any, after: Any) -> bool:
    if before is after:
        return True
    if type(before) is not type(after):
        return False
    try:
        return bool(before == after)
    except (TypeError, ValueError):
        # Elementwise comparisons (numpy arrays) have no single truth value.
        return False


@dataclass(frozen=True)
class Record(Schema):
    """
    Instances of ``klass`` whose fields match a map schema, and optionally
    satisfy ``extra_validator`` as a whole.
    """

    klass: type
    schema: Any
    extra_validator: Optional[Callable[[Any], Any]] = None

    def __post_init__(self):
        if not isinstance(self.klass, type):
            raise SchemaDefinitionError(f"Record requires a class, got {self.klass!r}")
        map_schema = as_schema(self.schema)
        if not isinstance(map_schema, MapOf):
            raise SchemaDefinitionError(
                f"Record field schema must be a map schema, got {type(map_schema).__name__}"
            )
        if self.extra_validator is not None and not callable(self.extra_validator):
            raise SchemaDefinitionError(
                f"Record extra validator is not callable: {type(self.extra_validator).__name__}"
            )
        object.__setattr__(self, 'map_schema', map_schema)

    def field_names(self) -> List[Any]:
        """The record's base fields: dataclass fields, else the schema's literal keys."""
        if dataclasses.is_dataclass(self.klass):
            return [f.name for f in dataclasses.fields(self.klass)]
        return [entry.key for entry in self.map_schema.explicit]

    def type_error(self, value: Any) -> ValidationError:
        return ValidationError(
            self, value,
            lambda: f"isinstance({value_name(value)}, {self.klass.__name__})"
        )

    def extra_error(self, value: Any) -> Optional[ValidationError]:
        if self.extra_validator is None or self.extra_validator(value):
            return None
        return ValidationError(
            self, value,
            lambda: f"{fn_name(self.extra_validator)}({value_name(value)})"
        )

    def build(self, fields: dict, original: Any = None) -> Any:
        """
        Construct an instance from coerced fields, or a Failure.

        An ``original`` instance whose fields all came through unchanged is
        returned as is; otherwise a shallow copy of it receives the coerced
        fields, so ``__init__`` is only called for mapping input.
        """
        try:
            if original is None:
                return construct(self.klass, fields)
            current = record_fields(original)
            if all(_unchanged(current.get(k, _END), v) for k, v in fields.items()):
                return original
            return with_fields(copy.copy(original), fields)
        except (TypeError, ValueError, AttributeError) as e:
            raised = repr(e)
            return Failure(ValidationError(
                self, fields,
                lambda: f"{self.klass.__name__}(**fields) raised {raised}",
                COERCION_FAILED
            ))

    def from_map(self, data: Mapping) -> Any:
        """
        Lenient factory: build an instance from a mapping without validating.

        Absent fields without a default are None; keys that are not fields
        become extra attributes of the instance.
        """
        names = self.field_names()
        fields = {
            name: data.get(name) for name in names
            if name in data or not _has_default(self.klass, name)
        }
        instance = construct(self.klass, fields)
        return with_fields(instance, {k: v for k, v in data.items() if k not in names})

    def strict_from_map(self, data: Mapping, drop_extra_keys: bool = False) -> Any:
        """
        Strict factory: every field must be present and no other key may be,
        unless ``drop_extra_keys`` is set, in which case other keys are ignored.

        Raises:
            SchemaValidationError: If the mapping has the wrong set of keys
        """
        names = self.field_names()
        missing = [name for name in names if name not in data]
        extra = [key for key in data if key not in names]
        if missing or (extra and not drop_extra_keys):
            raise SchemaValidationError(
                f"{self.klass.__name__} has wrong set of keys: "
                f"missing {missing!r}, extra {extra!r}",
                value=data,
                details={'missing': [repr(k) for k in missing], 'extra': [repr(k) for k in extra]}
            )
        return construct(self.klass, {name: data[name] for name in names})

    def check(self, value: Any) -> Any:
        if not isinstance(value, self.klass):
            return self.type_error(value)
        error = self.map_schema.check(record_fields(value))
        if error is not None:
            return error
        return self.extra_error(value)

    def explain(self) -> Any:
        return ('record', self.klass.__name__, self.map_schema.explain())
