"""
Coercion matchers.

A matcher maps a schema node to an optional transform ``value -> value``.
The walker runs the transform before walking the node; a transform leaves
values it does not understand unchanged (the structural check then reports
them) and raises ``ValueError`` for input it recognises but cannot convert.
"""
import datetime
import enum
import uuid
from typing import Any, Callable, Dict, Optional
import numpy as np
from shapeguard.validation.schema import (
    ClassSchema,
    EqualTo,
    OneOf,
    Int,
    Num,
    Schema,
)
from shapeguard.validation.structures import SetOf

Transform = Callable[[Any], Any]


def identity_matcher(schema: Schema) -> Optional[Transform]:
    """Matcher that never transforms; coercion is then plain checking."""
    return None


def first_matcher(*matchers: Callable[[Schema], Optional[Transform]]) -> Callable[[Schema], Optional[Transform]]:
    """
    Combine matchers; the first one that returns a transform for a node wins.

    Put user matchers before the reference ones to override them:
        first_matcher(my_matcher, json_coercion_matcher)
    """
    def matcher(schema: Schema) -> Optional[Transform]:
        for candidate in matchers:
            transform = candidate(schema)
            if transform is not None:
                return transform
        return None
    return matcher


def _klass(schema: Schema) -> Optional[type]:
    if isinstance(schema, ClassSchema):
        return schema.klass
    return None


def _is_int_schema(schema: Schema) -> bool:
    return schema == Int or _klass(schema) is int


def _is_number_schema(schema: Schema) -> bool:
    return schema == Num or _klass(schema) is float


def _is_enum_class(klass: Optional[type]) -> bool:
    return isinstance(klass, type) and issubclass(klass, enum.Enum)


def _native(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    return value


# Transforms

def safe_int(value: Any) -> Any:
    """Integral floats (and numpy scalars) to int; anything else unchanged."""
    value = _native(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def native_number(value: Any) -> Any:
    """numpy scalars to the equivalent Python number."""
    return _native(value)


def json_bool(value: Any) -> Any:
    """'true'/'false' (case-sensitive) and numpy bools to bool."""
    if isinstance(value, np.bool_):
        return bool(value)
    if value == 'true':
        return True
    if value == 'false':
        return False
    return value


def string_to_int(value: Any) -> Any:
    if isinstance(value, str):
        return int(value)
    return value


def string_to_number(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return float(value)
    return value


def string_to_float(value: Any) -> Any:
    if isinstance(value, str):
        return float(value)
    return value


def string_to_bool(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip().lower()
        if text == 'true':
            return True
        if text == 'false':
            return False
        raise ValueError(f"Not a boolean: {value!r}")
    return value


def string_to_datetime(value: Any) -> Any:
    if isinstance(value, str):
        return datetime.datetime.fromisoformat(value)
    return value


def string_to_uuid(value: Any) -> Any:
    if isinstance(value, str):
        return uuid.UUID(value)
    return value


def enum_member(klass: type) -> Transform:
    """Text to a member of enum ``klass``, by value then by name."""
    by_text: Dict[str, Any] = {}
    for member in klass:
        by_text.setdefault(member.name, member)
    for member in klass:
        by_text[str(member.value)] = member

    def to_member(value):
        if isinstance(value, str) and not isinstance(value, klass):
            if value not in by_text:
                raise ValueError(f"{value!r} is not a valid {klass.__name__}")
            return by_text[value]
        return value

    to_member.__name__ = f"to_{klass.__name__}"
    return to_member


def _text_forms(member: Any, enums_only: bool) -> list:
    if isinstance(member, enum.Enum):
        return [member.name, str(member.value)]
    if enums_only or isinstance(member, str):
        return []
    if isinstance(member, bool):
        return [str(member).lower(), str(member)]
    return [str(member)]


def member_lookup(members: Any, enums_only: bool) -> Optional[Transform]:
    """Text to whichever of ``members`` it spells; other values unchanged."""
    by_text: Dict[str, Any] = {}
    for member in members:
        for text in _text_forms(member, enums_only):
            by_text.setdefault(text, member)
    if not by_text:
        return None

    def to_member(value):
        if isinstance(value, str):
            return by_text.get(value, value)
        return value
    return to_member


def to_set(value: Any) -> Any:
    """Lists and tuples to sets (JSON has no set type)."""
    if isinstance(value, (list, tuple)):
        return set(value)
    return value


def _keyword_matcher(schema: Schema, enums_only: bool) -> Optional[Transform]:
    klass = _klass(schema)
    if _is_enum_class(klass):
        return enum_member(klass)
    if isinstance(schema, OneOf):
        return member_lookup(schema.values, enums_only)
    if isinstance(schema, EqualTo):
        return member_lookup([schema.expected], enums_only)
    return None


def _set_matcher(schema: Schema) -> Optional[Transform]:
    if isinstance(schema, SetOf):
        return to_set
    return None


def json_coercion_matcher(schema: Schema) -> Optional[Transform]:
    """
    Matcher for JSON-like input.

    - integers: integral floats and numpy integers become int
    - numbers: numpy scalars become Python numbers
    - booleans: 'true'/'false' (case-sensitive) and numpy bools
    - enums: text names or values become enum members
    - sets: lists and tuples become sets
    """
    if _is_int_schema(schema):
        return safe_int
    if _is_number_schema(schema):
        return native_number
    if _klass(schema) is bool:
        return json_bool
    return _keyword_matcher(schema, enums_only=True) or _set_matcher(schema)


def string_coercion_matcher(schema: Schema) -> Optional[Transform]:
    """
    Matcher for text input (environment variables, query strings, CSV cells).

    Parses integers, numbers, booleans (case-insensitive), ISO datetimes and
    UUIDs, maps text onto enum members and OneOf/EqualTo values, and falls
    back to the JSON matcher for everything else.
    """
    if _is_int_schema(schema):
        return string_to_int
    if schema == Num:
        return string_to_number
    if _klass(schema) is float:
        return string_to_float
    if _klass(schema) is bool:
        return string_to_bool
    if _klass(schema) is datetime.datetime:
        return string_to_datetime
    if _klass(schema) is uuid.UUID:
        return string_to_uuid
    return _keyword_matcher(schema, enums_only=False) or json_coercion_matcher(schema)
