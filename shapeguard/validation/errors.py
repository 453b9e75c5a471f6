"""
Structured validation errors.

A failed check produces a value shaped like the input, in which every
mismatching leaf is replaced by a ``ValidationError`` (or a ``NamedError``
when the failing schema carries a label). Coercers return the same tree
wrapped in a ``Failure`` so that it cannot be mistaken for a coerced value.
"""
from typing import Any, Callable, Iterable, Optional, Union

# Fail explanations for failures that are not a plain "not <expectation>".
MISSING_REQUIRED_KEY = 'missing required key'
DISALLOWED_KEY = 'disallowed key'
INVALID_KEY = 'invalid key'
DUPLICATE_KEY = 'duplicate key'
NOT_ENOUGH_ELEMENTS = 'not enough elements'
TOO_MANY_ELEMENTS = 'too many elements'
THROWS = 'throws'
COERCION_FAILED = 'coercion failed'

_MAX_VALUE_NAME = 60


def value_name(value: Any) -> str:
    """Printable form of a value for expectations; large values print as their type."""
    text = repr(value)
    if len(text) > _MAX_VALUE_NAME:
        return f"<{type(value).__name__}>"
    return text


def fn_name(fn: Callable) -> str:
    """Best-effort readable name for a callable."""
    return getattr(fn, '__qualname__', None) or getattr(fn, '__name__', None) or repr(fn)


class ValidationError:
    """
    A leaf failure: ``value`` does not satisfy ``schema``.

    ``expectation`` may be given as text or as a zero-argument callable; the
    callable is only evaluated when the error is rendered or compared, so
    building errors on hot paths stays cheap.
    """

    __slots__ = ('schema', 'value', '_expectation', 'fail_explanation')

    def __init__(
        self,
        schema: Any,
        value: Any,
        expectation: Union[str, Callable[[], str]],
        fail_explanation: Optional[str] = None
    ):
        self.schema = schema
        self.value = value
        self._expectation = expectation
        self.fail_explanation = fail_explanation

    @property
    def expectation(self) -> str:
        if callable(self._expectation):
            self._expectation = self._expectation()
        return self._expectation

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ValidationError):
            return NotImplemented
        return (
            self.schema == other.schema
            and self.value == other.value
            and self.expectation == other.expectation
            and self.fail_explanation == other.fail_explanation
        )

    def __hash__(self) -> int:
        # Schemas and values need not be hashable.
        return hash((ValidationError, self.fail_explanation))

    def __str__(self) -> str:
        if self.fail_explanation:
            return f"{self.fail_explanation}: {self.expectation}"
        return f"not {self.expectation}"

    def __repr__(self) -> str:
        return f"<{self}>"


class NamedError:
    """An error produced inside a ``Named`` schema, tagged with its label."""

    __slots__ = ('name', 'error')

    def __init__(self, name: Any, error: Any):
        self.name = name
        self.error = error

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, NamedError):
            return NotImplemented
        return self.name == other.name and self.error == other.error

    def __hash__(self) -> int:
        return hash((NamedError, self.name))

    def __str__(self) -> str:
        return f"{self.name}: {self.error!r}"

    def __repr__(self) -> str:
        return f"<{self}>"


class Failure:
    """Returned by a coercer in place of a value when coercion fails."""

    __slots__ = ('error',)

    def __init__(self, error: Any):
        self.error = error

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Failure):
            return NotImplemented
        return self.error == other.error

    def __hash__(self) -> int:
        return hash((Failure, type(self.error)))

    def __repr__(self) -> str:
        return f"Failure({self.error!r})"


def is_error(result: Any) -> bool:
    """True if ``result`` is a coercion ``Failure``."""
    return isinstance(result, Failure)


def error_val(result: Any) -> Any:
    """The error tree inside a ``Failure``, or None for a successful result."""
    if isinstance(result, Failure):
        return result.error
    return None


def error_collection(errors: Iterable[Any]) -> Union[frozenset, list]:
    """
    Collect failures that have no positional identity (set elements).

    Returns a frozenset, or a list when some failure is itself an unhashable
    structure (for example the error of a tuple element).
    """
    errors = list(errors)
    try:
        return frozenset(errors)
    except TypeError:
        return errors
