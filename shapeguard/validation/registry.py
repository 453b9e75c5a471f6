"""
Process-wide class schema registry and the function-validation flag.
"""
import threading
from typing import Any, Dict, Optional
from shapeguard.utils.logging_config import get_logger

logger = get_logger(__name__)


class SchemaRegistry:
    """
    Insert-only map from a class to its declared schema.

    Lookups are plain dict reads; declarations are serialized by a lock.
    Redeclaring a class replaces its schema (last writer wins).
    """

    def __init__(self):
        self._schemas: Dict[type, Any] = {}
        self._lock = threading.Lock()

    def declare(self, klass: type, schema: Any):
        """Declare ``schema`` as the schema for instances of ``klass``."""
        with self._lock:
            replaced = klass in self._schemas
            self._schemas[klass] = schema
        if replaced:
            logger.debug(f"Redeclared schema for {klass.__qualname__}")
        else:
            logger.debug(f"Declared schema for {klass.__qualname__}")

    def get(self, klass: type) -> Optional[Any]:
        """Return the schema declared for ``klass``, or None."""
        return self._schemas.get(klass)

    def __contains__(self, klass: type) -> bool:
        return klass in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)


class ValidationFlag:
    """
    Boolean cell read by schematized functions on every call.

    Backed by a ``threading.Event`` so a toggle from one thread is seen by
    callers on other threads without rebuilding any schema or coercer.
    """

    def __init__(self, enabled: bool = False, name: str = "fn_validation"):
        self.name = name
        self._event = threading.Event()
        if enabled:
            self._event.set()

    def enable(self):
        self._event.set()
        logger.info(f"Enabled {self.name}")

    def disable(self):
        self._event.clear()
        logger.info(f"Disabled {self.name}")

    def set(self, enabled: bool):
        if enabled:
            self.enable()
        else:
            self.disable()

    def is_enabled(self) -> bool:
        return self._event.is_set()

    def __bool__(self) -> bool:
        return self._event.is_set()


# Process-wide defaults
_global_registry = SchemaRegistry()
_global_flag = ValidationFlag()


def get_registry() -> SchemaRegistry:
    """Get the process-wide schema registry."""
    return _global_registry


def get_validation_flag() -> ValidationFlag:
    """Get the process-wide function validation flag."""
    return _global_flag


def declare_class_schema(klass: type, schema: Any):
    """Declare the schema for ``klass`` in the process-wide registry."""
    _global_registry.declare(klass, schema)


def class_schema(klass: type) -> Optional[Any]:
    """Return the schema declared for ``klass``, or None."""
    return _global_registry.get(klass)


def enable():
    """Turn on input/output validation for schematized functions."""
    _global_flag.enable()


def disable():
    """Turn off input/output validation for schematized functions."""
    _global_flag.disable()


def fn_validation_enabled() -> bool:
    """Whether schematized functions currently validate their calls."""
    return _global_flag.is_enabled()
