"""
Exception hierarchy for shapeguard.
"""
from typing import Any, Dict, Optional


class ShapeGuardError(Exception):
    """Base exception for all shapeguard errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'details': self.details
        }


class SchemaDefinitionError(ShapeGuardError):
    """Raised when a schema is malformed (a programmer mistake, not bad data)."""
    pass


class SchemaValidationError(ShapeGuardError):
    """
    Raised by fail-fast call sites when a value does not match its schema.

    The structured error tree is available as ``error``.
    """

    def __init__(
        self,
        message: str,
        error: Any = None,
        value: Any = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.error = error
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['error'] = repr(self.error)
        return data


class ConfigurationError(ShapeGuardError):
    """Raised when shapeguard settings cannot be loaded or are invalid."""
    pass
