"""
Utility modules for shapeguard.
"""
from .logging_config import get_logger, LoggerFactory, StructuredFormatter
from .exceptions import (
    ShapeGuardError,
    SchemaDefinitionError,
    SchemaValidationError,
    ConfigurationError
)

__all__ = [
    'get_logger',
    'LoggerFactory',
    'StructuredFormatter',
    'ShapeGuardError',
    'SchemaDefinitionError',
    'SchemaValidationError',
    'ConfigurationError',
]
