"""
Compiled coercion: turn loosely-typed input into a schema's strict shape.
"""
from .walker import (
    Coercer,
    WalkerBuilder,
    build_coercer,
    register_walker,
    COERCION_ERRORS
)
from .matchers import (
    identity_matcher,
    first_matcher,
    json_coercion_matcher,
    string_coercion_matcher,
    safe_int,
    enum_member
)

__all__ = [
    'Coercer',
    'WalkerBuilder',
    'build_coercer',
    'register_walker',
    'COERCION_ERRORS',
    'identity_matcher',
    'first_matcher',
    'json_coercion_matcher',
    'string_coercion_matcher',
    'safe_int',
    'enum_member',
]
