"""
shapeguard: runtime schema validation and coercion.

Schemas are plain data (classes, dicts, lists, sets, regexes) or schema
objects; ``check`` reports mismatches as data shaped like the input, and
``build_coercer`` compiles a schema and a matcher into a reusable function
that converts loosely-typed input into the schema's strict shape.
"""
from .validation import (
    Schema,
    as_schema,
    check,
    explain,
    validate,
    ClassSchema,
    Predicate,
    RegexSchema,
    EqualTo,
    OneOf,
    Satisfies,
    Either,
    Both,
    Maybe,
    Named,
    Conditional,
    Recursive,
    Int,
    Num,
    Str,
    Bool,
    Inst,
    Uuid,
    Anything,
    RequiredKey,
    OptionalKey,
    MapOf,
    One,
    SequenceOf,
    SetOf,
    Record,
    ValidationError,
    NamedError,
    Failure,
    is_error,
    error_val,
    declare_class_schema,
    class_schema,
    enable,
    disable,
    fn_validation_enabled,
    FnSchema,
    arity,
    arrow,
    fn_schema,
    fn_schema_of,
    schematized,
    schema_record,
    with_fn_validation
)
from .coercion import (
    Coercer,
    build_coercer,
    identity_matcher,
    first_matcher,
    json_coercion_matcher,
    string_coercion_matcher
)
from .utils import (
    get_logger,
    ShapeGuardError,
    SchemaDefinitionError,
    SchemaValidationError,
    ConfigurationError
)
from .config import get_config_manager, load_config

__version__ = "0.1.0"

__all__ = [
    'Schema',
    'as_schema',
    'check',
    'explain',
    'validate',
    'ClassSchema',
    'Predicate',
    'RegexSchema',
    'EqualTo',
    'OneOf',
    'Satisfies',
    'Either',
    'Both',
    'Maybe',
    'Named',
    'Conditional',
    'Recursive',
    'Int',
    'Num',
    'Str',
    'Bool',
    'Inst',
    'Uuid',
    'Anything',
    'RequiredKey',
    'OptionalKey',
    'MapOf',
    'One',
    'SequenceOf',
    'SetOf',
    'Record',
    'ValidationError',
    'NamedError',
    'Failure',
    'is_error',
    'error_val',
    'declare_class_schema',
    'class_schema',
    'enable',
    'disable',
    'fn_validation_enabled',
    'FnSchema',
    'arity',
    'arrow',
    'fn_schema',
    'fn_schema_of',
    'schematized',
    'schema_record',
    'with_fn_validation',
    'Coercer',
    'build_coercer',
    'identity_matcher',
    'first_matcher',
    'json_coercion_matcher',
    'string_coercion_matcher',
    'get_logger',
    'ShapeGuardError',
    'SchemaDefinitionError',
    'SchemaValidationError',
    'ConfigurationError',
    'get_config_manager',
    'load_config',
]
