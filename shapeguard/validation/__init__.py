"""
Schemas, structural checking and the structured error model.
"""
from .schema import (
    Schema,
    as_schema,
    check,
    explain,
    validate,
    ClassSchema,
    AnythingSchema,
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
    Anything
)
from .structures import (
    RequiredKey,
    OptionalKey,
    MapOf,
    One,
    SequenceOf,
    SetOf,
    Record,
    checking_walker,
    walk_map,
    walk_sequence,
    walk_set
)
from .errors import (
    ValidationError,
    NamedError,
    Failure,
    is_error,
    error_val,
    MISSING_REQUIRED_KEY,
    DISALLOWED_KEY,
    INVALID_KEY,
    DUPLICATE_KEY,
    NOT_ENOUGH_ELEMENTS,
    TOO_MANY_ELEMENTS,
    THROWS,
    COERCION_FAILED
)
from .registry import (
    SchemaRegistry,
    ValidationFlag,
    get_registry,
    get_validation_flag,
    declare_class_schema,
    class_schema,
    enable,
    disable,
    fn_validation_enabled
)
from .type_checking import (
    FnSchema,
    arity,
    arrow,
    fn_schema,
    fn_schema_of,
    schematized,
    schema_record,
    with_fn_validation
)

__all__ = [
    'Schema',
    'as_schema',
    'check',
    'explain',
    'validate',
    'ClassSchema',
    'AnythingSchema',
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
    'checking_walker',
    'walk_map',
    'walk_sequence',
    'walk_set',
    'ValidationError',
    'NamedError',
    'Failure',
    'is_error',
    'error_val',
    'MISSING_REQUIRED_KEY',
    'DISALLOWED_KEY',
    'INVALID_KEY',
    'DUPLICATE_KEY',
    'NOT_ENOUGH_ELEMENTS',
    'TOO_MANY_ELEMENTS',
    'THROWS',
    'COERCION_FAILED',
    'SchemaRegistry',
    'ValidationFlag',
    'get_registry',
    'get_validation_flag',
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
]
