from httpstages_models.entities import (
    CleanupSpec,
    CompareSpec,
    ExtractRule,
    Modifier,
    RequestSpec,
    ResponseSpec,
    SetupSpec,
    StatusSpec,
    Stage,
    TestDefinition,
    VariableDefinition,
    VariableType,
)
from httpstages_models.exceptions import DefinitionError
from httpstages_models.loader import LoadResult, load_documents, load_file, load_paths, load_text, parse_definition, parse_definitions
from httpstages_models.schema import (
    ArraySchema,
    BooleanSchema,
    DateSchema,
    DatetimeSchema,
    EmailSchema,
    FloatSchema,
    IntSchema,
    ObjectSchema,
    SchemaNode,
    StringSchema,
)

__all__ = [
    "ArraySchema",
    "BooleanSchema",
    "CleanupSpec",
    "CompareSpec",
    "DateSchema",
    "DatetimeSchema",
    "DefinitionError",
    "EmailSchema",
    "ExtractRule",
    "FloatSchema",
    "IntSchema",
    "LoadResult",
    "Modifier",
    "ObjectSchema",
    "RequestSpec",
    "ResponseSpec",
    "SchemaNode",
    "SetupSpec",
    "StatusSpec",
    "Stage",
    "StringSchema",
    "TestDefinition",
    "VariableDefinition",
    "VariableType",
    "load_documents",
    "load_file",
    "load_paths",
    "load_text",
    "parse_definition",
    "parse_definitions",
]
