"""Response body schema nodes.

A restricted schema language: each node is a dict whose ``type`` names one of
the variants below (case-insensitive). Inside an ``Object`` schema, a member
that is not such a dict is a literal value compared by equality.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal, Self

from httpstages_vars.dates import DEFAULT_DATE_FORMAT, DEFAULT_DATETIME_FORMAT, parse_any
from httpstages_vars.exceptions import VariableFormatError
from pydantic import BaseModel, BeforeValidator, ConfigDict, Discriminator, Field, JsonValue, NonNegativeInt, Tag, model_validator
from pydantic.alias_generators import to_camel

from httpstages_models.types import DateFormat, RegexPattern, case_insensitive


class SchemaType(StrEnum):
    OBJECT = "Object"
    ARRAY = "Array"
    STRING = "String"
    INT = "Int"
    FLOAT = "Float"
    BOOLEAN = "Boolean"
    DATE = "Date"
    DATETIME = "Datetime"
    EMAIL = "Email"


SCHEMA_TYPE_ALIASES = {
    "list": "Array",
    "integer": "Int",
    "number": "Float",
    "bool": "Boolean",
    "date-time": "Datetime",
}

_normalize_schema_type = case_insensitive(SchemaType, SCHEMA_TYPE_ALIASES)


def schema_tag(v: Any) -> str | None:
    """Canonical tag for a schema ``type`` value, or None when it is not one."""
    if not isinstance(v, str):
        return None
    normalized = _normalize_schema_type(v)
    return normalized.value if isinstance(normalized, SchemaType) else None


ObjectTag = Annotated[Literal[SchemaType.OBJECT], BeforeValidator(_normalize_schema_type)]
ArrayTag = Annotated[Literal[SchemaType.ARRAY], BeforeValidator(_normalize_schema_type)]
StringTag = Annotated[Literal[SchemaType.STRING], BeforeValidator(_normalize_schema_type)]
IntTag = Annotated[Literal[SchemaType.INT], BeforeValidator(_normalize_schema_type)]
FloatTag = Annotated[Literal[SchemaType.FLOAT], BeforeValidator(_normalize_schema_type)]
BooleanTag = Annotated[Literal[SchemaType.BOOLEAN], BeforeValidator(_normalize_schema_type)]
DateTag = Annotated[Literal[SchemaType.DATE], BeforeValidator(_normalize_schema_type)]
DatetimeTag = Annotated[Literal[SchemaType.DATETIME], BeforeValidator(_normalize_schema_type)]
EmailTag = Annotated[Literal[SchemaType.EMAIL], BeforeValidator(_normalize_schema_type)]


class SchemaBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True, alias_generator=to_camel)


class LengthBounded(SchemaBase):
    length: NonNegativeInt | None = Field(default=None, description="Exact length.")
    min_length: NonNegativeInt | None = Field(default=None)
    max_length: NonNegativeInt | None = Field(default=None)

    @model_validator(mode="after")
    def validate_lengths(self) -> Self:
        if self.length is not None and (self.min_length is not None or self.max_length is not None):
            raise ValueError("'length' cannot be combined with 'minLength'/'maxLength'")
        if self.min_length is not None and self.max_length is not None and self.min_length > self.max_length:
            raise ValueError(f"'minLength' ({self.min_length}) is greater than 'maxLength' ({self.max_length})")
        return self


class StringSchema(LengthBounded):
    type: StringTag
    pattern: RegexPattern | None = Field(default=None, description="Regular expression searched in the value.")
    one_of: list[str] | None = Field(default=None)
    none_of: list[str] | None = Field(default=None)

    @model_validator(mode="after")
    def validate_choices(self) -> Self:
        if self.one_of is not None and (self.pattern is not None or self.length is not None or self.min_length is not None or self.max_length is not None):
            raise ValueError("'oneOf' cannot be combined with 'pattern' or length constraints")
        return self


class IntSchema(SchemaBase):
    type: IntTag
    min: int | None = Field(default=None)
    max: int | None = Field(default=None)
    one_of: list[int] | None = Field(default=None)
    none_of: list[int] | None = Field(default=None)

    @model_validator(mode="after")
    def validate_range(self) -> Self:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"'min' ({self.min}) is greater than 'max' ({self.max})")
        if self.one_of is not None and (self.min is not None or self.max is not None):
            raise ValueError("'oneOf' cannot be combined with 'min'/'max'")
        return self


class FloatSchema(SchemaBase):
    type: FloatTag
    min: float | None = Field(default=None)
    max: float | None = Field(default=None)

    @model_validator(mode="after")
    def validate_range(self) -> Self:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"'min' ({self.min}) is greater than 'max' ({self.max})")
        return self


class BooleanSchema(SchemaBase):
    type: BooleanTag


class EmailSchema(SchemaBase):
    type: EmailTag


class _DateBounded(SchemaBase):
    format: DateFormat | None = Field(default=None)
    min: str | None = Field(default=None)
    max: str | None = Field(default=None)

    def effective_format(self) -> str:
        return self.format or DEFAULT_DATE_FORMAT

    @model_validator(mode="after")
    def validate_bounds(self) -> Self:
        fmt = self.effective_format()
        try:
            low = parse_any(self.min, [fmt]) if self.min is not None else None
            high = parse_any(self.max, [fmt]) if self.max is not None else None
        except VariableFormatError as e:
            raise ValueError(e.message) from None
        if low is not None and high is not None and low > high:
            raise ValueError(f"'min' ({self.min}) is after 'max' ({self.max})")
        return self


class DateSchema(_DateBounded):
    type: DateTag


class DatetimeSchema(_DateBounded):
    type: DatetimeTag

    def effective_format(self) -> str:
        return self.format or DEFAULT_DATETIME_FORMAT


class ArraySchema(LengthBounded):
    type: ArrayTag
    schema_: "SchemaMember | None" = Field(default=None, alias="schema", description="Schema or literal every element must match.")


class ObjectSchema(SchemaBase):
    type: ObjectTag
    schema_: "dict[str, SchemaMember] | None" = Field(default=None, alias="schema", description="Declared members.")
    strict: bool | None = Field(default=None, description="Reject undeclared members; inherits the response setting when unset.")


_CLASS_TO_TAG = {
    "ObjectSchema": SchemaType.OBJECT.value,
    "ArraySchema": SchemaType.ARRAY.value,
    "StringSchema": SchemaType.STRING.value,
    "IntSchema": SchemaType.INT.value,
    "FloatSchema": SchemaType.FLOAT.value,
    "BooleanSchema": SchemaType.BOOLEAN.value,
    "DateSchema": SchemaType.DATE.value,
    "DatetimeSchema": SchemaType.DATETIME.value,
    "EmailSchema": SchemaType.EMAIL.value,
}


def get_schema_discriminator(v: Any) -> str | None:
    if isinstance(v, dict):
        tag = schema_tag(v.get("type"))
        if tag:
            return tag

    if hasattr(v, "__class__"):
        tag = _CLASS_TO_TAG.get(v.__class__.__name__)
        if tag:
            return tag

    return None


def get_member_discriminator(v: Any) -> str:
    return get_schema_discriminator(v) or "literal"


SchemaNode = Annotated[
    Annotated[ObjectSchema, Tag("Object")]
    | Annotated[ArraySchema, Tag("Array")]
    | Annotated[StringSchema, Tag("String")]
    | Annotated[IntSchema, Tag("Int")]
    | Annotated[FloatSchema, Tag("Float")]
    | Annotated[BooleanSchema, Tag("Boolean")]
    | Annotated[DateSchema, Tag("Date")]
    | Annotated[DatetimeSchema, Tag("Datetime")]
    | Annotated[EmailSchema, Tag("Email")],
    Discriminator(get_schema_discriminator),
]


SchemaMember = Annotated[
    Annotated[ObjectSchema, Tag("Object")]
    | Annotated[ArraySchema, Tag("Array")]
    | Annotated[StringSchema, Tag("String")]
    | Annotated[IntSchema, Tag("Int")]
    | Annotated[FloatSchema, Tag("Float")]
    | Annotated[BooleanSchema, Tag("Boolean")]
    | Annotated[DateSchema, Tag("Date")]
    | Annotated[DatetimeSchema, Tag("Datetime")]
    | Annotated[EmailSchema, Tag("Email")]
    | Annotated[JsonValue, Tag("literal")],
    Discriminator(get_member_discriminator),
]


ArraySchema.model_rebuild()
ObjectSchema.model_rebuild()
