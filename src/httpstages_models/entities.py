import hashlib
import json
from enum import StrEnum
from http import HTTPMethod
from typing import Annotated, Any, Self

from httpstages_vars.dates import DEFAULT_DATE_FORMAT, DEFAULT_DATETIME_FORMAT, DateOperation, DateUnit, parse_any
from httpstages_vars.exceptions import VariableFormatError
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, JsonValue, NonNegativeInt, PositiveInt, model_validator
from pydantic.alias_generators import to_camel

from httpstages_models.schema import SchemaNode
from httpstages_models.types import (
    DateFormat,
    DottedPath,
    HeaderMap,
    JMESPathExpression,
    ParamMap,
    RegexPattern,
    TagList,
    VariableName,
    case_insensitive,
)


class Base(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True, alias_generator=to_camel)


def _upper_method(v: Any) -> Any:
    if isinstance(v, str):
        return v.upper()
    return v


Method = Annotated[HTTPMethod, BeforeValidator(_upper_method)]


def _check_unique_names(variables: list["VariableDefinition"], where: str) -> None:
    seen: set[str] = set()
    for variable in variables:
        if variable.name in seen:
            raise ValueError(f"Duplicate variable '{variable.name}' in {where}")
        seen.add(variable.name)


class VariableType(StrEnum):
    INT = "Int"
    FLOAT = "Float"
    BOOLEAN = "Boolean"
    STRING = "String"
    NAME = "Name"
    EMAIL = "Email"
    DATE = "Date"
    DATETIME = "Datetime"


VARIABLE_TYPE_ALIASES = {
    "integer": "Int",
    "bool": "Boolean",
    "str": "String",
    "date-time": "Datetime",
}

DATE_TYPES = {VariableType.DATE, VariableType.DATETIME}
NUMERIC_TYPES = {VariableType.INT, VariableType.FLOAT}
TEXT_TYPES = {VariableType.STRING}


class Modifier(Base):
    """Date shift applied to a Date/Datetime value before formatting."""

    operation: Annotated[DateOperation, BeforeValidator(case_insensitive(DateOperation))]
    value: NonNegativeInt = Field(description="Amount to shift by.")
    unit: Annotated[DateUnit, BeforeValidator(case_insensitive(DateUnit, {"day": "days", "week": "weeks", "month": "months", "year": "years"}))]


class VariableDefinition(Base):
    """A test or stage variable.

    The value comes from exactly one source: a literal ``value``, a
    ``valueSet`` cycled over iterations, a ``file`` read when the variable is
    produced, or generation under the declared constraints. Without a
    ``type`` the value keeps its own JSON type (file contents stay text,
    ``.json`` files are decoded).
    """

    name: VariableName
    type: Annotated[VariableType | None, BeforeValidator(case_insensitive(VariableType, VARIABLE_TYPE_ALIASES))] = Field(default=None)
    value: JsonValue = Field(default=None, description="Literal value, may reference other variables.")
    value_set: list[JsonValue] | None = Field(default=None, min_length=1, description="Values cycled over iterations.")
    file: str | None = Field(default=None, min_length=1, description="Path of a file whose contents become the value, may reference other variables.")
    min: int | float | str | None = Field(default=None)
    max: int | float | str | None = Field(default=None)
    pattern: RegexPattern | None = Field(default=None)
    length: NonNegativeInt | None = Field(default=None)
    min_length: NonNegativeInt | None = Field(default=None)
    max_length: NonNegativeInt | None = Field(default=None)
    one_of: list[JsonValue] | None = Field(default=None, min_length=1)
    any_of: list[JsonValue] | None = Field(default=None, min_length=1)
    none_of: list[JsonValue] | None = Field(default=None)
    modifier: Modifier | None = Field(default=None)
    format: DateFormat | None = Field(default=None)

    @property
    def has_value(self) -> bool:
        return "value" in self.model_fields_set

    @property
    def is_generated(self) -> bool:
        return not self.has_value and self.value_set is None and self.file is None

    @property
    def constraint_fields(self) -> dict[str, Any]:
        names = ("min", "max", "pattern", "length", "min_length", "max_length", "one_of", "any_of", "none_of")
        return {name: getattr(self, name) for name in names if getattr(self, name) is not None}

    def effective_format(self) -> str:
        if self.format:
            return self.format
        return DEFAULT_DATETIME_FORMAT if self.type == VariableType.DATETIME else DEFAULT_DATE_FORMAT

    @model_validator(mode="after")
    def validate_sources(self) -> Self:
        present = {"value": self.has_value, "valueSet": self.value_set is not None, "file": self.file is not None}
        sources = [name for name, given in present.items() if given]
        if len(sources) > 1:
            raise ValueError(f"'{sources[0]}' and '{sources[1]}' are mutually exclusive")

        constraints = self.constraint_fields
        if not self.is_generated and constraints:
            raise ValueError(f"Generation constraints ({', '.join(sorted(constraints))}) cannot be combined with 'value', 'valueSet' or 'file'")
        if self.is_generated and self.type is None:
            raise ValueError("'type' is required for generated variables")

        if self.one_of is not None and self.any_of is not None:
            raise ValueError("'oneOf' and 'anyOf' are mutually exclusive")
        if (self.one_of is not None or self.any_of is not None) and ({"min", "max", "pattern", "length", "min_length", "max_length"} & constraints.keys()):
            raise ValueError("'oneOf'/'anyOf' cannot be combined with 'min', 'max', 'pattern' or length constraints")
        return self

    @model_validator(mode="after")
    def validate_type_constraints(self) -> Self:
        if self.modifier is not None:
            if self.type not in DATE_TYPES:
                raise ValueError(f"'modifier' is only allowed for Date and Datetime variables, not {self.type or 'untyped'}")
            if self.is_generated:
                raise ValueError("'modifier' requires a 'value', 'valueSet' or 'file'")

        if self.format is not None and self.type not in DATE_TYPES:
            raise ValueError(f"'format' is only allowed for Date and Datetime variables, not {self.type or 'untyped'}")

        has_lengths = any(v is not None for v in (self.pattern, self.length, self.min_length, self.max_length))
        if has_lengths and self.type not in TEXT_TYPES:
            raise ValueError(f"'pattern' and length constraints are only allowed for String variables, not {self.type or 'untyped'}")
        if self.length is not None and (self.min_length is not None or self.max_length is not None):
            raise ValueError("'length' cannot be combined with 'minLength'/'maxLength'")
        if self.min_length is not None and self.max_length is not None and self.min_length > self.max_length:
            raise ValueError(f"'minLength' ({self.min_length}) is greater than 'maxLength' ({self.max_length})")

        if self.min is not None or self.max is not None:
            if self.type in NUMERIC_TYPES:
                for bound in (self.min, self.max):
                    if bound is not None and (isinstance(bound, str | bool) or (self.type == VariableType.INT and isinstance(bound, float))):
                        raise ValueError(f"'min'/'max' of {self.type} variable must be {self.type.value.lower()} numbers")
                if self.min is not None and self.max is not None and self.min > self.max:
                    raise ValueError(f"'min' ({self.min}) is greater than 'max' ({self.max})")
            elif self.type in DATE_TYPES:
                fmt = self.effective_format()
                try:
                    low = parse_any(str(self.min), [fmt]) if self.min is not None else None
                    high = parse_any(str(self.max), [fmt]) if self.max is not None else None
                except VariableFormatError as e:
                    raise ValueError(e.message) from None
                if low is not None and high is not None and low > high:
                    raise ValueError(f"'min' ({self.min}) is after 'max' ({self.max})")
            else:
                raise ValueError(f"'min'/'max' are not allowed for {self.type} variables")
        return self


def _check_unique_extracts(rules: list["ExtractRule"]) -> None:
    seen: set[str] = set()
    for rule in rules:
        if rule.name in seen:
            raise ValueError(f"Variable '{rule.name}' is extracted twice")
        seen.add(rule.name)


class RequestSpec(Base):
    method: Method = Field(default=HTTPMethod.GET)
    url: str = Field(min_length=1)
    headers: HeaderMap = Field(default_factory=dict)
    params: ParamMap = Field(default_factory=dict)
    body: JsonValue = Field(default=None, description="JSON body, sent only when given.")

    @property
    def has_body(self) -> bool:
        return "body" in self.model_fields_set


class CompareSpec(Base):
    """Second request of a two-endpoint comparison, derived from the primary one."""

    method: Method | None = Field(default=None)
    url: str = Field(min_length=1)
    params: ParamMap | None = Field(default=None, description="Replaces the primary params when given.")
    add_params: ParamMap = Field(default_factory=dict)
    ignore_params: list[str] = Field(default_factory=list)
    headers: HeaderMap | None = Field(default=None, description="Replaces the primary headers when given.")
    add_headers: HeaderMap = Field(default_factory=dict)
    ignore_headers: list[str] = Field(default_factory=list)
    body: JsonValue = Field(default=None)
    strict: bool | None = Field(default=None, description="Body comparison strictness, defaults to the response's.")

    @property
    def has_body(self) -> bool:
        return "body" in self.model_fields_set


class ExtractRule(Base):
    name: VariableName
    field: DottedPath | None = Field(default=None, description="Dotted path into the response body.")
    expression: JMESPathExpression | None = Field(default=None, description="JMESPath expression over the response body.")

    @model_validator(mode="after")
    def validate_source(self) -> Self:
        if (self.field is None) == (self.expression is None):
            raise ValueError("Exactly one of 'field' or 'expression' is required")
        return self


StatusCode = Annotated[int, Field(ge=100, le=599)]


class StatusSpec(Base):
    """Accepted status codes given as bounds and/or an enumeration instead of a single code."""

    value: StatusCode | None = Field(default=None)
    min: StatusCode | None = Field(default=None)
    max: StatusCode | None = Field(default=None)
    one_of: list[StatusCode] | None = Field(default=None, min_length=1)
    any_of: list[StatusCode] | None = Field(default=None, min_length=1)
    none_of: list[StatusCode] | None = Field(default=None, min_length=1)

    @property
    def choices(self) -> list[int] | None:
        return self.one_of or self.any_of

    @model_validator(mode="after")
    def validate_combination(self) -> Self:
        if not self.model_fields_set:
            raise ValueError("Status specification is empty")
        exact = [name for name, given in (("value", self.value), ("oneOf", self.one_of), ("anyOf", self.any_of)) if given is not None]
        if len(exact) > 1:
            raise ValueError(f"'{exact[0]}' and '{exact[1]}' are mutually exclusive")
        if exact and (self.min is not None or self.max is not None):
            raise ValueError(f"'min'/'max' cannot be combined with '{exact[0]}'")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"'min' ({self.min}) is greater than 'max' ({self.max})")
        return self

    def accepts(self, status: int) -> bool:
        if self.value is not None and status != self.value:
            return False
        if self.choices is not None and status not in self.choices:
            return False
        if self.none_of is not None and status in self.none_of:
            return False
        if self.min is not None and status < self.min:
            return False
        if self.max is not None and status > self.max:
            return False
        return True

    def __str__(self) -> str:
        parts = []
        if self.value is not None:
            parts.append(str(self.value))
        if self.choices is not None:
            parts.append(f"one of {self.choices}")
        if self.min is not None:
            parts.append(f">= {self.min}")
        if self.max is not None:
            parts.append(f"<= {self.max}")
        if self.none_of is not None:
            parts.append(f"none of {self.none_of}")
        return ", ".join(parts)


class ResponseSpec(Base):
    status: StatusCode | StatusSpec | None = Field(default=None)
    headers: HeaderMap = Field(default_factory=dict, description="Expected header values.")
    body: JsonValue = Field(default=None)
    body_schema: SchemaNode | None = Field(default=None)
    ignore: list[DottedPath] = Field(default_factory=list, description="Paths pruned from both sides before comparing.")
    extract: list[ExtractRule] = Field(default_factory=list)
    strict: bool = Field(default=True)

    @property
    def has_body(self) -> bool:
        return "body" in self.model_fields_set

    @property
    def checks_body(self) -> bool:
        return self.has_body or self.body_schema is not None or bool(self.ignore)

    @model_validator(mode="after")
    def validate_body_checks(self) -> Self:
        if self.has_body and self.body_schema is not None:
            raise ValueError("'body' and 'bodySchema' are mutually exclusive")
        _check_unique_extracts(self.extract)
        return self


class Stage(Base):
    name: str | None = Field(default=None)
    request: RequestSpec
    compare: CompareSpec | None = Field(default=None)
    response: ResponseSpec | None = Field(default=None)
    variables: list[VariableDefinition] = Field(default_factory=list)
    delay: NonNegativeInt = Field(default=0, description="Milliseconds to wait before sending the request.")

    @model_validator(mode="after")
    def validate_variables(self) -> Self:
        _check_unique_names(self.variables, "stage")
        return self


class SetupSpec(Base):
    request: RequestSpec
    response: ResponseSpec | None = Field(default=None)


class CleanupSpec(Base):
    onsuccess: RequestSpec | None = Field(default=None)
    onfailure: RequestSpec | None = Field(default=None)
    always: RequestSpec | None = Field(default=None)


SHORTHAND_FIELDS = ("request", "compare", "response")


def content_id(document: dict[str, Any]) -> str:
    """Stable id derived from the document contents."""
    payload = json.dumps(document, sort_keys=True, default=str).encode()
    return hashlib.sha256(payload).hexdigest()[:16]


class TestDefinition(Base):
    __test__ = False

    id: str = Field(min_length=1)
    name: str | None = Field(default=None)
    description: str | None = Field(default=None)
    tags: TagList = Field(default_factory=list)
    requires: str | None = Field(default=None, description="Id of the test that must run first.")
    iterate: PositiveInt = Field(default=1)
    env: str | None = Field(default=None, description="Environment label selecting environment globals.")
    disabled: bool = Field(default=False)
    setup: SetupSpec | None = Field(default=None)
    stages: list[Stage] = Field(min_length=1)
    cleanup: CleanupSpec = Field(default_factory=CleanupSpec)
    variables: list[VariableDefinition] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def normalize_document(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        data = dict(data)
        if not data.get("id"):
            data["id"] = content_id(data)

        shorthand = {key: data.pop(key) for key in SHORTHAND_FIELDS if key in data}
        if shorthand:
            if "stages" in data:
                raise ValueError(f"Top-level {', '.join(shorthand)} cannot be combined with 'stages'")
            data["stages"] = [shorthand]
        return data

    @model_validator(mode="after")
    def validate_variables(self) -> Self:
        _check_unique_names(self.variables, "test")
        if self.requires == self.id:
            raise ValueError(f"Test '{self.id}' requires itself")
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def responses(self) -> list[ResponseSpec]:
        specs = [stage.response for stage in self.stages if stage.response]
        if self.setup and self.setup.response:
            specs.insert(0, self.setup.response)
        return specs

    def extracted_names(self) -> set[str]:
        return {rule.name for spec in self.responses() for rule in spec.extract}
