import re
from enum import StrEnum
from typing import Annotated, Any

import jmespath
from httpstages_vars.dates import check_format
from httpstages_vars.exceptions import VariableFormatError
from httpstages_vars.expressions import is_valid_name
from pydantic import AfterValidator, BeforeValidator, JsonValue


def validate_variable_name(v: str) -> str:
    if not is_valid_name(v):
        raise ValueError(f"Invalid variable name: '{v}' (allowed: letters, digits, '-' and '_')")
    return v


def validate_jmespath_expression(v: str) -> str:
    try:
        jmespath.compile(v)
    except Exception as e:
        raise ValueError("Invalid JMESPath expression") from e
    return v


def validate_regex_pattern(v: str) -> str:
    """Validate that a string is a valid regular expression."""
    try:
        re.compile(v)
    except re.error as e:
        raise ValueError("Invalid regular expression") from e
    return v


def validate_date_format(v: str) -> str:
    try:
        return check_format(v)
    except VariableFormatError as e:
        raise ValueError(f"Invalid date format: {e.message}") from None


def validate_dotted_path(v: str) -> str:
    if not v or any(not segment for segment in v.split(".")):
        raise ValueError(f"Invalid dotted path: '{v}'")
    return v


def _pairs_to_mapping(key_field: str):
    """Accept either a mapping or a list of ``{<key_field>: ..., value: ...}`` items."""

    def _normalize(v: Any) -> Any:
        if not isinstance(v, list):
            return v
        result: dict[str, Any] = {}
        for item in v:
            if not isinstance(item, dict) or set(item.keys()) != {key_field, "value"}:
                raise ValueError(f"Expected items like {{'{key_field}': ..., 'value': ...}}, got {item!r}")
            result[str(item[key_field])] = item["value"]
        return result

    return _normalize


def _split_tags(v: Any) -> Any:
    if isinstance(v, str):
        return [tag for tag in re.split(r"[\s,]+", v) if tag]
    return v


def case_insensitive(enum_cls: type[StrEnum], aliases: dict[str, str] | None = None):
    """Map any spelling of an enum value (or a known alias) to its canonical member."""
    lookup = {member.value.lower(): member for member in enum_cls}
    for alias, target in (aliases or {}).items():
        lookup[alias.lower()] = enum_cls(target)

    def _normalize(v: Any) -> Any:
        if isinstance(v, str):
            return lookup.get(v.lower(), v)
        return v

    return _normalize


VariableName = Annotated[str, AfterValidator(validate_variable_name)]
JMESPathExpression = Annotated[str, AfterValidator(validate_jmespath_expression)]
RegexPattern = Annotated[str, AfterValidator(validate_regex_pattern)]
DateFormat = Annotated[str, AfterValidator(validate_date_format)]
DottedPath = Annotated[str, AfterValidator(validate_dotted_path)]
HeaderMap = Annotated[dict[str, JsonValue], BeforeValidator(_pairs_to_mapping("header"))]
ParamMap = Annotated[dict[str, JsonValue], BeforeValidator(_pairs_to_mapping("param"))]
TagList = Annotated[list[str], BeforeValidator(_split_tags)]
