import re
from dataclasses import dataclass
from typing import Any

from httpstages_models.schema import (
    ArraySchema,
    BooleanSchema,
    DateSchema,
    DatetimeSchema,
    EmailSchema,
    FloatSchema,
    IntSchema,
    ObjectSchema,
    StringSchema,
)
from httpstages_vars.dates import parse_any, parse_instant
from httpstages_vars.exceptions import VariableFormatError
from pydantic import BaseModel

from .documents import diff_documents

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class Violation:
    path: str
    reason: str

    def __str__(self) -> str:
        return f"{self.path or '<root>'}: {self.reason}"


def _type_name(value: Any) -> str:
    match value:
        case None:
            return "null"
        case bool():
            return "boolean"
        case int():
            return "integer"
        case float():
            return "float"
        case str():
            return "string"
        case list():
            return "array"
        case dict():
            return "object"
        case _:
            return type(value).__name__


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _check_length(node: StringSchema | ArraySchema, size: int, path: str) -> list[Violation]:
    if node.length is not None and size != node.length:
        return [Violation(path, f"length {size} is not {node.length}")]
    if node.min_length is not None and size < node.min_length:
        return [Violation(path, f"length {size} is shorter than {node.min_length}")]
    if node.max_length is not None and size > node.max_length:
        return [Violation(path, f"length {size} is longer than {node.max_length}")]
    return []


def _check_bounds(value: Any, minimum: Any, maximum: Any, path: str, shown: Any = None) -> list[Violation]:
    shown = value if shown is None else shown
    if minimum is not None and value < minimum:
        return [Violation(path, f"{shown} is less than minimum")]
    if maximum is not None and value > maximum:
        return [Violation(path, f"{shown} is greater than maximum")]
    return []


def _check_choices(value: Any, one_of: list | None, none_of: list | None, path: str) -> list[Violation]:
    violations = []
    if one_of is not None and value not in one_of:
        violations.append(Violation(path, f"{value!r} is not one of {one_of!r}"))
    if none_of is not None and value in none_of:
        violations.append(Violation(path, f"{value!r} is one of the excluded values {none_of!r}"))
    return violations


def check_member(member: Any, value: Any, strict: bool, path: str) -> list[Violation]:
    """Check a value against a schema node, or against a literal by equality."""
    if isinstance(member, BaseModel):
        return check_schema(member, value, strict, path)

    diff = diff_documents(member, value, strict=strict, inclusive=not strict)
    if diff is not None:
        return [Violation(path, f"expected {member!r}, got {value!r}")]
    return []


def check_schema(node: BaseModel, value: Any, strict: bool = True, path: str = "") -> list[Violation]:
    """Validate ``value`` recursively, collecting every violation rather than stopping at the first."""
    match node:
        case ObjectSchema():
            if not isinstance(value, dict):
                return [Violation(path, f"expected object, got {_type_name(value)}")]
            if node.schema_ is None:
                return []
            node_strict = strict if node.strict is None else node.strict
            violations = []
            for name, member in node.schema_.items():
                if name not in value:
                    violations.append(Violation(_join(path, name), "missing required field"))
                else:
                    violations.extend(check_member(member, value[name], node_strict, _join(path, name)))
            if node_strict:
                for name in value:
                    if name not in node.schema_:
                        violations.append(Violation(_join(path, name), "unexpected field"))
            return violations

        case ArraySchema():
            if not isinstance(value, list):
                return [Violation(path, f"expected array, got {_type_name(value)}")]
            violations = _check_length(node, len(value), path)
            if node.schema_ is not None:
                for index, item in enumerate(value):
                    violations.extend(check_member(node.schema_, item, strict, f"{path}[{index}]"))
            return violations

        case StringSchema():
            if not isinstance(value, str):
                return [Violation(path, f"expected string, got {_type_name(value)}")]
            violations = _check_length(node, len(value), path)
            if node.pattern is not None and not re.search(node.pattern, value):
                violations.append(Violation(path, f"{value!r} doesn't match '{node.pattern}'"))
            violations.extend(_check_choices(value, node.one_of, node.none_of, path))
            return violations

        case IntSchema():
            if isinstance(value, bool) or not isinstance(value, int):
                if not strict and isinstance(value, float) and value.is_integer():
                    value = int(value)
                else:
                    return [Violation(path, f"expected integer, got {_type_name(value)}")]
            return _check_bounds(value, node.min, node.max, path) + _check_choices(value, node.one_of, node.none_of, path)

        case FloatSchema():
            accepted = (float,) if strict else (int, float)
            if isinstance(value, bool) or not isinstance(value, accepted):
                return [Violation(path, f"expected float, got {_type_name(value)}")]
            return _check_bounds(value, node.min, node.max, path)

        case BooleanSchema():
            if not isinstance(value, bool):
                return [Violation(path, f"expected boolean, got {_type_name(value)}")]
            return []

        case DateSchema() | DatetimeSchema():
            if not isinstance(value, str):
                return [Violation(path, f"expected date string, got {_type_name(value)}")]
            fmt = node.effective_format()
            try:
                parsed = parse_instant(value, fmt)
            except VariableFormatError:
                return [Violation(path, f"{value!r} doesn't match date format '{fmt}'")]
            low = parse_any(node.min, [fmt]) if node.min is not None else None
            high = parse_any(node.max, [fmt]) if node.max is not None else None
            return _check_bounds(parsed, low, high, path, shown=repr(value))

        case EmailSchema():
            if not isinstance(value, str) or not EMAIL_REGEX.match(value):
                return [Violation(path, f"{value!r} is not an email address")]
            return []

        case _:
            raise TypeError(f"Unknown schema node {type(node).__name__}")
