"""Variable substitution functionality."""

import json
from collections.abc import Mapping
from typing import Any

from httpstages_vars.exceptions import UnresolvedVariableError
from httpstages_vars.expressions import VARIABLE_REGEX, extract_reference


def _lookup(name: str, context: Mapping[str, Any]) -> Any:
    try:
        return context[name]
    except KeyError:
        raise UnresolvedVariableError(name) from None


def to_text(value: Any) -> str:
    """Render a value for interpolation inside a larger string."""
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def _sub_string(line: str, context: Mapping[str, Any]) -> Any:
    name = extract_reference(line)
    if name is not None:
        # whole string is a reference, keep the value type
        return _lookup(name, context)
    else:
        # replace bits in string
        return VARIABLE_REGEX.sub(lambda m: to_text(_lookup(m.group("name"), context)), line)


def walk(obj: Any, context: Mapping[str, Any]) -> Any:
    """Recursively substitute references in string values of an arbitrary object."""
    match obj:
        case str():
            return _sub_string(obj, context)
        case dict():
            return {key: walk(value, context) for key, value in obj.items()}
        case list():
            return [walk(item, context) for item in obj]
        case tuple():
            return tuple(walk(item, context) for item in obj)
        case _:
            return obj


def render_text(obj: Any, context: Mapping[str, Any]) -> str:
    """Substitute and coerce the result to a string (urls, header and param values)."""
    return to_text(walk(obj, context))
