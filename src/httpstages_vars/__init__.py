from httpstages_vars.exceptions import (
    UnresolvedVariableError,
    VariableError,
    VariableFileError,
    VariableFormatError,
    VariableGenerationError,
)
from httpstages_vars.expressions import is_valid_name
from httpstages_vars.scope import VariableScope
from httpstages_vars.substitution import render_text, walk

__all__ = [
    "UnresolvedVariableError",
    "VariableError",
    "VariableFileError",
    "VariableFormatError",
    "VariableGenerationError",
    "VariableScope",
    "is_valid_name",
    "render_text",
    "walk",
]
