import re

# ${name} reference, used both for validation and substitution
VARIABLE_PATTERN = r"\$\{(?P<name>[A-Za-z0-9_-]+)\}"
VARIABLE_REGEX = re.compile(VARIABLE_PATTERN)

NAME_PATTERN = r"^[A-Za-z0-9_-]+$"
NAME_REGEX = re.compile(NAME_PATTERN)


def is_valid_name(value: str) -> bool:
    return NAME_REGEX.match(value) is not None


def extract_reference(value: str) -> str | None:
    """Return the referenced name when the whole string is a single reference."""
    match = VARIABLE_REGEX.fullmatch(value)
    if match:
        return match.group("name")
    return None
