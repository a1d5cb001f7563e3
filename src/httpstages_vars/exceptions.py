"""Exception classes for variable resolution."""


class VariableError(Exception):
    """Base exception for all variable errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnresolvedVariableError(VariableError):
    """A reference names a variable that is not in scope."""

    def __init__(self, name: str):
        super().__init__(f"Unresolved variable reference '${{{name}}}'")
        self.name = name


class VariableFormatError(VariableError):
    """A date value could not be parsed, shifted or formatted."""


class VariableGenerationError(VariableError):
    """No value satisfying the constraints could be generated."""


class VariableFileError(VariableError):
    """A variable file could not be read or decoded."""
