from typing import Any


class StageExecutionError(Exception):
    """Base exception for failures while running a setup, stage or cleanup request."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(StageExecutionError):
    """The request could not be sent or no response arrived."""


class CompareTransportError(TransportError):
    """The second request of a two-endpoint comparison failed to send."""


class ExtractionError(StageExecutionError):
    pass


class VerificationError(StageExecutionError):
    pass


class StatusMismatch(VerificationError):
    def __init__(self, expected: Any, actual: int, what: str = "Status code"):
        super().__init__(f"{what} doesn't match: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class HeaderMismatch(VerificationError):
    def __init__(self, name: str, expected: str, actual: str | None):
        super().__init__(f"Header '{name}' doesn't match: expected {expected}, got {actual}")
        self.name = name


class BodyMismatch(VerificationError):
    def __init__(self, diff: str, what: str = "Response body doesn't match"):
        super().__init__(f"{what}\n{diff}")
        self.diff = diff


class SchemaViolation(VerificationError):
    def __init__(self, violations: list):
        details = "\n".join(f"  - {violation}" for violation in violations)
        super().__init__(f"Body schema validation failed:\n{details}")
        self.violations = violations


class InvalidJsonBody(VerificationError):
    pass


class ResolutionError(Exception):
    """Base exception for dependency ordering failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CyclicDependency(ResolutionError):
    def __init__(self, members: list[str]):
        super().__init__(f"Cyclic dependency between tests: {' -> '.join(members)}")
        self.members = members


class UnresolvedDependency(ResolutionError):
    def __init__(self, test_id: str, missing: str, reason: str = "is not defined"):
        super().__init__(f"Test '{test_id}' requires '{missing}', which {reason}")
        self.test_id = test_id
        self.missing = missing


class ExtractionConflict(ResolutionError):
    def __init__(self, test_id: str, other_id: str, names: set[str]):
        super().__init__(f"Test '{test_id}' extracts {', '.join(sorted(names))} also extracted by unrelated test '{other_id}'")
        self.test_id = test_id
        self.other_id = other_id
        self.names = names
