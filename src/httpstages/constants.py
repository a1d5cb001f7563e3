from enum import IntEnum, StrEnum


class RequestKind(StrEnum):
    """Role of a request inside a test iteration."""

    PRIMARY = "primary"
    COMPARE = "compare"
    SETUP = "setup"
    CLEANUP_ON_SUCCESS = "cleanup_onsuccess"
    CLEANUP_ON_FAILURE = "cleanup_onfailure"
    CLEANUP_ALWAYS = "cleanup_always"


class StageKind(StrEnum):
    SETUP = "setup"
    NORMAL = "normal"
    CLEANUP = "cleanup"


class OutcomeStatus(StrEnum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ExitCode(IntEnum):
    OK = 0
    TESTS_FAILED = 1
    FATAL = 2
