from dataclasses import dataclass, field
from typing import Any

from .constants import OutcomeStatus, RequestKind, StageKind
from .transport import HttpRequest, HttpResponse


@dataclass
class Exchange:
    """One request sent during a stage, with its response when one arrived."""

    kind: RequestKind
    request: HttpRequest
    response: HttpResponse | None = None


@dataclass
class StageResult:
    name: str
    kind: StageKind
    status: OutcomeStatus = OutcomeStatus.PASSED
    exchanges: list[Exchange] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    extracted: dict[str, Any] = field(default_factory=dict)
    elapsed: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status == OutcomeStatus.PASSED

    def fail(self, error: Exception, message: str) -> None:
        self.status = OutcomeStatus.FAILED
        self.errors.append(error)
        self.messages.append(message)

    def requests_of(self, kind: RequestKind) -> list[HttpRequest]:
        return [exchange.request for exchange in self.exchanges if exchange.kind == kind]


@dataclass
class TestOutcome:
    """Result of one iteration of one test."""

    __test__ = False

    test_id: str
    name: str
    iteration: int
    status: OutcomeStatus
    elapsed: float = 0.0
    stages: list[StageResult] = field(default_factory=list)
    detail: str | None = None
    extracted: dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.status == OutcomeStatus.PASSED

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    def stages_of(self, kind: StageKind) -> list[StageResult]:
        return [stage for stage in self.stages if stage.kind == kind]

    def requests_of(self, kind: RequestKind) -> list[HttpRequest]:
        return [request for stage in self.stages for request in stage.requests_of(kind)]
