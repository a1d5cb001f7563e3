from httpstages.clock import Clock, FixedClock, SystemClock
from httpstages.constants import ExitCode, OutcomeStatus, RequestKind, StageKind
from httpstages.dependency import DependencyResolver, ExecutionPlan, resolve_order
from httpstages.exceptions import (
    CyclicDependency,
    ExtractionConflict,
    ResolutionError,
    StageExecutionError,
    TransportError,
    UnresolvedDependency,
    VerificationError,
)
from httpstages.executor import TestExecutor
from httpstages.results import StageResult, TestOutcome
from httpstages.session import Session, SessionReport, filter_by_tags, run_session
from httpstages.settings import EngineSettings
from httpstages.telemetry import TelemetrySink
from httpstages.transport import HttpRequest, HttpResponse, HttpxTransport, Transport
from httpstages_models import DefinitionError, TestDefinition, load_paths

__all__ = [
    "Clock",
    "CyclicDependency",
    "DefinitionError",
    "DependencyResolver",
    "EngineSettings",
    "ExecutionPlan",
    "ExitCode",
    "ExtractionConflict",
    "FixedClock",
    "HttpRequest",
    "HttpResponse",
    "HttpxTransport",
    "OutcomeStatus",
    "RequestKind",
    "ResolutionError",
    "Session",
    "SessionReport",
    "StageExecutionError",
    "StageKind",
    "StageResult",
    "SystemClock",
    "TelemetrySink",
    "TestDefinition",
    "TestExecutor",
    "TestOutcome",
    "Transport",
    "TransportError",
    "UnresolvedDependency",
    "VerificationError",
    "filter_by_tags",
    "load_paths",
    "resolve_order",
    "run_session",
]
