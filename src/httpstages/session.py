"""Running a set of test definitions as one session.

A session resolves the dependency order, runs every test through a
:class:`TestExecutor` (concurrently where the settings allow it), hands
extracted values down the ``requires`` chains and aggregates the outcomes
into a :class:`SessionReport`.
"""

import asyncio
import logging
import random
import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from httpstages_models import DefinitionError, TestDefinition

from .clock import Clock, SystemClock
from .constants import ExitCode, OutcomeStatus
from .dependency import DependencyResolver, ExecutionPlan
from .exceptions import CyclicDependency
from .executor import TestExecutor
from .report_formatter import format_outcome, format_summary
from .results import TestOutcome
from .scheduler import execute_plan
from .settings import EngineSettings
from .telemetry import TelemetryDispatcher, TelemetrySink
from .transport import HttpxTransport, Transport
from .variables import VariableEngine

logger = logging.getLogger(__name__)

SEED_BITS = 32


@dataclass
class SessionReport:
    session_id: str
    seed: int
    outcomes: list[TestOutcome] = field(default_factory=list)
    definition_errors: list[DefinitionError] = field(default_factory=list)
    fatal_error: Exception | None = None
    elapsed: float = 0.0

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def passed(self) -> int:
        return self.count(OutcomeStatus.PASSED)

    @property
    def failed(self) -> int:
        return self.count(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self.count(OutcomeStatus.SKIPPED)

    def outcomes_of(self, test_id: str) -> list[TestOutcome]:
        return [outcome for outcome in self.outcomes if outcome.test_id == test_id]

    @property
    def exit_code(self) -> ExitCode:
        if self.fatal_error is not None:
            return ExitCode.FATAL
        if self.failed or self.definition_errors:
            return ExitCode.TESTS_FAILED
        return ExitCode.OK


def _placeholder(definition: TestDefinition, status: OutcomeStatus, detail: str) -> TestOutcome:
    return TestOutcome(test_id=definition.id, name=definition.display_name, iteration=0, status=status, detail=detail)


class Session:
    def __init__(
        self,
        settings: EngineSettings | None = None,
        transport: Transport | None = None,
        clock: Clock | None = None,
        telemetry: TelemetrySink | None = None,
    ):
        self.settings = settings or EngineSettings()
        self.transport = transport
        self.clock = clock or SystemClock()
        self.telemetry = telemetry
        self.cancelled = asyncio.Event()

    def cancel(self) -> None:
        """Stop scheduling new tests and iterations; running requests finish."""
        logger.warning("Session cancelled")
        self.cancelled.set()

    async def run(self, definitions: Iterable[TestDefinition], definition_errors: Iterable[DefinitionError] = ()) -> SessionReport:
        started = time.perf_counter()
        seed = self.settings.seed if self.settings.seed is not None else random.SystemRandom().getrandbits(SEED_BITS)
        report = SessionReport(session_id=uuid.uuid4().hex, seed=seed, definition_errors=list(definition_errors))
        logger.info(f"Session seed: {seed}")

        try:
            plan = DependencyResolver(definitions).resolve()
        except CyclicDependency as e:
            logger.error(e.message)
            report.fatal_error = e
            report.elapsed = time.perf_counter() - started
            return report

        for rejection in plan.rejected:
            if isinstance(rejection.error, DefinitionError):
                report.definition_errors.append(rejection.error)

        dispatcher = TelemetryDispatcher(self.telemetry, report.session_id)
        dispatcher.emit("session_started", len(plan.order))

        transport = self.transport
        owned: HttpxTransport | None = None
        if transport is None:
            owned = transport = HttpxTransport(timeout=self.settings.request_timeout)

        try:
            executor = TestExecutor(
                transport=transport,
                variables=VariableEngine(self.clock, seed, self.settings.max_generation_attempts),
                settings=self.settings,
                cancelled=self.cancelled,
            )
            report.outcomes = await self._execute(plan, executor, dispatcher)
        finally:
            if owned is not None:
                await owned.aclose()

        report.elapsed = time.perf_counter() - started
        dispatcher.emit("session_completed", report)
        await dispatcher.drain()

        for outcome in report.outcomes:
            if not outcome.passed:
                logger.info(format_outcome(outcome))
        logger.info(f"Session {report.session_id} finished in {report.elapsed:.3f}s: {format_summary(report.outcomes)}")
        return report

    async def _execute(self, plan: ExecutionPlan, executor: TestExecutor, dispatcher: TelemetryDispatcher) -> list[TestOutcome]:
        exports: dict[str, dict[str, Any]] = {}
        halted: str | None = None

        async def run_one(index: int, definition: TestDefinition) -> list[TestOutcome]:
            nonlocal halted

            if definition.disabled:
                logger.info(f"Test {definition.id} is disabled, skipping")
                outcomes = [_placeholder(definition, OutcomeStatus.SKIPPED, "Test is disabled")]
            elif (rejection := plan.rejection_for(definition)) is not None:
                outcomes = [_placeholder(definition, OutcomeStatus.FAILED, str(rejection.error))]
            elif self.cancelled.is_set():
                outcomes = [_placeholder(definition, OutcomeStatus.SKIPPED, "Session cancelled")]
            elif halted is not None:
                outcomes = [_placeholder(definition, OutcomeStatus.SKIPPED, f"Skipped after failure of {halted}")]
            else:
                inherited: dict[str, Any] = {}
                for ancestor in plan.ancestors(definition.id):
                    inherited.update(exports.get(ancestor, {}))
                outcomes = await executor.run_test(definition, inherited)
                if outcomes:
                    exports[definition.id] = outcomes[-1].extracted
                else:
                    outcomes = [_placeholder(definition, OutcomeStatus.SKIPPED, "Session cancelled")]

            if not self.settings.continue_on_failure and halted is None and any(outcome.failed for outcome in outcomes):
                halted = definition.id
                logger.warning(f"Test {definition.id} failed, skipping the remaining tests")

            for outcome in outcomes:
                dispatcher.emit("test_completed", outcome)
            return outcomes

        max_workers = self.settings.max_workers if self.settings.continue_on_failure else 1
        results = await execute_plan(plan.order, run_one, max_workers)
        return [outcome for result in results for outcome in result.outcomes]


def run_session(
    definitions: Iterable[TestDefinition],
    settings: EngineSettings | None = None,
    transport: Transport | None = None,
    clock: Clock | None = None,
    telemetry: TelemetrySink | None = None,
    definition_errors: Iterable[DefinitionError] = (),
) -> SessionReport:
    """Synchronous entry point: run a session on a fresh event loop."""
    session = Session(settings=settings, transport=transport, clock=clock, telemetry=telemetry)
    return asyncio.run(session.run(definitions, definition_errors))


def filter_by_tags(definitions: Iterable[TestDefinition], tags: Iterable[str], mode: Literal["any", "all"] = "any") -> list[TestDefinition]:
    """Keep the definitions carrying any (or all) of the given tags; no tags keeps everything."""
    wanted = {tag.lower() for tag in tags}
    if not wanted:
        return list(definitions)
    selected = []
    for definition in definitions:
        present = {tag.lower() for tag in definition.tags}
        if (wanted <= present) if mode == "all" else (wanted & present):
            selected.append(definition)
    return selected
