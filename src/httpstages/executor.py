"""Staged execution of a single test.

Every iteration runs the same pipeline against a fresh variable scope:

1. Test variables are materialized into the local layer of the scope.
2. The optional setup request runs; if it fails, no stage runs.
3. Stages run in order. Each one materializes its own variables, renders
   and sends its request (and the comparison request, if any), verifies the
   response and pushes extracted values into the scope for later stages.
   The first failing stage ends the iteration.
4. Cleanup runs last: ``onsuccess`` or ``onfailure`` depending on the
   outcome, then ``always``. Cleanup results are recorded but never change
   the outcome.

Exceptions:
- VariableError: a reference or value could not be resolved
- StageExecutionError: transport, verification or extraction failure

Both are caught here and turned into stage failures; nothing escapes an
iteration except cancellation of the surrounding task.
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from typing import Any

from httpstages_models import CleanupSpec, CompareSpec, RequestSpec, ResponseSpec, TestDefinition, VariableDefinition
from httpstages_vars.exceptions import VariableError
from httpstages_vars.scope import VariableScope

from .constants import OutcomeStatus, RequestKind, StageKind
from .exceptions import CompareTransportError, StageExecutionError, TransportError
from .report_formatter import format_request, format_response
from .request import merge_compare, render_request
from .response import process_compare_step, process_extract_step, process_verify_step, render_expectations
from .results import Exchange, StageResult, TestOutcome
from .settings import EngineSettings
from .transport import HttpRequest, HttpResponse, Transport
from .variables import VariableEngine

logger = logging.getLogger(__name__)


class TestExecutor:
    __test__ = False

    def __init__(
        self,
        transport: Transport,
        variables: VariableEngine,
        settings: EngineSettings,
        cancelled: asyncio.Event | None = None,
    ):
        self.transport = transport
        self.variables = variables
        self.settings = settings
        self.cancelled = cancelled or asyncio.Event()

    def new_scope(self, definition: TestDefinition, inherited: Mapping[str, Any]) -> VariableScope:
        global_vars = {**self.variables.builtins(), **self.settings.globals, **self.settings.secrets}
        return VariableScope(
            global_vars=global_vars,
            environment_vars=self.settings.environment_globals(definition.env),
            inherited_vars=inherited,
            secrets=self.settings.secrets.values(),
        )

    async def run_test(self, definition: TestDefinition, inherited: Mapping[str, Any] | None = None) -> list[TestOutcome]:
        """Run all iterations of a test, strictly one after another."""
        outcomes: list[TestOutcome] = []
        for iteration in range(definition.iterate):
            if self.cancelled.is_set():
                logger.info(f"Test {definition.id}: cancelled before iteration {iteration}")
                break
            outcomes.append(await self.run_iteration(definition, iteration, inherited or {}))
        return outcomes

    async def run_iteration(self, definition: TestDefinition, iteration: int, inherited: Mapping[str, Any]) -> TestOutcome:
        started = time.perf_counter()
        scope = self.new_scope(definition, inherited)
        stages: list[StageResult] = []
        failure: str | None = None

        logger.info(f"Test {definition.display_name} [{definition.id}] iteration {iteration}")

        try:
            self.variables.materialize(definition.variables, iteration, scope, scope.declare_local, salt=definition.id)
        except VariableError as e:
            failure = scope.redact(f"Variables: {e.message}")

        if failure is None and definition.setup is not None:
            setup = await self._run_step(
                definition,
                iteration,
                scope,
                name="setup",
                kind=StageKind.SETUP,
                request_kind=RequestKind.SETUP,
                request_spec=definition.setup.request,
                response_spec=definition.setup.response,
            )
            stages.append(setup)
            if not setup.passed:
                failure = "Setup failed: " + "; ".join(setup.messages)

        if failure is None:
            for index, stage in enumerate(definition.stages):
                if self.cancelled.is_set():
                    failure = f"Cancelled before stage {index + 1}"
                    break
                result = await self._run_step(
                    definition,
                    iteration,
                    scope,
                    name=stage.name or f"stage {index + 1}",
                    kind=StageKind.NORMAL,
                    request_kind=RequestKind.PRIMARY,
                    request_spec=stage.request,
                    response_spec=stage.response,
                    compare_spec=stage.compare,
                    variables=stage.variables,
                    delay=stage.delay,
                )
                stages.append(result)
                if not result.passed:
                    failure = f"Stage '{result.name}' failed: " + "; ".join(result.messages)
                    break

        passed = failure is None
        stages.extend(await self._run_cleanup(definition, iteration, scope, definition.cleanup, passed))

        elapsed = time.perf_counter() - started
        status = OutcomeStatus.PASSED if passed else OutcomeStatus.FAILED
        if passed:
            logger.info(f"Test {definition.display_name} iteration {iteration} passed ({elapsed:.3f}s)")
        else:
            logger.error(f"Test {definition.display_name} iteration {iteration} failed: {failure}")

        return TestOutcome(
            test_id=definition.id,
            name=definition.display_name,
            iteration=iteration,
            status=status,
            elapsed=elapsed,
            stages=stages,
            detail=failure,
            extracted=dict(scope.extracted),
        )

    async def _run_cleanup(
        self,
        definition: TestDefinition,
        iteration: int,
        scope: VariableScope,
        cleanup: CleanupSpec,
        passed: bool,
    ) -> list[StageResult]:
        planned = [(RequestKind.CLEANUP_ON_SUCCESS, cleanup.onsuccess)] if passed else [(RequestKind.CLEANUP_ON_FAILURE, cleanup.onfailure)]
        planned.append((RequestKind.CLEANUP_ALWAYS, cleanup.always))

        results = []
        for request_kind, request_spec in planned:
            if request_spec is None:
                continue
            result = await self._run_step(
                definition,
                iteration,
                scope,
                name=str(request_kind),
                kind=StageKind.CLEANUP,
                request_kind=request_kind,
                request_spec=request_spec,
                response_spec=None,
            )
            if not result.passed:
                logger.warning(f"Cleanup {request_kind} of {definition.id} failed: {'; '.join(result.messages)}")
            results.append(result)
        return results

    async def _run_step(
        self,
        definition: TestDefinition,
        iteration: int,
        scope: VariableScope,
        name: str,
        kind: StageKind,
        request_kind: RequestKind,
        request_spec: RequestSpec,
        response_spec: ResponseSpec | None,
        compare_spec: CompareSpec | None = None,
        variables: list[VariableDefinition] | None = None,
        delay: int = 0,
    ) -> StageResult:
        result = StageResult(name=name, kind=kind)
        started = time.perf_counter()

        try:
            scope.enter_stage()
            self.variables.materialize(variables or [], iteration, scope, scope.declare_stage, salt=definition.id)

            request = render_request(request_spec, scope.context, request_kind)
            expected = render_expectations(response_spec, scope.context) if response_spec is not None else None
            if delay:
                await asyncio.sleep(delay / 1000)
            response = await self._send(result, request, scope)

            if expected is not None:
                for failure in process_verify_step(expected, response):
                    result.fail(failure, scope.redact(failure.message))

            if compare_spec is not None:
                compare_request = render_request(merge_compare(request_spec, compare_spec), scope.context, RequestKind.COMPARE)
                try:
                    compare_response = await self._send(result, compare_request, scope)
                except TransportError as e:
                    raise CompareTransportError(f"Compare request failed: {e.message}") from None
                for failure in process_compare_step(expected, response, compare_response, compare_spec):
                    result.fail(failure, scope.redact(failure.message))

            if result.passed and expected is not None:
                result.extracted = process_extract_step(expected.extract, response)
                scope.record_extracted(result.extracted)

        except (VariableError, StageExecutionError) as e:
            result.fail(e, scope.redact(e.message))

        result.elapsed = time.perf_counter() - started
        return result

    async def _send(self, result: StageResult, request: HttpRequest, scope: VariableScope) -> HttpResponse:
        exchange = Exchange(kind=request.kind, request=request)
        result.exchanges.append(exchange)
        logger.debug(scope.redact(format_request(request)))
        exchange.response = await self.transport.send(request)
        logger.debug(scope.redact(format_response(exchange.response)))
        return exchange.response
