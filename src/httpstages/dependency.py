"""Ordering tests by their ``requires`` links.

The order is a stable topological sort: among tests whose prerequisite has
already been placed, the one that appeared first in the input goes next.
"""

import heapq
import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from httpstages_models import DefinitionError, TestDefinition

from .exceptions import CyclicDependency, ExtractionConflict, ResolutionError, UnresolvedDependency

logger = logging.getLogger(__name__)


@dataclass
class Rejection:
    definition: TestDefinition
    error: ResolutionError | DefinitionError


@dataclass
class ExecutionPlan:
    order: list[TestDefinition] = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._by_id = {definition.id: definition for definition in self.order}

    @property
    def runnable(self) -> list[TestDefinition]:
        rejected_ids = {id(rejection.definition) for rejection in self.rejected}
        return [definition for definition in self.order if id(definition) not in rejected_ids]

    def rejection_for(self, definition: TestDefinition) -> Rejection | None:
        for rejection in self.rejected:
            if rejection.definition is definition:
                return rejection
        return None

    def ancestors(self, test_id: str) -> list[str]:
        """Ids of the ``requires`` chain of a test, root first."""
        chain: list[str] = []
        current = self._by_id.get(test_id)
        while current is not None and current.requires is not None:
            chain.append(current.requires)
            current = self._by_id.get(current.requires)
        return list(reversed(chain))


def _find_cycle(start: str, requires: dict[str, str]) -> list[str]:
    path: list[str] = []
    seen: set[str] = set()
    current = start
    while current not in seen:
        seen.add(current)
        path.append(current)
        current = requires[current]
    return path[path.index(current) :] + [current]


class DependencyResolver:
    def __init__(self, definitions: Iterable[TestDefinition]):
        self.definitions = list(definitions)

    def resolve(self) -> ExecutionPlan:
        """Order the tests; raises CyclicDependency, collects every other rejection."""
        rejected: list[Rejection] = []
        by_id: dict[str, TestDefinition] = {}
        position: dict[str, int] = {}

        for index, definition in enumerate(self.definitions):
            if definition.id in by_id:
                rejected.append(Rejection(definition, DefinitionError(f"Duplicate test id '{definition.id}'", test_id=definition.id)))
                logger.warning(f"Duplicate test id '{definition.id}', skipping the later definition")
                continue
            by_id[definition.id] = definition
            position[definition.id] = index

        requires = {test_id: d.requires for test_id, d in by_id.items() if d.requires is not None and d.requires in by_id}
        dependents: dict[str, list[str]] = defaultdict(list)
        for test_id, required in requires.items():
            dependents[required].append(test_id)

        ready = [(position[test_id], test_id) for test_id in by_id if test_id not in requires]
        heapq.heapify(ready)
        order: list[TestDefinition] = []
        while ready:
            _, test_id = heapq.heappop(ready)
            order.append(by_id[test_id])
            for dependent in dependents[test_id]:
                heapq.heappush(ready, (position[dependent], dependent))

        if len(order) < len(by_id):
            placed = {definition.id for definition in order}
            start = min((test_id for test_id in by_id if test_id not in placed), key=position.__getitem__)
            # a test downstream of a cycle leads into it
            raise CyclicDependency(_find_cycle(start, requires))

        rejected.extend(self._check_chains(order, by_id))
        return ExecutionPlan(order=order, rejected=rejected)

    def _check_chains(self, order: list[TestDefinition], by_id: dict[str, TestDefinition]) -> list[Rejection]:
        rejected: list[Rejection] = []
        failed: set[str] = set()
        extractors: dict[str, str] = {}
        plan = ExecutionPlan(order=order)

        for definition in order:
            required = definition.requires
            error: ResolutionError | None = None

            if required is not None and required not in by_id:
                error = UnresolvedDependency(definition.id, required)
            elif required is not None and required in failed:
                error = UnresolvedDependency(definition.id, required, reason="could not be resolved")
            elif required is not None and by_id[required].disabled and not definition.disabled:
                error = UnresolvedDependency(definition.id, required, reason="is disabled")
            elif not definition.disabled:
                lineage = set(plan.ancestors(definition.id))
                for name in sorted(definition.extracted_names()):
                    owner = extractors.get(name)
                    if owner is not None and owner not in lineage:
                        conflicting = definition.extracted_names() & by_id[owner].extracted_names()
                        error = ExtractionConflict(definition.id, owner, conflicting)
                        break

            if error is not None:
                logger.error(error.message)
                failed.add(definition.id)
                rejected.append(Rejection(definition, error))
                continue

            if not definition.disabled:
                for name in definition.extracted_names():
                    extractors.setdefault(name, definition.id)

        return rejected


def resolve_order(definitions: Iterable[TestDefinition]) -> list[TestDefinition]:
    """Fail-fast ordering: raise the first rejection instead of collecting them."""
    plan = DependencyResolver(definitions).resolve()
    if plan.rejected:
        raise plan.rejected[0].error
    return plan.order
