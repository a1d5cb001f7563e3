import pytest

from httpstages.dependency import DependencyResolver, resolve_order
from httpstages.exceptions import CyclicDependency, ExtractionConflict, UnresolvedDependency
from httpstages_models import DefinitionError, TestDefinition


def definition(test_id, requires=None, extracts=(), disabled=False):
    response = {"extract": [{"name": name, "field": name} for name in extracts]} if extracts else None
    document = {"id": test_id, "disabled": disabled, "request": {"url": f"http://localhost/{test_id}"}}
    if requires:
        document["requires"] = requires
    if response:
        document["response"] = response
    return TestDefinition.model_validate(document)


def ids(definitions):
    return [d.id for d in definitions]


class TestOrder:
    def test_independent_tests_keep_input_order(self):
        plan = DependencyResolver([definition("c"), definition("a"), definition("b")]).resolve()
        assert ids(plan.order) == ["c", "a", "b"]

    def test_prerequisite_runs_first(self):
        plan = DependencyResolver([definition("profile", requires="login"), definition("login")]).resolve()
        assert ids(plan.order) == ["login", "profile"]

    def test_ties_broken_by_input_position(self):
        definitions = [
            definition("root"),
            definition("late-child", requires="other"),
            definition("child", requires="root"),
            definition("other"),
        ]
        plan = DependencyResolver(definitions).resolve()
        assert ids(plan.order) == ["root", "child", "other", "late-child"]

    def test_ancestors_root_first(self):
        plan = DependencyResolver([definition("a"), definition("b", requires="a"), definition("c", requires="b")]).resolve()
        assert plan.ancestors("c") == ["a", "b"]
        assert plan.ancestors("a") == []


class TestCycles:
    def test_cycle_is_fatal(self):
        definitions = [definition("a", requires="b"), definition("b", requires="a"), definition("free")]
        with pytest.raises(CyclicDependency) as exc_info:
            DependencyResolver(definitions).resolve()
        assert set(exc_info.value.members) == {"a", "b"}
        assert "a -> b -> a" in exc_info.value.message or "b -> a -> b" in exc_info.value.message

    def test_test_downstream_of_cycle(self):
        definitions = [definition("down", requires="a"), definition("a", requires="b"), definition("b", requires="a")]
        with pytest.raises(CyclicDependency) as exc_info:
            DependencyResolver(definitions).resolve()
        assert "down" not in exc_info.value.members


class TestRejections:
    def test_missing_prerequisite(self):
        plan = DependencyResolver([definition("orphan", requires="ghost"), definition("fine")]).resolve()

        assert ids(plan.runnable) == ["fine"]
        error = plan.rejected[0].error
        assert isinstance(error, UnresolvedDependency)
        assert error.missing == "ghost"

    def test_chain_of_rejections(self):
        plan = DependencyResolver([definition("b", requires="ghost"), definition("c", requires="b")]).resolve()
        assert [rejection.definition.id for rejection in plan.rejected] == ["b", "c"]
        assert "could not be resolved" in plan.rejected[1].error.message

    def test_disabled_prerequisite(self):
        plan = DependencyResolver([definition("a", disabled=True), definition("b", requires="a")]).resolve()
        assert "is disabled" in plan.rejection_for(plan.order[1]).error.message

    def test_extraction_conflict_between_unrelated_tests(self):
        plan = DependencyResolver([definition("a", extracts=["token"]), definition("b", extracts=["token"])]).resolve()

        error = plan.rejected[0].error
        assert isinstance(error, ExtractionConflict)
        assert error.other_id == "a"
        assert error.names == {"token"}

    def test_same_name_along_a_chain_is_allowed(self):
        plan = DependencyResolver([definition("a", extracts=["token"]), definition("b", requires="a", extracts=["token"])]).resolve()
        assert plan.rejected == []

    def test_disabled_tests_do_not_conflict(self):
        plan = DependencyResolver([definition("a", extracts=["token"], disabled=True), definition("b", extracts=["token"])]).resolve()
        assert plan.rejected == []

    def test_duplicate_id(self):
        first, second = definition("dup"), definition("dup")
        plan = DependencyResolver([first, second]).resolve()

        assert plan.order == [first]
        assert isinstance(plan.rejected[0].error, DefinitionError)
        assert plan.rejected[0].definition is second


class TestResolveOrder:
    def test_fail_fast(self):
        with pytest.raises(UnresolvedDependency):
            resolve_order([definition("a", requires="ghost")])

    def test_ok(self):
        assert ids(resolve_order([definition("b", requires="a"), definition("a")])) == ["a", "b"]
