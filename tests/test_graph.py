"""Tests for the dependency graph engine."""

import pytest

from planflow.plans import graph
from planflow.plans.errors import CyclicDependencyError
from planflow.plans.models import StepStatus

from .helpers import make_step


def _ids(steps):
	return [str(s.id) for s in steps]


def test_topological_order_simple_chain():
	steps = [make_step("a"), make_step("b", "a")]
	assert _ids(graph.topological_order(steps)) == ["a", "b"]


def test_topological_order_puts_dependencies_first():
	steps = [make_step("c", "b"), make_step("b", "a"), make_step("a")]
	assert _ids(graph.topological_order(steps)) == ["a", "b", "c"]


def test_topological_order_is_stable_for_independent_steps():
	steps = [make_step("x"), make_step("y"), make_step("z")]
	assert _ids(graph.topological_order(steps)) == ["x", "y", "z"]


def test_topological_order_valid_for_diamond():
	steps = [make_step("d", "b", "c"), make_step("b", "a"), make_step("c", "a"), make_step("a")]
	order = _ids(graph.topological_order(steps))
	position = {step_id: i for i, step_id in enumerate(order)}
	for step in steps:
		for dep in step.depends_on:
			assert position[dep] < position[str(step.id)]


def test_mutual_dependency_is_a_cycle():
	steps = [make_step("a", "b"), make_step("b", "a")]
	assert graph.detect_cycles(steps) is True
	assert graph.find_cycle(steps) == ["a", "b", "a"]


def test_self_dependency_is_a_cycle():
	assert graph.find_cycle([make_step("a", "a")]) == ["a", "a"]


def test_dangling_reference_is_not_a_cycle():
	steps = [make_step("a", "missing"), make_step("b", "a")]
	assert graph.detect_cycles(steps) is False
	assert _ids(graph.topological_order(steps)) == ["a", "b"]


def test_topological_order_raises_on_cycle():
	steps = [make_step("a", "c"), make_step("b", "a"), make_step("c", "b")]
	with pytest.raises(CyclicDependencyError) as exc_info:
		graph.topological_order(steps)
	assert exc_info.value.issues[0].code == "cycle"


def test_validate_dependency_references_reports_every_dangling_edge():
	steps = [make_step("a"), make_step("b", "a", "x", "y")]
	issues = graph.validate_dependency_references(steps)

	assert [i.actual for i in issues] == ["x", "y"]
	assert all(i.path == "/steps/1/dependsOn" for i in issues)
	assert all(i.code == "unknown_dependency" for i in issues)


def test_compute_executable_requires_completed_dependencies():
	steps = [
		make_step("a", status=StepStatus.COMPLETED),
		make_step("b", "a"),
		make_step("c", "b"),
		make_step("d", status=StepStatus.IN_PROGRESS),
	]
	assert _ids(graph.compute_executable(steps)) == ["b"]


def test_skipped_dependency_does_not_satisfy():
	steps = [make_step("a", status=StepStatus.SKIPPED), make_step("b", "a")]
	assert "b" not in _ids(graph.compute_executable(steps))


def test_find_dependents():
	steps = [make_step("a"), make_step("b", "a"), make_step("c", "a", "b")]
	assert _ids(graph.find_dependents(steps, "a")) == ["b", "c"]
	assert graph.find_dependents(steps, "c") == []
