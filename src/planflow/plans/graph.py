"""
Dependency graph engine over a set of steps.

All functions are pure and accept any sequence of steps, not only the
persisted set of a plan, so a proposed set (existing steps plus a
candidate) can be checked before anything is committed.
"""

from typing import Iterable, Optional, Sequence

from .errors import CyclicDependencyError, ValidationIssue
from .models import Step, StepStatus


def build_adjacency(steps: Iterable[Step]) -> dict[str, list[str]]:
	"""Map each step id to the ids it depends on."""
	graph: dict[str, list[str]] = {}
	for step in steps:
		graph.setdefault(str(step.id), []).extend(str(d) for d in step.depends_on)
	return graph


def find_cycle(steps: Sequence[Step]) -> Optional[list[str]]:
	"""
	Find the first dependency cycle.

	Uses an iterative depth-first search with a visited set and a
	recursion stack. Dependencies on ids missing from the set are dead
	ends. A step depending on itself is a one-node cycle.

	Returns:
		The ids along the cycle (first id repeated at the end), or None
	"""
	graph = build_adjacency(steps)
	visited: set[str] = set()

	for root in graph:
		if root in visited:
			continue

		path: list[str] = [root]
		on_stack: set[str] = {root}
		iterators = [iter(graph[root])]
		visited.add(root)

		while iterators:
			dep = next(iterators[-1], None)
			if dep is None:
				iterators.pop()
				on_stack.discard(path.pop())
				continue
			if dep in on_stack:
				return path[path.index(dep):] + [dep]
			if dep in visited or dep not in graph:
				continue
			visited.add(dep)
			on_stack.add(dep)
			path.append(dep)
			iterators.append(iter(graph[dep]))

	return None


def detect_cycles(steps: Sequence[Step]) -> bool:
	"""Return True if the dependency graph of steps contains a cycle."""
	return find_cycle(steps) is not None


def topological_order(steps: Sequence[Step]) -> list[Step]:
	"""
	Order steps so every step appears after all of its dependencies.

	Depth-first post-order in input order: steps with no ordering constraint
	between them keep their original relative order.

	Raises:
		CyclicDependencyError: If the steps contain a cycle
	"""
	by_id = {str(s.id): s for s in steps}
	result: list[Step] = []
	done: set[str] = set()
	on_stack: set[str] = set()

	def visit(step_id: str) -> None:
		if step_id in on_stack:
			raise CyclicDependencyError(
				f"Cyclic dependency detected at step {step_id}",
				[ValidationIssue(
					path="/steps",
					message=f"Step {step_id} is part of a dependency cycle",
					error_type="business",
					code="cycle",
					actual=step_id,
				)],
			)
		if step_id in done or step_id not in by_id:
			return
		on_stack.add(step_id)
		for dep in by_id[step_id].depends_on:
			visit(str(dep))
		on_stack.discard(step_id)
		done.add(step_id)
		result.append(by_id[step_id])

	for step in steps:
		visit(str(step.id))

	return result


def validate_dependency_references(steps: Sequence[Step]) -> list[ValidationIssue]:
	"""Report every dependency that points at a step missing from the set."""
	known = {str(s.id) for s in steps}
	issues = []
	for index, step in enumerate(steps):
		for dep in step.depends_on:
			if dep not in known:
				issues.append(ValidationIssue(
					path=f"/steps/{index}/dependsOn",
					message=f'Step "{step.id}" depends on non-existent step "{dep}"',
					error_type="business",
					code="unknown_dependency",
					actual=str(dep),
				))
	return issues


def compute_executable(steps: Sequence[Step]) -> list[Step]:
	"""
	Steps that could be started now.

	A step qualifies when it is neither completed nor in progress and every
	dependency exists with status exactly completed. A skipped dependency
	does not satisfy the step.
	"""
	status_by_id = {str(s.id): s.status for s in steps}
	executable = []
	for step in steps:
		if step.status in (StepStatus.COMPLETED, StepStatus.IN_PROGRESS):
			continue
		if all(status_by_id.get(str(dep)) == StepStatus.COMPLETED for dep in step.depends_on):
			executable.append(step)
	return executable


def find_dependents(steps: Iterable[Step], step_id: str) -> list[Step]:
	"""Steps that declare a dependency on step_id."""
	return [s for s in steps if step_id in s.depends_on]
