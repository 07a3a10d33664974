"""
Business rule validation for plans.

Rules are pure and stateless. Each returns a list of ValidationIssue so
several rules can run in one pass and be reported together.
"""

from collections import Counter
from typing import Optional, Sequence

from . import graph
from .errors import BusinessRuleError, CyclicDependencyError, ValidationIssue
from .models import ContextFile, Plan, PlanDetails, PlanMetadata, PlanStatus, Step


def _blank(value: Optional[str]) -> bool:
	return value is None or not value.strip()


def raise_for_issues(message: str, issues: list[ValidationIssue]) -> None:
	"""Raise one aggregated error if any issue was collected."""
	if not issues:
		return
	if any(issue.code == "cycle" for issue in issues):
		raise CyclicDependencyError(message, issues)
	raise BusinessRuleError(message, issues)


class BusinessRuleValidator:
	"""Cross-entity invariants of the plan aggregate."""

	def check_metadata(
		self,
		metadata: PlanMetadata,
		details: Optional[PlanDetails] = None,
	) -> list[ValidationIssue]:
		"""Title, description and objective must be non-blank; author too when given."""
		issues = []
		if _blank(metadata.title):
			issues.append(self._issue("/metadata/title", "Title is required", "incomplete_metadata"))
		if _blank(metadata.description):
			issues.append(self._issue("/metadata/description", "Description is required", "incomplete_metadata"))
		if metadata.author is not None and _blank(metadata.author):
			issues.append(self._issue("/metadata/author", "Author cannot be empty if provided", "incomplete_metadata"))
		if details is not None and _blank(details.objective):
			issues.append(self._issue("/plan/objective", "Objective is required", "incomplete_metadata"))
		return issues

	def check_unique_ids(self, steps: Sequence[Step]) -> list[ValidationIssue]:
		counts = Counter(str(s.id) for s in steps)
		issues = []
		reported = set()
		for index, step in enumerate(steps):
			step_id = str(step.id)
			if counts[step_id] > 1 and step_id not in reported:
				reported.add(step_id)
				issues.append(self._issue(
					f"/steps/{index}/id",
					f"Duplicate step ID: {step_id}",
					"duplicate_id",
					actual=step_id,
				))
		return issues

	def check_dependencies(self, steps: Sequence[Step]) -> list[ValidationIssue]:
		return graph.validate_dependency_references(steps)

	def check_acyclic(self, steps: Sequence[Step]) -> list[ValidationIssue]:
		cycle = graph.find_cycle(steps)
		if cycle is None:
			return []
		return [self._issue(
			"/steps",
			f"Cyclic dependency detected: {' -> '.join(cycle)}",
			"cycle",
			actual=cycle,
		)]

	def check_steps(self, steps: Sequence[Step]) -> list[ValidationIssue]:
		"""Uniqueness, reference existence and acyclicity of a step set."""
		return (
			self.check_unique_ids(steps)
			+ self.check_dependencies(steps)
			+ self.check_acyclic(steps)
		)

	def check_plan(self, plan: Plan) -> list[ValidationIssue]:
		"""All invariants that must hold before any commit."""
		return self.check_metadata(plan.metadata, plan.details) + self.check_steps(plan.steps)

	def check_context_files(self, files: Sequence[ContextFile]) -> list[ValidationIssue]:
		"""A path may appear only once in a plan's context."""
		seen = set()
		issues = []
		for index, entry in enumerate(files):
			if entry.path in seen:
				issues.append(self._issue(
					f"/files/{index}/path",
					f"Duplicate file path: {entry.path}",
					"duplicate_path",
					actual=entry.path,
				))
			seen.add(entry.path)
		return issues

	def check_can_finalize(self, plan: Plan) -> list[ValidationIssue]:
		issues = []
		if plan.status != PlanStatus.DRAFT:
			issues.append(self._issue(
				"/status",
				f"Plan is not in draft status (current status: {plan.status.value})",
				"not_draft",
				expected=PlanStatus.DRAFT.value,
				actual=plan.status.value,
			))
		if not plan.steps:
			issues.append(self._issue(
				"/steps",
				"Plan must have at least one step to be finalized",
				"no_steps",
			))
		return issues + self.check_plan(plan)

	def validate_plan(self, plan: Plan) -> None:
		raise_for_issues("Plan validation failed", self.check_plan(plan))

	def validate_can_finalize(self, plan: Plan) -> None:
		raise_for_issues("Plan cannot be finalized", self.check_can_finalize(plan))

	@staticmethod
	def _issue(path: str, message: str, code: str, expected=None, actual=None) -> ValidationIssue:
		return ValidationIssue(
			path=path,
			message=message,
			error_type="business",
			code=code,
			expected=expected,
			actual=actual,
		)
