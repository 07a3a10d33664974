"""
Error types shared by the validation pipeline and lifecycle operations.

Every failure carries a list of ValidationIssue records so adapters can
report the offending path, message and kind without parsing strings.
"""

from dataclasses import asdict, dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ValidationIssue:
	"""A single structural, format or business-rule violation."""

	path: str
	message: str
	error_type: str = "schema"  # schema | business | format
	code: str = "invalid"
	expected: Any = None
	actual: Any = None

	def to_dict(self) -> dict[str, Any]:
		data = asdict(self)
		return {k: v for k, v in data.items() if v is not None}

	def __str__(self) -> str:
		return f"{self.path}: {self.message}"


class PlanflowError(Exception):
	"""Base class for errors raised by plan operations."""

	kind = "error"

	def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
		super().__init__(message)
		self.message = message
		self.issues: list[ValidationIssue] = list(issues or [])

	def to_dict(self) -> dict[str, Any]:
		return {
			"error": self.message,
			"kind": self.kind,
			"details": [issue.to_dict() for issue in self.issues],
		}


class StructuralValidationError(PlanflowError):
	"""Payload does not match the required shape (or a diagram is malformed)."""

	kind = "schema"


class BusinessRuleError(PlanflowError):
	"""One or more cross-entity rules are violated."""

	kind = "business"


class CyclicDependencyError(BusinessRuleError):
	"""A mutation would introduce a cycle in the step dependency graph."""

	kind = "cycle"

	def __init__(
		self,
		message: str = "Cyclic dependency detected in plan steps",
		issues: Optional[list[ValidationIssue]] = None,
	):
		super().__init__(message, issues)


class NotFoundError(PlanflowError):
	"""Base class for missing plans, steps, comments and contexts."""

	kind = "not_found"


class PlanNotFoundError(NotFoundError):
	"""Raised when a plan is not found."""

	def __init__(self, plan_id: str):
		super().__init__(
			f"Plan not found: {plan_id}",
			[ValidationIssue(path="/planId", message="Plan does not exist", error_type="business", code="not_found", actual=str(plan_id))],
		)
		self.plan_id = plan_id


class StepNotFoundError(NotFoundError):
	"""Raised when a step does not exist in a plan."""

	def __init__(self, plan_id: str, step_id: str):
		super().__init__(
			f"Step not found: {step_id} (plan {plan_id})",
			[ValidationIssue(path="/stepId", message="Step does not exist in plan", error_type="business", code="not_found", actual=str(step_id))],
		)
		self.plan_id = plan_id
		self.step_id = step_id


class CommentNotFoundError(NotFoundError):
	"""Raised when a comment does not exist on its plan or step."""

	def __init__(self, comment_id: str):
		super().__init__(
			f"Comment not found: {comment_id}",
			[ValidationIssue(path="/commentId", message="Comment does not exist", error_type="business", code="not_found", actual=str(comment_id))],
		)
		self.comment_id = comment_id


class ContextNotFoundError(NotFoundError):
	"""Raised when a plan has no file context attached."""

	def __init__(self, plan_id: str):
		super().__init__(
			f"Context not found for plan {plan_id}",
			[ValidationIssue(path="/planId", message="Plan has no context", error_type="business", code="not_found", actual=str(plan_id))],
		)
		self.plan_id = plan_id


class OptimisticLockError(PlanflowError):
	"""Raised when a concurrent update conflicts."""

	kind = "conflict"
