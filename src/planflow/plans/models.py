"""
Plan Models - Pydantic schemas for structured plan storage.

Defines the plan aggregate: metadata, details, comments and the ordered
steps that form its dependency graph. Attributes are snake_case in Python
and camelCase on the wire (payloads, API responses and stored documents).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .ids import PlanId, StepId

SCHEMA_VERSION = "1.1.0"


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


class PlanType(str, Enum):
	"""Kind of work a plan describes."""
	FEATURE = "feature"
	REFACTOR = "refactor"
	MIGRATION = "migration"
	BUGFIX = "bugfix"
	OPTIMIZATION = "optimization"
	DOCUMENTATION = "documentation"


class PlanStatus(str, Enum):
	"""Status of a plan."""
	DRAFT = "draft"
	ACTIVE = "active"
	COMPLETED = "completed"
	ARCHIVED = "archived"


class StepKind(str, Enum):
	CREATE_FILE = "create_file"
	EDIT_FILE = "edit_file"
	DELETE_FILE = "delete_file"
	RUN_COMMAND = "run_command"
	TEST = "test"
	REVIEW = "review"
	DOCUMENTATION = "documentation"
	CUSTOM = "custom"


class StepStatus(str, Enum):
	"""Status of a step within a plan."""
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	COMPLETED = "completed"
	FAILED = "failed"
	SKIPPED = "skipped"
	BLOCKED = "blocked"


class ReviewDecision(str, Enum):
	APPROVED = "approved"
	REJECTED = "rejected"
	SKIPPED = "skipped"


class DurationUnit(str, Enum):
	MINUTES = "minutes"
	HOURS = "hours"
	DAYS = "days"


class DiagramType(str, Enum):
	FLOWCHART = "flowchart"
	SEQUENCE = "sequence"
	CLASS = "class"
	ER = "er"
	GANTT = "gantt"
	STATE = "state"


class WireModel(BaseModel):
	"""Base model: snake_case attributes, camelCase aliases."""

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	def to_dict(self) -> dict[str, Any]:
		"""Serialize to the wire representation (camelCase, ISO timestamps)."""
		return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Duration(WireModel):
	value: float = Field(ge=0, description="Estimated amount")
	unit: DurationUnit = Field(description="Unit of the estimate")

	def in_hours(self) -> float:
		if self.unit == DurationUnit.MINUTES:
			return self.value / 60
		if self.unit == DurationUnit.DAYS:
			return self.value * 8
		return self.value


class ValidationCriteria(WireModel):
	criteria: list[str] = Field(default_factory=list, description="How to verify completion")
	automated_tests: list[str] = Field(default_factory=list)


class Comment(WireModel):
	"""A comment attached to a plan or a step."""
	id: str = Field(description="Unique comment identifier")
	content: str
	author: Optional[str] = None
	created_at: datetime = Field(default_factory=utcnow)
	updated_at: Optional[datetime] = None


class ReviewStatus(WireModel):
	decision: ReviewDecision
	timestamp: datetime = Field(default_factory=utcnow)
	reviewer: Optional[str] = None


class Diagram(WireModel):
	type: DiagramType
	content: str
	title: Optional[str] = None
	description: Optional[str] = None


class Step(WireModel):
	"""A node in the plan's dependency graph."""
	id: StepId = Field(description="Unique step identifier")
	title: str
	description: str
	kind: StepKind
	status: StepStatus = Field(default=StepStatus.PENDING)
	depends_on: list[StepId] = Field(default_factory=list, description="Step IDs this depends on")
	estimated_duration: Optional[Duration] = None
	actions: list[dict[str, Any]] = Field(default_factory=list)
	validation: Optional[ValidationCriteria] = None
	comments: list[Comment] = Field(default_factory=list)
	review_status: Optional[ReviewStatus] = None
	diagram: Optional[Diagram] = None

	@field_validator("depends_on")
	@classmethod
	def _collapse_duplicates(cls, value: list[StepId]) -> list[StepId]:
		# Ordered set: repeated ids are idempotent
		return list(dict.fromkeys(value))

	def find_comment(self, comment_id: str) -> Optional[Comment]:
		return next((c for c in self.comments if c.id == comment_id), None)


class PlanMetadata(WireModel):
	title: str
	description: str
	author: Optional[str] = None
	tags: list[str] = Field(default_factory=list)
	revision: int = Field(default=0, description="Incremented on each metadata change")
	created_at: datetime = Field(default_factory=utcnow)
	updated_at: datetime = Field(default_factory=utcnow)


class PlanDetails(WireModel):
	objective: str
	scope: str = ""
	constraints: list[str] = Field(default_factory=list)
	assumptions: list[str] = Field(default_factory=list)
	success_criteria: list[str] = Field(default_factory=list)
	diagrams: list[Diagram] = Field(default_factory=list)


class ContextFile(WireModel):
	"""A source file the plan touches, with an optional note for the implementer."""
	path: str = Field(description="Absolute file path")
	title: Optional[str] = None
	summary: Optional[str] = None
	last_modified: Optional[datetime] = None


class PlanContext(WireModel):
	"""File context attached to a plan. Stored beside the plan, outside its revisions."""
	plan_id: PlanId
	files: list[ContextFile] = Field(default_factory=list)
	created_at: datetime = Field(default_factory=utcnow)
	updated_at: datetime = Field(default_factory=utcnow)


class Plan(WireModel):
	"""
	A plan: the aggregate root owning its steps and comments.

	Steps keep authoring order, not execution order. Graph-level invariants
	(unique ids, resolvable dependencies, no cycles) are enforced by the
	lifecycle operations before a plan is committed, never by these helpers.
	"""
	id: PlanId = Field(description="Unique plan identifier")
	schema_version: str = Field(default=SCHEMA_VERSION)
	plan_type: PlanType
	status: PlanStatus = Field(default=PlanStatus.DRAFT)
	metadata: PlanMetadata
	details: PlanDetails = Field(alias="plan")
	steps: list[Step] = Field(default_factory=list)
	comments: list[Comment] = Field(default_factory=list)
	revision: int = Field(default=0, description="Incremented on each committed change")
	created_at: datetime = Field(default_factory=utcnow)
	updated_at: datetime = Field(default_factory=utcnow)

	def is_draft(self) -> bool:
		return self.status == PlanStatus.DRAFT

	def get_step(self, step_id: str) -> Optional[Step]:
		for step in self.steps:
			if step.id == step_id:
				return step
		return None

	def find_comment(self, comment_id: str) -> Optional[Comment]:
		return next((c for c in self.comments if c.id == comment_id), None)

	def touch(self) -> None:
		self.updated_at = utcnow()

	def bump_revision(self) -> None:
		"""Record a committed change."""
		self.revision += 1
		self.touch()

	def add_step(self, step: Step) -> None:
		self.steps.append(step)

	def replace_step(self, step: Step) -> None:
		"""Swap in a step with the same id, keeping its position."""
		for i, existing in enumerate(self.steps):
			if existing.id == step.id:
				self.steps[i] = step
				return
		raise KeyError(step.id)

	def dependents_of(self, step_id: str) -> list[Step]:
		return [s for s in self.steps if step_id in s.depends_on]

	def remove_step(self, step_id: str, cascade: bool = False) -> list[str]:
		"""
		Remove a step from the plan.

		With cascade, the removed id is first stripped from every dependent's
		depends_on (edge deletion only; dependents stay).

		Returns:
			IDs of the dependents whose edges were rewritten
		"""
		rewritten = []
		if cascade:
			for step in self.dependents_of(step_id):
				step.depends_on = [d for d in step.depends_on if d != step_id]
				rewritten.append(str(step.id))
		self.steps = [s for s in self.steps if s.id != step_id]
		return rewritten

	def get_progress(self) -> dict:
		"""Calculate overall progress."""
		total = len(self.steps)
		by_status = {status: 0 for status in StepStatus}
		for step in self.steps:
			by_status[step.status] += 1

		durations = [s.estimated_duration.in_hours() for s in self.steps if s.estimated_duration]

		return {
			"total_steps": total,
			"completed_steps": by_status[StepStatus.COMPLETED],
			"in_progress_steps": by_status[StepStatus.IN_PROGRESS],
			"pending_steps": by_status[StepStatus.PENDING],
			"failed_steps": by_status[StepStatus.FAILED],
			"blocked_steps": by_status[StepStatus.BLOCKED],
			"skipped_steps": by_status[StepStatus.SKIPPED],
			"percent_complete": round(by_status[StepStatus.COMPLETED] / total * 100, 1) if total > 0 else 0,
			"estimated_hours": round(sum(durations), 2) if durations else None,
		}

	def progress_to_dict(self) -> dict:
		"""Progress with wire (camelCase) keys."""
		return {to_camel(key): value for key, value in self.get_progress().items()}

	def to_markdown(self) -> str:
		"""Convert plan to markdown format."""
		lines = [
			f"# {self.metadata.title}",
			"",
			f"**Type:** {self.plan_type.value}",
			f"**Status:** {self.status.value}",
			f"**Revision:** {self.revision}",
			f"**Created:** {self.created_at.isoformat()}",
		]
		if self.metadata.author:
			lines.append(f"**Author:** {self.metadata.author}")
		lines.extend(["", self.metadata.description, "", "## Objective", self.details.objective, ""])

		if self.details.scope:
			lines.extend(["## Scope", self.details.scope, ""])

		if self.details.success_criteria:
			lines.append("## Success Criteria")
			for c in self.details.success_criteria:
				lines.append(f"- {c}")
			lines.append("")

		lines.append("## Steps")
		for step in self.steps:
			step_icon = {
				StepStatus.PENDING: "[ ]",
				StepStatus.IN_PROGRESS: "[~]",
				StepStatus.COMPLETED: "[x]",
				StepStatus.FAILED: "[!]",
				StepStatus.BLOCKED: "[!]",
				StepStatus.SKIPPED: "[-]",
			}.get(step.status, "[ ]")

			line = f"- {step_icon} **{step.id}** {step.title} _({step.kind.value})_"
			if step.depends_on:
				line += f" - after {', '.join(step.depends_on)}"
			lines.append(line)
		lines.append("")

		return "\n".join(lines)
