"""
Plan lifecycle operations.

Every mutation follows the same sequence: load the plan, validate the
shape of the proposed change, merge it into the loaded copy, run the
graph and business checks on the merged state, then commit through the
store. Nothing is written until all checks pass.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from pydantic import ValidationError

from . import graph
from .diagrams import DiagramValidator, MarkerDiagramValidator, check_diagram
from .errors import (
	BusinessRuleError,
	CommentNotFoundError,
	ContextNotFoundError,
	PlanflowError,
	PlanNotFoundError,
	StepNotFoundError,
	StructuralValidationError,
	ValidationIssue,
)
from .ids import PlanId
from .models import (
	Comment,
	ContextFile,
	Plan,
	PlanContext,
	PlanDetails,
	PlanMetadata,
	PlanStatus,
	PlanType,
	ReviewDecision,
	ReviewStatus,
	Step,
	StepStatus,
	utcnow,
)
from .rules import BusinessRuleValidator, raise_for_issues
from .schema import StructuralValidator, get_context_format, get_format, require_valid
from .store import PlanFilters, PlanStore

logger = logging.getLogger(__name__)

REMOVE_MODES = ("strict", "cascade")
NAVIGATION_MODES = ("current", "next")
CLOSING_STATUSES = (PlanStatus.COMPLETED, PlanStatus.ARCHIVED)


def _model_issues(exc: ValidationError, path: str) -> list[ValidationIssue]:
	"""Translate pydantic errors into structural issues."""
	issues = []
	for err in exc.errors():
		location = "".join(f"/{part}" for part in err["loc"])
		issues.append(ValidationIssue(
			path=f"{path}{location}",
			message=err["msg"],
			code=err["type"],
		))
	return issues


def _build(model_cls, data: dict, path: str):
	try:
		return model_cls.model_validate(data)
	except ValidationError as e:
		raise StructuralValidationError(f"Invalid {model_cls.__name__.lower()}", _model_issues(e, path))


def _raise_document_issues(message: str, issues: list[ValidationIssue]) -> None:
	"""Shape and format problems take precedence over business rules."""
	if any(issue.error_type != "business" for issue in issues):
		require_valid(message, issues)
	raise_for_issues(message, issues)


def _enum_value(enum_cls, value: Any, path: str):
	try:
		return enum_cls(value)
	except ValueError:
		raise StructuralValidationError(
			f"Invalid value for {path}",
			[ValidationIssue(
				path=path,
				message=f"Must be one of: {', '.join(m.value for m in enum_cls)}",
				code="invalid_enum",
				expected=[m.value for m in enum_cls],
				actual=value,
			)],
		)


class PlanLifecycle:
	"""
	Orchestrates validation and persistence of plan changes.

	Usage:
		store = PlanStore(config.plans_db_path)
		lifecycle = PlanLifecycle(store)

		plan = await lifecycle.create_draft({...})
		plan = await lifecycle.add_step(plan.id, {...})
		plan = await lifecycle.finalize(plan.id)
	"""

	def __init__(
		self,
		store: PlanStore,
		structural: Optional[StructuralValidator] = None,
		rules: Optional[BusinessRuleValidator] = None,
		diagrams: Optional[DiagramValidator] = None,
	):
		self.store = store
		self.structural = structural or StructuralValidator()
		self.rules = rules or BusinessRuleValidator()
		self.diagrams = diagrams or MarkerDiagramValidator()

	# ------------------------------------------------------------------
	# Internals
	# ------------------------------------------------------------------

	async def _load(self, plan_id: str) -> Plan:
		plan = await self.store.find_by_id(plan_id)
		if plan is None:
			raise PlanNotFoundError(plan_id)
		return plan

	@asynccontextmanager
	async def _editing(self, plan_id: str, operation: str) -> AsyncIterator[Plan]:
		"""Hold the plan's write lock around a load-validate-commit cycle."""
		async with self.store.lock(plan_id):
			try:
				yield await self._load(plan_id)
			except PlanflowError as e:
				logger.warning(f"{operation} rejected for plan {plan_id}: {e.message}")
				raise

	async def _commit(self, plan: Plan, operation: str) -> Plan:
		expected = plan.revision
		plan.bump_revision()
		await self.store.update(plan, expected_revision=expected)
		logger.info(f"{operation}: plan {plan.id} committed at revision {plan.revision}")
		return plan

	def _diagram_issues(self, step_payload: Optional[dict], path: str) -> list[ValidationIssue]:
		if not isinstance(step_payload, dict):
			return []
		return check_diagram(self.diagrams, step_payload.get("diagram"), f"{path}/diagram")

	def _details_diagram_issues(self, details: Optional[dict], path: str) -> list[ValidationIssue]:
		issues = []
		for i, diagram in enumerate((details or {}).get("diagrams") or []):
			issues.extend(check_diagram(self.diagrams, diagram, f"{path}/diagrams/{i}"))
		return issues

	async def _raise_missing(
		self,
		plan_id: str,
		step_id: Optional[str] = None,
		comment_id: Optional[str] = None,
	) -> None:
		"""Work out which target of a comment/review write was absent."""
		plan = await self._load(plan_id)
		if step_id is not None and plan.get_step(step_id) is None:
			raise StepNotFoundError(plan_id, step_id)
		if comment_id is not None:
			raise CommentNotFoundError(comment_id)
		raise PlanNotFoundError(plan_id)

	# ------------------------------------------------------------------
	# Mutations
	# ------------------------------------------------------------------

	async def create_draft(self, payload: dict) -> Plan:
		"""
		Create a new plan in draft status with no steps.

		Args:
			payload: {"planType", "metadata": {...}, "plan": {"objective", ...}}

		Raises:
			StructuralValidationError: Malformed payload or diagram
			BusinessRuleError: Blank title, description or objective
		"""
		try:
			issues = self.structural.validate_draft(payload)
			if not issues:
				issues = self._details_diagram_issues(payload.get("plan"), "/plan")
			require_valid("Invalid plan draft", issues)

			metadata = _build(PlanMetadata, payload["metadata"], "/metadata")
			details = _build(PlanDetails, payload["plan"], "/plan")
			raise_for_issues("Plan draft is incomplete", self.rules.check_metadata(metadata, details))
		except PlanflowError as e:
			logger.warning(f"create_draft rejected: {e.message}")
			raise

		now = utcnow()
		metadata.created_at = now
		metadata.updated_at = now
		plan = Plan(
			id=PlanId(str(uuid.uuid4())[:12]),
			plan_type=PlanType(payload["planType"]),
			status=PlanStatus.DRAFT,
			metadata=metadata,
			details=details,
			created_at=now,
			updated_at=now,
		)
		await self.store.save(plan)
		logger.info(f"create_draft: plan {plan.id} created")
		return plan

	async def create_plan(self, document: dict) -> Plan:
		"""
		Create a plan from a complete document, steps included.

		The document goes through both validation stages as a whole. The id,
		revisions and timestamps are assigned here. A document with steps is
		activated straight away; one without steps starts as a draft.

		Raises:
			StructuralValidationError: Malformed document or diagram
			BusinessRuleError: Incomplete metadata or a broken dependency
			CyclicDependencyError: The steps' dependencies form a cycle
		"""
		try:
			_raise_document_issues("Invalid plan document", self.validate_document(document))
		except PlanflowError as e:
			logger.warning(f"create_plan rejected: {e.message}")
			raise

		now = utcnow()
		plan = Plan.model_validate({**document, "id": str(uuid.uuid4())[:12]})
		plan.status = PlanStatus.ACTIVE if plan.steps else PlanStatus.DRAFT
		plan.revision = 0
		plan.created_at = plan.updated_at = now
		plan.metadata.revision = 0
		plan.metadata.created_at = plan.metadata.updated_at = now
		await self.store.save(plan)
		logger.info(f"create_plan: plan {plan.id} created with {len(plan.steps)} steps ({plan.status.value})")
		return plan

	async def replace_plan(self, plan_id: str, document: dict) -> Plan:
		"""
		Replace metadata, details and steps of a plan with a full document.

		The result is validated like a new plan and committed as the next
		revision. Id, status and creation time stay with the stored plan;
		comments are kept unless the document carries its own.
		"""
		async with self._editing(plan_id, "replace_plan") as plan:
			_raise_document_issues("Invalid plan document", self.validate_document(document))

			issues = []
			if document.get("id") not in (None, plan_id):
				issues.append(ValidationIssue(
					path="/id",
					message="Plan ID cannot be changed",
					code="immutable",
					expected=str(plan_id),
					actual=document["id"],
				))
			if document.get("status") not in (None, plan.status.value):
				issues.append(ValidationIssue(
					path="/status",
					message="Use finalize or update_status to change the status",
					code="immutable",
					expected=plan.status.value,
					actual=document["status"],
				))
			require_valid("Invalid plan document", issues)

			replacement = Plan.model_validate({**document, "id": str(plan.id)})
			if not plan.is_draft() and not replacement.steps:
				raise BusinessRuleError("Plan cannot be replaced", [ValidationIssue(
					path="/steps",
					message="A finalized plan must keep at least one step",
					error_type="business",
					code="no_steps",
				)])

			replacement.status = plan.status
			replacement.revision = plan.revision
			replacement.created_at = plan.created_at
			replacement.metadata.created_at = plan.metadata.created_at
			replacement.metadata.revision = plan.metadata.revision + 1
			replacement.metadata.updated_at = utcnow()
			if "comments" not in document:
				replacement.comments = plan.comments
			return await self._commit(replacement, "replace_plan")

	async def add_step(self, plan_id: str, step: dict) -> Plan:
		"""
		Append a step to a plan.

		The merged step list (existing steps plus the candidate) is checked
		for shape, id uniqueness, dependency references and cycles.
		"""
		async with self._editing(plan_id, "add_step") as plan:
			proposed = [s.to_dict() for s in plan.steps] + [step]
			issues = self.structural.validate_steps(proposed)
			if not issues:
				issues = self._diagram_issues(step, f"/steps/{len(plan.steps)}")
			require_valid("Invalid step", issues)

			plan.add_step(_build(Step, step, "/step"))
			raise_for_issues("Step cannot be added", self.rules.check_steps(plan.steps))

			return await self._commit(plan, "add_step")

	async def update_step(self, plan_id: str, step_id: str, updates: dict) -> Plan:
		"""
		Merge a partial update into an existing step.

		A field sent as null is cleared back to its default.

		The whole step set is re-validated with the replacement in place,
		since a dependency change can introduce a cycle or a dangling
		reference elsewhere in the graph.
		"""
		async with self._editing(plan_id, "update_step") as plan:
			existing = plan.get_step(step_id)
			if existing is None:
				raise StepNotFoundError(plan_id, step_id)

			issues = self.structural.validate_step_update(updates)
			if not issues and updates.get("id") not in (None, step_id):
				issues.append(ValidationIssue(
					path="/updates/id",
					message="Step ID cannot be changed",
					code="immutable",
					expected=str(step_id),
					actual=updates["id"],
				))
			if not issues:
				issues = self._diagram_issues(updates, "/updates")
			require_valid("Invalid step update", issues)

			# null clears an optional field; a cleared required field fails validation below
			merged = {**existing.to_dict(), **updates, "id": str(existing.id)}
			merged = {k: v for k, v in merged.items() if v is not None}
			index = plan.steps.index(existing)
			proposed = [s.to_dict() for s in plan.steps]
			proposed[index] = merged
			require_valid("Invalid step update", self.structural.validate_steps(proposed))

			plan.replace_step(_build(Step, merged, f"/steps/{index}"))
			raise_for_issues("Step cannot be updated", self.rules.check_steps(plan.steps))

			return await self._commit(plan, "update_step")

	async def remove_step(self, plan_id: str, step_id: str, mode: str = "strict") -> tuple[Plan, list[str]]:
		"""
		Remove a step.

		In strict mode the removal fails while other steps depend on it.
		In cascade mode those dependency edges are deleted first; the
		dependent steps themselves stay.

		Returns:
			(updated plan, ids of dependents whose dependsOn was rewritten)
		"""
		async with self._editing(plan_id, "remove_step") as plan:
			if mode not in REMOVE_MODES:
				raise StructuralValidationError("Invalid removal mode", [ValidationIssue(
					path="/mode",
					message=f"Must be one of: {', '.join(REMOVE_MODES)}",
					code="invalid_enum",
					expected=list(REMOVE_MODES),
					actual=mode,
				)])

			if plan.get_step(step_id) is None:
				raise StepNotFoundError(plan_id, step_id)

			dependents = plan.dependents_of(step_id)
			if dependents and mode == "strict":
				raise BusinessRuleError(
					f"Cannot remove step {step_id}: required by {', '.join(str(s.id) for s in dependents)}",
					[ValidationIssue(
						path=f"/steps/{plan.steps.index(s)}/dependsOn",
						message=f'Step "{s.id}" depends on "{step_id}"',
						error_type="business",
						code="has_dependents",
						actual=str(s.id),
					) for s in dependents],
				)

			rewritten = plan.remove_step(step_id, cascade=(mode == "cascade"))
			raise_for_issues("Step cannot be removed", self.rules.check_steps(plan.steps))

			plan = await self._commit(plan, "remove_step")
			if rewritten:
				logger.info(f"remove_step: dropped {step_id} from dependsOn of {', '.join(rewritten)}")
			return plan, rewritten

	async def update_metadata(
		self,
		plan_id: str,
		metadata: Optional[dict] = None,
		details: Optional[dict] = None,
	) -> Plan:
		"""Field-level merge of metadata and/or plan details. Steps are untouched."""
		async with self._editing(plan_id, "update_metadata") as plan:
			if metadata is None and details is None:
				raise StructuralValidationError("Nothing to update", [ValidationIssue(
					path="/",
					message="Provide metadata and/or plan details",
					code="required",
				)])

			issues = []
			if metadata is not None:
				issues += self.structural.validate_metadata_patch(metadata)
			if details is not None:
				issues += self.structural.validate_details_patch(details)
				if not issues:
					issues += self._details_diagram_issues(details, "/plan")
			require_valid("Invalid metadata update", issues)

			if metadata:
				plan.metadata = _build(PlanMetadata, {**plan.metadata.to_dict(), **metadata}, "/metadata")
			if details:
				plan.details = _build(PlanDetails, {**plan.details.to_dict(), **details}, "/plan")

			raise_for_issues(
				"Plan metadata is incomplete",
				self.rules.check_metadata(plan.metadata, plan.details),
			)

			plan.metadata.revision += 1
			plan.metadata.updated_at = utcnow()
			return await self._commit(plan, "update_metadata")

	async def finalize(self, plan_id: str) -> Plan:
		"""Move a draft with at least one step to active after full validation."""
		async with self._editing(plan_id, "finalize") as plan:
			self.rules.validate_can_finalize(plan)
			plan.status = PlanStatus.ACTIVE
			return await self._commit(plan, "finalize")

	async def update_status(self, plan_id: str, status: str) -> Plan:
		"""Mark a finalized plan completed or archived."""
		async with self._editing(plan_id, "update_status") as plan:
			new_status = _enum_value(PlanStatus, status, "/status")
			if new_status not in CLOSING_STATUSES:
				raise StructuralValidationError("Invalid status change", [ValidationIssue(
					path="/status",
					message="Status can only be set to completed or archived; use finalize to activate a draft",
					code="invalid_enum",
					expected=[s.value for s in CLOSING_STATUSES],
					actual=new_status.value,
				)])

			if plan.is_draft():
				raise BusinessRuleError("Plan must be finalized first", [ValidationIssue(
					path="/status",
					message="Draft plans cannot be completed or archived",
					error_type="business",
					code="not_finalized",
					expected=PlanStatus.ACTIVE.value,
					actual=plan.status.value,
				)])

			self.rules.validate_plan(plan)
			plan.status = new_status
			return await self._commit(plan, "update_status")

	async def set_step_review_status(
		self,
		plan_id: str,
		step_id: str,
		decision: str,
		reviewer: Optional[str] = None,
	) -> ReviewStatus:
		"""Record a review decision on a step. Does not bump the revision."""
		require_valid("Invalid review decision", self.structural.validate_review(decision, reviewer))
		review = ReviewStatus(decision=ReviewDecision(decision), reviewer=reviewer)
		if not await self.store.set_step_review_status(plan_id, step_id, review):
			await self._raise_missing(plan_id, step_id)
		logger.info(f"Review of step {step_id} in plan {plan_id}: {review.decision.value}")
		return review

	# ------------------------------------------------------------------
	# Comments
	# ------------------------------------------------------------------

	def _new_comment(self, content: str, author: Optional[str]) -> Comment:
		require_valid("Invalid comment", self.structural.validate_comment(content, author))
		return Comment(id=str(uuid.uuid4()), content=content, author=author)

	async def add_plan_comment(self, plan_id: str, content: str, author: Optional[str] = None) -> Comment:
		comment = self._new_comment(content, author)
		if not await self.store.add_plan_comment(plan_id, comment):
			raise PlanNotFoundError(plan_id)
		return comment

	async def update_plan_comment(self, plan_id: str, comment_id: str, content: str) -> Comment:
		require_valid("Invalid comment", self.structural.validate_comment(content))
		if not await self.store.update_plan_comment(plan_id, comment_id, content):
			await self._raise_missing(plan_id, comment_id=comment_id)
		plan = await self._load(plan_id)
		return plan.find_comment(comment_id)

	async def delete_plan_comment(self, plan_id: str, comment_id: str) -> None:
		if not await self.store.delete_plan_comment(plan_id, comment_id):
			await self._raise_missing(plan_id, comment_id=comment_id)

	async def list_plan_comments(self, plan_id: str) -> list[Comment]:
		plan = await self._load(plan_id)
		return plan.comments

	async def add_step_comment(
		self, plan_id: str, step_id: str, content: str, author: Optional[str] = None
	) -> Comment:
		comment = self._new_comment(content, author)
		if not await self.store.add_step_comment(plan_id, step_id, comment):
			await self._raise_missing(plan_id, step_id)
		return comment

	async def update_step_comment(
		self, plan_id: str, step_id: str, comment_id: str, content: str
	) -> Comment:
		require_valid("Invalid comment", self.structural.validate_comment(content))
		if not await self.store.update_step_comment(plan_id, step_id, comment_id, content):
			await self._raise_missing(plan_id, step_id, comment_id)
		plan = await self._load(plan_id)
		return plan.get_step(step_id).find_comment(comment_id)

	async def delete_step_comment(self, plan_id: str, step_id: str, comment_id: str) -> None:
		if not await self.store.delete_step_comment(plan_id, step_id, comment_id):
			await self._raise_missing(plan_id, step_id, comment_id)

	# ------------------------------------------------------------------
	# Context
	# ------------------------------------------------------------------

	async def set_context(self, plan_id: str, files: Any) -> PlanContext:
		"""
		Attach a list of source files to a plan, replacing any earlier list.

		Paths must be absolute and unique. The context lives beside the plan
		and does not create a revision.
		"""
		async with self._editing(plan_id, "set_context"):
			payload = {"files": files}
			require_valid("Invalid plan context", self.structural.validate_context(payload))
			entries = [_build(ContextFile, entry, f"/files/{i}") for i, entry in enumerate(files)]
			raise_for_issues("Plan context rejected", self.rules.check_context_files(entries))

			existing = await self.store.find_context(plan_id)
			now = utcnow()
			context = PlanContext(
				plan_id=plan_id,
				files=entries,
				created_at=existing.created_at if existing else now,
				updated_at=now,
			)
			return await self.store.save_context(context)

	async def get_context(self, plan_id: str) -> PlanContext:
		await self._load(plan_id)
		context = await self.store.find_context(plan_id)
		if context is None:
			raise ContextNotFoundError(plan_id)
		return context

	async def delete_context(self, plan_id: str) -> None:
		async with self._editing(plan_id, "delete_context"):
			if not await self.store.delete_context(plan_id):
				raise ContextNotFoundError(plan_id)
		logger.info(f"delete_context: context of plan {plan_id} removed")

	def get_context_format(self) -> dict[str, Any]:
		return get_context_format()

	# ------------------------------------------------------------------
	# Reads
	# ------------------------------------------------------------------

	async def get(self, plan_id: str, revision: Optional[int] = None) -> Plan:
		"""Current plan, or a stored past revision."""
		if revision is None:
			return await self._load(plan_id)
		plan = await self.store.find_by_id(plan_id, revision)
		if plan is None:
			raise PlanNotFoundError(f"{plan_id}@{revision}")
		return plan

	def get_format(self) -> dict[str, Any]:
		return get_format()

	async def history(self, plan_id: str) -> list[Plan]:
		"""All stored revisions, newest first."""
		revisions = await self.store.get_history(plan_id)
		if not revisions:
			raise PlanNotFoundError(plan_id)
		return revisions

	async def delete(self, plan_id: str) -> None:
		if not await self.store.delete(plan_id):
			raise PlanNotFoundError(plan_id)

	async def execution_order(self, plan_id: str) -> list[Step]:
		plan = await self._load(plan_id)
		return graph.topological_order(plan.steps)

	async def executable_steps(self, plan_id: str) -> list[Step]:
		plan = await self._load(plan_id)
		return graph.compute_executable(plan.steps)

	async def get_step(
		self,
		plan_id: str,
		step_id: Optional[str] = None,
		index: Optional[int] = None,
	) -> Step:
		"""Fetch a step by id, or by 0-based position in authoring order."""
		plan = await self._load(plan_id)
		if step_id is not None:
			step = plan.get_step(step_id)
			if step is None:
				raise StepNotFoundError(plan_id, step_id)
			return step
		if index is not None:
			if not 0 <= index < len(plan.steps):
				raise StepNotFoundError(plan_id, f"#{index}")
			return plan.steps[index]
		raise StructuralValidationError("Step reference required", [ValidationIssue(
			path="/stepId",
			message="Provide a step ID or an index",
			code="required",
		)])

	async def navigate(self, plan_id: str, mode: str = "current") -> Optional[Step]:
		"""
		Find where work stands.

		"next" is the first step, in authoring order, whose dependencies are
		all completed and which is not itself completed, in progress or
		skipped. "current" is the first in-progress step, falling back to
		"next". Returns None when nothing qualifies.
		"""
		if mode not in NAVIGATION_MODES:
			raise StructuralValidationError("Invalid navigation mode", [ValidationIssue(
				path="/mode",
				message=f"Must be one of: {', '.join(NAVIGATION_MODES)}",
				code="invalid_enum",
				expected=list(NAVIGATION_MODES),
				actual=mode,
			)])

		plan = await self._load(plan_id)
		if mode == "current":
			for step in plan.steps:
				if step.status == StepStatus.IN_PROGRESS:
					return step

		for step in graph.compute_executable(plan.steps):
			if step.status != StepStatus.SKIPPED:
				return step
		return None

	async def metrics(self, plan_id: str) -> dict[str, Any]:
		plan = await self._load(plan_id)
		progress = plan.progress_to_dict()
		progress["executableSteps"] = len(graph.compute_executable(plan.steps))
		return progress

	def validate_document(self, document: Any) -> list[ValidationIssue]:
		"""
		Run both validation stages on a full plan document without saving it.

		Business rules only run when the structural stage is clean.

		Returns:
			All issues found (empty when the document is valid)
		"""
		issues = self.structural.validate_document(document)
		if issues:
			return issues

		for i, step in enumerate(document["steps"]):
			issues += self._diagram_issues(step, f"/steps/{i}")
		issues += self._details_diagram_issues(document["plan"], "/plan")
		if issues:
			return issues

		try:
			plan = Plan.model_validate({"id": "unsaved", **document})
		except ValidationError as e:
			return _model_issues(e, "")

		return self.rules.check_plan(plan)

	# Defined last: the name shadows the builtin in annotations of the class body
	async def list(self, filters: Optional[PlanFilters] = None) -> "list[Plan]":
		return await self.store.find_all(filters)
