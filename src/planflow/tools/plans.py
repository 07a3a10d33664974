"""Plan management tools."""

from datetime import datetime
from typing import Optional

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..plans.errors import PlanflowError
from ..plans.lifecycle import PlanLifecycle
from ..plans.models import PlanStatus, PlanType
from ..plans.store import PlanFilters
from .core import error_json, to_json


def _summary(plan) -> dict:
	return {
		"id": str(plan.id),
		"title": plan.metadata.title,
		"planType": plan.plan_type.value,
		"status": plan.status.value,
		"revision": plan.revision,
		"stepCount": len(plan.steps),
		"author": plan.metadata.author,
		"createdAt": plan.created_at.isoformat(),
		"updatedAt": plan.updated_at.isoformat(),
	}


def register_plans_tools(mcp: FastMCP, config: Config, lifecycle: PlanLifecycle) -> None:
	"""Register plan management tools."""

	@mcp.tool()
	async def plans_format() -> str:
		"""
		Describe the plan format: schemas, enum values, limits and
		documented action types with examples.

		Read this before building a plan draft or step payload.
		"""
		return to_json(lifecycle.get_format())

	@mcp.tool()
	async def plans_validate(plan: dict) -> str:
		"""
		Validate a complete plan document without saving it.

		Args:
			plan: Plan document (camelCase keys: planType, metadata, plan, steps, ...)
		"""
		issues = lifecycle.validate_document(plan)
		return to_json({
			"valid": not issues,
			"errors": [issue.to_dict() for issue in issues],
		})

	@mcp.tool()
	async def plans_create_draft(draft: dict) -> str:
		"""
		Create a new plan in draft status, without steps.

		Args:
			draft: {"planType": "feature", "metadata": {"title", "description", "author"?, "tags"?},
				"plan": {"objective", "scope"?, "constraints"?, "assumptions"?, "successCriteria"?}}
		"""
		try:
			plan = await lifecycle.create_draft(draft)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"success": True,
			"planId": str(plan.id),
			"status": plan.status.value,
			"revision": plan.revision,
			"hint": "Add steps with plans_step_add, then call plans_finalize",
		})

	@mcp.tool()
	async def plans_create(plan: dict) -> str:
		"""
		Create a plan from a complete document, steps included.

		A plan with steps is activated immediately; one without steps is
		created as a draft. Id, revision and timestamps are assigned by the server.

		Args:
			plan: Plan document {"planType", "metadata", "plan", "steps", "comments"?}
		"""
		try:
			created = await lifecycle.create_plan(plan)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"success": True,
			"planId": str(created.id),
			"status": created.status.value,
			"revision": created.revision,
			"stepCount": len(created.steps),
		})

	@mcp.tool()
	async def plans_replace(plan_id: str, plan: dict) -> str:
		"""
		Replace metadata, details and steps of a plan in one revision.

		The document is validated as a whole. Status changes still go
		through plans_finalize and plans_update_status.

		Args:
			plan_id: Plan ID
			plan: Full plan document {"planType", "metadata", "plan", "steps", "comments"?}
		"""
		try:
			replaced = await lifecycle.replace_plan(plan_id, plan)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"success": True,
			"planId": plan_id,
			"revision": replaced.revision,
			"stepCount": len(replaced.steps),
		})

	@mcp.tool()
	async def plans_get(plan_id: str, revision: int = -1, include_markdown: bool = False) -> str:
		"""
		Get a plan by ID.

		Args:
			plan_id: The plan ID
			revision: Optional revision number (-1 = current)
			include_markdown: Also return a markdown rendering
		"""
		try:
			plan = await lifecycle.get(plan_id, revision if revision >= 0 else None)
		except PlanflowError as e:
			return error_json(e)

		result = {"plan": plan.to_dict(), "progress": plan.progress_to_dict()}
		if include_markdown:
			result["markdown"] = plan.to_markdown()
		return to_json(result)

	@mcp.tool()
	async def plans_list(
		plan_type: str = "",
		status: str = "",
		author: str = "",
		search: str = "",
		created_after: str = "",
		created_before: str = "",
		limit: int = 20,
		offset: int = 0,
	) -> str:
		"""
		List plans, newest first.

		Args:
			plan_type: Filter by type (feature, refactor, migration, bugfix, optimization, documentation)
			status: Filter by status (draft, active, completed, archived)
			author: Filter by author
			search: Text to look for in title or description
			created_after: ISO timestamp lower bound
			created_before: ISO timestamp upper bound
			limit: Maximum number of plans
			offset: Number of plans to skip
		"""
		try:
			filters = PlanFilters(
				plan_type=PlanType(plan_type) if plan_type else None,
				status=PlanStatus(status) if status else None,
				author=author or None,
				search=search or None,
				created_after=datetime.fromisoformat(created_after) if created_after else None,
				created_before=datetime.fromisoformat(created_before) if created_before else None,
				limit=limit,
				offset=offset,
			)
		except ValueError as e:
			return to_json({
				"error": str(e),
				"kind": "schema",
				"validPlanTypes": [t.value for t in PlanType],
				"validStatuses": [s.value for s in PlanStatus],
			})

		plans = await lifecycle.list(filters)
		return to_json({
			"count": len(plans),
			"plans": [_summary(p) for p in plans],
		})

	@mcp.tool()
	async def plans_history(plan_id: str) -> str:
		"""
		Get the revision history of a plan, newest first.

		Args:
			plan_id: The plan ID
		"""
		try:
			revisions = await lifecycle.history(plan_id)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"planId": plan_id,
			"revisions": [
				{
					"revision": p.revision,
					"status": p.status.value,
					"stepCount": len(p.steps),
					"updatedAt": p.updated_at.isoformat(),
				}
				for p in revisions
			],
		})

	@mcp.tool()
	async def plans_delete(plan_id: str) -> str:
		"""
		Delete a plan with all its steps, comments and history.

		Args:
			plan_id: The plan ID
		"""
		try:
			await lifecycle.delete(plan_id)
		except PlanflowError as e:
			return error_json(e)
		return to_json({"success": True, "planId": plan_id})

	@mcp.tool()
	async def plans_step_add(plan_id: str, step: dict) -> str:
		"""
		Add a step to a plan.

		Args:
			plan_id: Plan ID
			step: {"id", "title", "description", "kind", "dependsOn"?, "estimatedDuration"?,
				"actions"?, "validation"?, "diagram"?}
		"""
		try:
			plan = await lifecycle.add_step(plan_id, step)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"success": True,
			"planId": plan_id,
			"stepId": step.get("id"),
			"revision": plan.revision,
			"stepCount": len(plan.steps),
		})

	@mcp.tool()
	async def plans_update_step(plan_id: str, step_id: str, updates: dict) -> str:
		"""
		Update fields of an existing step. Fields left out keep their value.

		Args:
			plan_id: Plan ID
			step_id: Step ID (cannot be changed)
			updates: Partial step payload, e.g. {"status": "completed"};
				a null value clears an optional field, e.g. {"estimatedDuration": null}
		"""
		try:
			plan = await lifecycle.update_step(plan_id, step_id, updates)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"success": True,
			"planId": plan_id,
			"step": plan.get_step(step_id).to_dict(),
			"revision": plan.revision,
		})

	@mcp.tool()
	async def plans_remove_step(plan_id: str, step_id: str, mode: str = "strict") -> str:
		"""
		Remove a step from a plan.

		Args:
			plan_id: Plan ID
			step_id: Step to remove
			mode: "strict" fails while other steps depend on it;
				"cascade" removes those dependency edges first
		"""
		try:
			plan, rewritten = await lifecycle.remove_step(plan_id, step_id, mode)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"success": True,
			"planId": plan_id,
			"removedStepId": step_id,
			"updatedDependents": rewritten,
			"revision": plan.revision,
		})

	@mcp.tool()
	async def plans_update_metadata(
		plan_id: str,
		metadata: Optional[dict] = None,
		plan: Optional[dict] = None,
	) -> str:
		"""
		Patch plan metadata and/or plan details. Steps are not touched.

		Args:
			plan_id: Plan ID
			metadata: Partial {"title", "description", "author", "tags"}
			plan: Partial plan details {"objective", "scope", "constraints", "assumptions",
				"successCriteria", "diagrams"}
		"""
		try:
			updated = await lifecycle.update_metadata(plan_id, metadata, plan)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"success": True,
			"planId": plan_id,
			"metadata": updated.metadata.to_dict(),
			"plan": updated.details.to_dict(),
			"revision": updated.revision,
		})

	@mcp.tool()
	async def plans_finalize(plan_id: str) -> str:
		"""
		Finalize a draft plan (draft -> active).

		Requires at least one step and a fully valid plan.

		Args:
			plan_id: Plan ID
		"""
		try:
			plan = await lifecycle.finalize(plan_id)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"success": True,
			"planId": plan_id,
			"status": plan.status.value,
			"revision": plan.revision,
		})

	@mcp.tool()
	async def plans_update_status(plan_id: str, status: str) -> str:
		"""
		Mark an active plan as completed or archived.

		Args:
			plan_id: Plan ID
			status: "completed" or "archived"
		"""
		try:
			plan = await lifecycle.update_status(plan_id, status)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"success": True,
			"planId": plan_id,
			"status": plan.status.value,
			"revision": plan.revision,
		})
