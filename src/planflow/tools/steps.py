"""Step navigation, review and comment tools."""

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..plans.errors import PlanflowError
from ..plans.lifecycle import PlanLifecycle
from .core import error_json, to_json

COMMENT_ACTIONS = ("add", "update", "delete", "list")


def register_steps_tools(mcp: FastMCP, config: Config, lifecycle: PlanLifecycle) -> None:
	"""Register step and comment tools."""

	@mcp.tool()
	async def steps_get(plan_id: str, step_id: str = "", index: int = -1) -> str:
		"""
		Get one step, by ID or by 0-based position.

		Args:
			plan_id: Plan ID
			step_id: Step ID (takes precedence over index)
			index: Position in the plan's step list
		"""
		try:
			step = await lifecycle.get_step(
				plan_id,
				step_id=step_id or None,
				index=index if index >= 0 else None,
			)
		except PlanflowError as e:
			return error_json(e)
		return to_json({"planId": plan_id, "step": step.to_dict()})

	@mcp.tool()
	async def steps_navigate(plan_id: str, mode: str = "current") -> str:
		"""
		Find the step to work on.

		Args:
			plan_id: Plan ID
			mode: "current" (the in-progress step, else the next one) or
				"next" (first pending step whose dependencies are completed)
		"""
		try:
			step = await lifecycle.navigate(plan_id, mode)
		except PlanflowError as e:
			return error_json(e)

		if step is None:
			return to_json({"planId": plan_id, "step": None, "message": "No step is ready"})
		return to_json({"planId": plan_id, "step": step.to_dict()})

	@mcp.tool()
	async def steps_order(plan_id: str, executable_only: bool = False) -> str:
		"""
		List steps in execution order, or only those that can start now.

		Args:
			plan_id: Plan ID
			executable_only: Return only steps whose dependencies are all completed
		"""
		try:
			if executable_only:
				steps = await lifecycle.executable_steps(plan_id)
			else:
				steps = await lifecycle.execution_order(plan_id)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"planId": plan_id,
			"steps": [
				{
					"id": str(s.id),
					"title": s.title,
					"status": s.status.value,
					"dependsOn": [str(d) for d in s.depends_on],
				}
				for s in steps
			],
		})

	@mcp.tool()
	async def steps_review(plan_id: str, step_id: str, decision: str, reviewer: str = "") -> str:
		"""
		Record a review decision on a step.

		Args:
			plan_id: Plan ID
			step_id: Step ID
			decision: approved, rejected or skipped
			reviewer: Optional reviewer name
		"""
		try:
			review = await lifecycle.set_step_review_status(
				plan_id, step_id, decision, reviewer or None
			)
		except PlanflowError as e:
			return error_json(e)

		return to_json({
			"success": True,
			"planId": plan_id,
			"stepId": step_id,
			"reviewStatus": review.to_dict(),
		})

	@mcp.tool()
	async def comments_manage(
		action: str,
		plan_id: str,
		step_id: str = "",
		comment_id: str = "",
		content: str = "",
		author: str = "",
	) -> str:
		"""
		Manage plan-level or step-level comments.

		Args:
			action: add, update, delete or list
			plan_id: Plan ID
			step_id: Target a step's comments instead of the plan's
			comment_id: Comment to update or delete
			content: Comment text (add, update)
			author: Optional author (add)
		"""
		if action not in COMMENT_ACTIONS:
			return to_json({
				"error": f"Invalid action: {action}",
				"kind": "schema",
				"validActions": list(COMMENT_ACTIONS),
			})

		if action in ("update", "delete") and not comment_id:
			return to_json({"error": f"comment_id is required for {action}", "kind": "schema"})

		step = step_id or None
		try:
			if action == "list":
				if step:
					found = await lifecycle.get_step(plan_id, step_id=step)
					comments = found.comments
				else:
					comments = await lifecycle.list_plan_comments(plan_id)
				return to_json({
					"planId": plan_id,
					"stepId": step,
					"comments": [c.to_dict() for c in comments],
				})

			if action == "add":
				if step:
					comment = await lifecycle.add_step_comment(plan_id, step, content, author or None)
				else:
					comment = await lifecycle.add_plan_comment(plan_id, content, author or None)
			elif action == "update":
				if step:
					comment = await lifecycle.update_step_comment(plan_id, step, comment_id, content)
				else:
					comment = await lifecycle.update_plan_comment(plan_id, comment_id, content)
			else:
				if step:
					await lifecycle.delete_step_comment(plan_id, step, comment_id)
				else:
					await lifecycle.delete_plan_comment(plan_id, comment_id)
				return to_json({"success": True, "deleted": comment_id})
		except PlanflowError as e:
			return error_json(e)

		return to_json({"success": True, "comment": comment.to_dict()})
