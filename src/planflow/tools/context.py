"""Plan context tools: the source files a plan touches."""

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..plans.errors import PlanflowError
from ..plans.lifecycle import PlanLifecycle
from .core import error_json, to_json


def register_context_tools(mcp: FastMCP, config: Config, lifecycle: PlanLifecycle) -> None:
	"""Register plan context tools."""

	@mcp.tool()
	async def plan_context_format() -> str:
		"""Describe the plan context payload: schema, limits and an example."""
		return to_json(lifecycle.get_context_format())

	@mcp.tool()
	async def plan_context_set(plan_id: str, files: list) -> str:
		"""
		Attach source files to a plan, replacing any previous list.

		Args:
			plan_id: Plan ID
			files: [{"path": "/abs/path.py", "title"?, "summary"?, "lastModified"?}]
				Paths must be absolute and unique.
		"""
		try:
			context = await lifecycle.set_context(plan_id, files)
		except PlanflowError as e:
			return error_json(e)
		return to_json({"success": True, "context": context.to_dict()})

	@mcp.tool()
	async def plan_context_get(plan_id: str) -> str:
		"""
		Get the files attached to a plan.

		Args:
			plan_id: Plan ID
		"""
		try:
			context = await lifecycle.get_context(plan_id)
		except PlanflowError as e:
			return error_json(e)
		return to_json({"context": context.to_dict()})

	@mcp.tool()
	async def plan_context_delete(plan_id: str) -> str:
		"""
		Remove the files attached to a plan. The plan itself is kept.

		Args:
			plan_id: Plan ID
		"""
		try:
			await lifecycle.delete_context(plan_id)
		except PlanflowError as e:
			return error_json(e)
		return to_json({"success": True, "planId": plan_id})
