"""MCP tool registration - modular tool definitions."""

import logging

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..plans.lifecycle import PlanLifecycle
from .context import register_context_tools
from .core import register_core_tools
from .plans import register_plans_tools
from .steps import register_steps_tools

logger = logging.getLogger(__name__)


def register_all_tools(mcp: FastMCP, config: Config, lifecycle: PlanLifecycle) -> None:
	"""Register all MCP tools against one lifecycle instance."""
	register_core_tools(mcp, config)
	register_plans_tools(mcp, config, lifecycle)
	register_steps_tools(mcp, config, lifecycle)
	register_context_tools(mcp, config, lifecycle)
	logger.debug("Registered planflow tools")
