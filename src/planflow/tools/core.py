"""Core health check tool and shared JSON response helpers."""

import json

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..plans.errors import PlanflowError
from ..plans.models import SCHEMA_VERSION


def register_core_tools(mcp: FastMCP, config: Config) -> None:
	"""Register core tools."""

	@mcp.tool()
	async def health_check() -> str:
		"""
		Check the health of the planflow server.
		Returns status of all components.
		"""
		status = {
			"server": "running",
			"schemaVersion": SCHEMA_VERSION,
			"configDir": str(config.config_dir),
			"dataDir": str(config.data_dir),
			"plansDbExists": config.plans_db_path.exists(),
		}
		return json.dumps(status, indent=2)


def to_json(payload: dict) -> str:
	return json.dumps(payload, indent=2, default=str)


def error_json(error: PlanflowError) -> str:
	"""Serialize a plan error as {"error", "kind", "details"}."""
	return json.dumps(error.to_dict(), indent=2, default=str)
