"""planflow MCP server."""

from mcp.server.fastmcp import FastMCP

from .config import Config, load_config
from .plans.lifecycle import PlanLifecycle
from .plans.store import PlanStore
from .tools import register_all_tools


def build_server(config: Config) -> FastMCP:
	"""Wire store, lifecycle and tools into a FastMCP server."""
	server = FastMCP("planflow")
	lifecycle = PlanLifecycle(PlanStore(str(config.plans_db_path)))
	register_all_tools(server, config, lifecycle)
	return server


config = load_config()
mcp = build_server(config)
