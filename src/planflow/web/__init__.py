"""REST API for planflow plans."""

from __future__ import annotations

from ..config import Config


def create_app(config: Config) -> object:
	"""Create the Starlette ASGI application backed by the configured store."""
	from ..plans.lifecycle import PlanLifecycle
	from ..plans.store import PlanStore
	from .app import build_app

	return build_app(PlanLifecycle(PlanStore(str(config.plans_db_path))))


def run_web_server(config: Config, host: str = "", port: int = 0) -> None:
	"""Run the REST API server."""
	try:
		import uvicorn
	except ImportError:
		raise SystemExit(
			"uvicorn is not installed. Install with: pip install -e ."
		)

	app = create_app(config)
	host = host or config.web_host
	port = port or config.web_port

	print(f"planflow API running at http://{host}:{port}/api/plans")
	print("Press Ctrl+C to stop.")
	uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())
