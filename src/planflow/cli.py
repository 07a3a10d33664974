"""CLI for planflow: serve, web, doctor, list and show commands."""

import argparse
import asyncio
import platform
import sys
from importlib.metadata import version as pkg_version
from pathlib import Path

from .config import Config, load_config
from .logging_config import setup_logging

CORE_DEPS = ["mcp", "pydantic", "aiosqlite", "platformdirs", "rich", "starlette", "uvicorn"]


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server (stdio transport)."""
	from .server import mcp
	mcp.run()


def cmd_web(args: argparse.Namespace) -> None:
	"""Run the REST API."""
	from .web import run_web_server

	run_web_server(load_config(), host=args.host or "", port=args.port or 0)


def _check_config_toml(config_dir: Path) -> tuple[str, str | None]:
	"""Validate config.toml. Returns (status, issue_or_none)."""
	import tomllib

	toml_path = config_dir / "config.toml"
	if not toml_path.exists():
		return "not found (optional)", None
	try:
		with open(toml_path, "rb") as f:
			tomllib.load(f)
		return "valid", None
	except tomllib.TOMLDecodeError as e:
		msg = f"config.toml parse error: {e}"
		return f"INVALID ({e})", msg


def _check_server_startup() -> tuple[str, str | None]:
	"""Try importing and counting registered tools. Returns (status, issue_or_none)."""
	try:
		from .server import mcp as server_instance
		count = len(server_instance._tool_manager._tools)
		return f"OK ({count} tools registered)", None
	except Exception as e:
		return f"FAILED ({e})", f"Server startup failed: {e}"


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation and configuration."""
	print("planflow doctor")
	print(f"{'=' * 40}")

	config = load_config()
	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			dep_ver = pkg_version(dep)
			print(f"    {dep:22s} {dep_ver}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	print("  Config:")
	print(f"    config dir:          {config.config_dir}")
	print(f"    data dir:            {config.data_dir}")
	toml_status, toml_issue = _check_config_toml(config.config_dir)
	print(f"    config.toml:         {toml_status}")
	if toml_issue:
		issues.append(toml_issue)
	db_status = "exists" if config.plans_db_path.exists() else "not created yet"
	print(f"    plans db:            {db_status}")
	print()

	print("  Server:")
	server_status, server_issue = _check_server_startup()
	print(f"    {server_status}")
	if server_issue:
		issues.append(server_issue)
	print()

	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	print("  All checks passed.")


async def _with_lifecycle(config: Config, fn):
	from .plans.lifecycle import PlanLifecycle
	from .plans.store import PlanStore

	store = PlanStore(str(config.plans_db_path))
	try:
		return await fn(PlanLifecycle(store))
	finally:
		await store.close()


def cmd_list(args: argparse.Namespace) -> None:
	"""List plans as a table."""
	from .plans.models import PlanStatus, PlanType
	from .plans.store import PlanFilters
	from .visualizer import render_plan_list

	try:
		filters = PlanFilters(
			plan_type=PlanType(args.type) if args.type else None,
			status=PlanStatus(args.status) if args.status else None,
			search=args.search,
			limit=args.limit,
		)
	except ValueError as e:
		print(f"Invalid filter: {e}")
		sys.exit(1)
	plans = asyncio.run(_with_lifecycle(load_config(), lambda lc: lc.list(filters)))
	render_plan_list(plans)


def cmd_show(args: argparse.Namespace) -> None:
	"""Show one plan (default: the most recent)."""
	from .plans.errors import PlanNotFoundError
	from .plans.store import PlanFilters
	from .visualizer import render_plan_progress, render_plan_summary

	async def load(lifecycle):
		if args.plan_id:
			try:
				return await lifecycle.get(args.plan_id)
			except PlanNotFoundError:
				return None
		plans = await lifecycle.list(PlanFilters(limit=1))
		return plans[0] if plans else None

	plan = asyncio.run(_with_lifecycle(load_config(), load))
	if plan is None:
		label = f"plan '{args.plan_id}'" if args.plan_id else "plan"
		print(f"No {label} found.")
		sys.exit(1)

	if args.summary:
		render_plan_summary(plan)
	else:
		render_plan_progress(plan)


def main() -> None:
	"""CLI entry point."""
	parser = argparse.ArgumentParser(
		prog="planflow",
		description="Structured, versioned plans with dependency-checked steps (MCP + REST)",
	)
	subparsers = parser.add_subparsers(dest="command")

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio)")
	serve_parser.set_defaults(func=cmd_serve)

	# web
	web_parser = subparsers.add_parser("web", help="Run the REST API")
	web_parser.add_argument("--host", type=str, default=None, help="Bind address (default from config)")
	web_parser.add_argument("--port", type=int, default=None, help="Server port (default from config)")
	web_parser.set_defaults(func=cmd_web)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	# list
	list_parser = subparsers.add_parser("list", help="List plans")
	list_parser.add_argument("--status", type=str, default=None, help="draft, active, completed or archived")
	list_parser.add_argument("--type", type=str, default=None, help="Plan type, e.g. feature")
	list_parser.add_argument("--search", type=str, default=None, help="Text in title or description")
	list_parser.add_argument("--limit", type=int, default=50, help="Max results")
	list_parser.set_defaults(func=cmd_list)

	# show
	show_parser = subparsers.add_parser("show", help="Show plan progress")
	show_parser.add_argument("plan_id", nargs="?", default=None, help="Plan ID (default: latest)")
	show_parser.add_argument("--summary", action="store_true", help="Show summary panel instead of tree")
	show_parser.set_defaults(func=cmd_show)

	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	config = load_config()
	setup_logging(level=config.log_level, log_dir=config.log_dir)

	args.func(args)


if __name__ == "__main__":
	main()
