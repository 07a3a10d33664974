"""Tests for server startup and tool registration."""

from pathlib import Path

import pytest

from planflow.config import Config

EXPECTED_TOOLS = {
	"health_check",
	"plans_format", "plans_validate", "plans_create_draft", "plans_get", "plans_list",
	"plans_history", "plans_delete", "plans_step_add", "plans_update_step",
	"plans_remove_step", "plans_update_metadata", "plans_finalize", "plans_update_status",
	"plans_create", "plans_replace",
	"steps_get", "steps_navigate", "steps_order", "steps_review", "comments_manage",
	"plan_context_format", "plan_context_set", "plan_context_get", "plan_context_delete",
}


@pytest.fixture
def server_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
	"""Point the module-level config at a temporary directory."""
	monkeypatch.setenv("PLANFLOW_CONFIG_DIR", str(tmp_path / "config"))
	monkeypatch.setenv("PLANFLOW_DATA_DIR", str(tmp_path / "data"))
	return tmp_path


def test_server_imports(server_env: Path):
	"""Server module should import without errors."""
	from planflow.server import mcp
	assert mcp is not None


def test_build_server_registers_tools(server_env: Path, config: Config):
	"""A built server exposes every plan, step and comment tool."""
	from planflow.server import build_server

	server = build_server(config)
	tool_names = set(server._tool_manager._tools.keys())
	assert tool_names == EXPECTED_TOOLS


def test_server_name(server_env: Path, config: Config):
	from planflow.server import build_server

	assert build_server(config).name == "planflow"
