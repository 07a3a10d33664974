"""Tests for visualizer Rich views."""

from pathlib import Path

from rich.console import Console

from planflow.plans.models import Comment, PlanStatus, StepStatus
from planflow.visualizer.plan_progress import render_plan_list, render_plan_progress, render_plan_summary

from .helpers import make_plan, make_step


def _console(tmp_path: Path) -> Console:
	return Console(file=open(tmp_path / "out.txt", "w"), force_terminal=True, width=120)


def _output(console: Console, tmp_path: Path) -> str:
	console.file.close()
	return (tmp_path / "out.txt").read_text()


def _make_plan():
	return make_plan(
		status=PlanStatus.ACTIVE,
		author="dana",
		steps=[
			make_step("write-tests", "design", hours=2),
			make_step("design", status=StepStatus.COMPLETED, hours=1),
			make_step("docs"),
		],
	)


def test_render_plan_progress(tmp_path: Path):
	console = _console(tmp_path)
	render_plan_progress(_make_plan(), console=console)
	output = _output(console, tmp_path)

	assert "Add user authentication" in output
	assert "1/3 steps" in output
	# Dependencies come first
	assert output.index("design") < output.index("write-tests")
	assert "after design" in output
	assert "ready" in output


def test_render_plan_progress_with_cycle(tmp_path: Path):
	plan = make_plan(steps=[make_step("a", "b"), make_step("b", "a")])
	console = _console(tmp_path)
	render_plan_progress(plan, console=console)
	output = _output(console, tmp_path)

	assert "after b" in output
	assert "after a" in output


def test_render_plan_summary(tmp_path: Path):
	plan = _make_plan()
	plan.comments.append(Comment(id="c1", content="Split the docs step"))
	console = _console(tmp_path)
	render_plan_summary(plan, console=console)
	output = _output(console, tmp_path)

	assert "test-plan-123" in output
	assert "Users can sign in" in output
	assert "dana" in output
	assert "3.0h" in output
	assert "Split the docs step" in output


def test_render_plan_list(tmp_path: Path):
	plans = [
		_make_plan(),
		make_plan(plan_id="plan-2", title="Fix login bug", status=PlanStatus.DRAFT),
	]
	console = _console(tmp_path)
	render_plan_list(plans, console=console)
	output = _output(console, tmp_path)

	assert "test-plan-123" in output
	assert "Fix login bug" in output
	assert "1/3" in output


def test_render_plan_list_empty(tmp_path: Path):
	console = _console(tmp_path)
	render_plan_list([], console=console)
	assert "No plans found" in _output(console, tmp_path)
