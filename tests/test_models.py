"""Tests for identifiers and plan models."""

import pytest
from pydantic import ValidationError

from planflow.plans.ids import PlanId, StepId
from planflow.plans.models import Duration, DurationUnit, Plan, Step, StepStatus

from .helpers import make_plan, make_step


def test_identifier_rejects_empty():
	with pytest.raises(ValueError):
		PlanId("")
	with pytest.raises(ValueError):
		StepId("")


def test_identifier_value_equality():
	assert StepId("a") == StepId("a")
	assert StepId("a") == "a"
	assert hash(PlanId("p")) == hash(PlanId("p"))
	assert repr(StepId("a")) == "StepId('a')"


def test_step_rejects_empty_id():
	with pytest.raises(ValidationError):
		Step.model_validate({"id": "", "title": "x", "description": "", "kind": "custom"})


def test_depends_on_duplicates_collapse():
	step = make_step("c", "a", "b", "a")
	assert step.depends_on == ["a", "b"]


def test_duration_in_hours():
	assert Duration(value=90, unit=DurationUnit.MINUTES).in_hours() == 1.5
	assert Duration(value=2, unit=DurationUnit.HOURS).in_hours() == 2
	assert Duration(value=1, unit=DurationUnit.DAYS).in_hours() == 8


def test_to_dict_uses_camel_case():
	plan = make_plan(steps=[make_step("a"), make_step("b", "a")])
	data = plan.to_dict()

	assert data["planType"] == "feature"
	assert data["schemaVersion"] == "1.1.0"
	assert data["plan"]["objective"].startswith("Users can")
	assert data["plan"]["successCriteria"] == ["Tests pass", "No regressions"]
	assert data["steps"][1]["dependsOn"] == ["a"]
	assert "author" not in data["metadata"]


def test_wire_round_trip_keeps_identity():
	plan = make_plan(steps=[make_step("a")])
	loaded = Plan.model_validate_json(plan.model_dump_json(by_alias=True))
	assert loaded.id == plan.id
	assert isinstance(loaded.id, PlanId)
	assert isinstance(loaded.steps[0].id, StepId)


def test_remove_step_cascade_rewrites_dependents():
	plan = make_plan(steps=[make_step("a"), make_step("b", "a"), make_step("c", "a", "b")])

	rewritten = plan.remove_step("a", cascade=True)

	assert rewritten == ["b", "c"]
	assert [s.id for s in plan.steps] == ["b", "c"]
	assert plan.get_step("b").depends_on == []
	assert plan.get_step("c").depends_on == ["b"]


def test_get_progress():
	plan = make_plan(steps=[
		make_step("a", status=StepStatus.COMPLETED, hours=2),
		make_step("b", "a", status=StepStatus.IN_PROGRESS, hours=1.5),
		make_step("c", "b"),
		make_step("d", status=StepStatus.SKIPPED),
	])
	progress = plan.get_progress()

	assert progress["total_steps"] == 4
	assert progress["completed_steps"] == 1
	assert progress["in_progress_steps"] == 1
	assert progress["skipped_steps"] == 1
	assert progress["percent_complete"] == 25.0
	assert progress["estimated_hours"] == 3.5


def test_get_progress_empty_plan():
	progress = make_plan().get_progress()
	assert progress["percent_complete"] == 0
	assert progress["estimated_hours"] is None


def test_to_markdown():
	plan = make_plan(steps=[make_step("a", status=StepStatus.COMPLETED), make_step("b", "a")])
	md = plan.to_markdown()

	assert md.startswith("# Add user authentication")
	assert "## Objective" in md
	assert "[x] **a**" in md
	assert "after a" in md
