"""Tests for structural validation and the format description."""

import pytest

from planflow.plans.errors import StructuralValidationError
from planflow.plans.schema import MAX_STEPS, StructuralValidator, get_format, require_valid

from .helpers import draft_payload, step_payload


@pytest.fixture
def validator() -> StructuralValidator:
	return StructuralValidator()


def _by_path(issues):
	return {i.path: i for i in issues}


def test_valid_step(validator):
	step = step_payload(
		"a",
		kind="run_command",
		estimatedDuration={"value": 30, "unit": "minutes"},
		actions=[{"type": "terminal", "command": "pytest"}],
		validation={"criteria": ["tests green"]},
	)
	assert validator.validate_step(step) == []


def test_step_collects_all_issues(validator):
	issues = validator.validate_step({"id": "", "kind": "deploy", "extra": 1})
	by_path = _by_path(issues)

	assert by_path["/step/id"].code == "too_short"
	assert by_path["/step/title"].code == "required"
	assert by_path["/step/description"].code == "required"
	assert by_path["/step/kind"].code == "invalid_enum"
	assert by_path["/step/extra"].code == "unknown_field"


def test_action_checked_against_its_type(validator):
	step = step_payload("a", actions=[{"type": "create_file"}, {"type": "launch"}])
	by_path = _by_path(validator.validate_step(step))

	assert by_path["/step/actions/0/filePath"].code == "required"
	assert by_path["/step/actions/1/type"].code == "invalid_enum"


def test_negative_duration_rejected(validator):
	step = step_payload("a", estimatedDuration={"value": -1, "unit": "hours"})
	by_path = _by_path(validator.validate_step(step))
	assert by_path["/step/estimatedDuration/value"].code == "too_small"


def test_step_list_limit(validator):
	steps = [step_payload(f"s{i}") for i in range(MAX_STEPS + 1)]
	issues = validator.validate_steps(steps)
	assert [i.code for i in issues] == ["too_many"]


def test_step_update_allows_partial_payload(validator):
	assert validator.validate_step_update({"status": "completed"}) == []
	issues = validator.validate_step_update({"comments": []})
	assert issues[0].code == "unknown_field"


def test_draft_shape(validator):
	assert validator.validate_draft(draft_payload()) == []

	issues = validator.validate_draft({"planType": "epic", "metadata": {"title": "x"}})
	by_path = _by_path(issues)
	assert by_path["/planType"].code == "invalid_enum"
	assert by_path["/metadata/description"].code == "required"
	assert by_path["/plan"].code == "required"


def test_blank_objective_is_not_a_shape_error(validator):
	assert validator.validate_draft(draft_payload(objective="")) == []


def test_comment_must_not_be_blank(validator):
	assert validator.validate_comment("Looks good", "dana") == []
	assert validator.validate_comment("   ")[0].code == "too_short"
	assert validator.validate_comment(42)[0].code == "invalid_type"


def test_require_valid_raises_with_issues(validator):
	issues = validator.validate_step({})
	with pytest.raises(StructuralValidationError) as exc_info:
		require_valid("Invalid step", issues)
	assert exc_info.value.kind == "schema"
	assert len(exc_info.value.issues) == 4


def test_get_format():
	fmt = get_format()

	assert fmt["version"] == "1.1.0"
	assert fmt["constraints"]["maxSteps"] == MAX_STEPS
	assert "feature" in fmt["constraints"]["supportedPlanTypes"]
	assert set(fmt["schemas"]) == {"plan", "draft", "step", "stepUpdate"}

	actions = {a["type"]: a for a in fmt["actionTypes"]}
	assert actions["run_command"]["requiredFields"] == ["type", "command"]
	assert actions["run_command"]["aliases"] == ["terminal"]
	assert actions["create_file"]["aliases"] == ["create_directory"]
