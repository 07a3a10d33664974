"""Tests for business rule validation."""

import pytest

from planflow.plans.errors import BusinessRuleError, CyclicDependencyError, ValidationIssue
from planflow.plans.models import PlanDetails, PlanMetadata, PlanStatus
from planflow.plans.rules import BusinessRuleValidator, raise_for_issues

from .helpers import make_plan, make_step


@pytest.fixture
def rules() -> BusinessRuleValidator:
	return BusinessRuleValidator()


def _codes(issues):
	return [i.code for i in issues]


def test_complete_metadata_passes(rules):
	metadata = PlanMetadata(title="T", description="D", author="dana")
	assert rules.check_metadata(metadata, PlanDetails(objective="O")) == []


def test_blank_fields_are_reported_together(rules):
	metadata = PlanMetadata(title="  ", description="", author="")
	issues = rules.check_metadata(metadata, PlanDetails(objective=" "))

	assert [i.path for i in issues] == [
		"/metadata/title",
		"/metadata/description",
		"/metadata/author",
		"/plan/objective",
	]
	assert all(i.error_type == "business" for i in issues)


def test_missing_author_is_allowed(rules):
	assert rules.check_metadata(PlanMetadata(title="T", description="D")) == []


def test_duplicate_ids_reported_once(rules):
	issues = rules.check_unique_ids([make_step("a"), make_step("a"), make_step("b")])
	assert _codes(issues) == ["duplicate_id"]
	assert issues[0].path == "/steps/0/id"


def test_check_steps_aggregates_violations(rules):
	steps = [make_step("a", "b"), make_step("b", "a"), make_step("c", "ghost")]
	codes = _codes(rules.check_steps(steps))
	assert "unknown_dependency" in codes
	assert "cycle" in codes


def test_raise_for_issues_prefers_cycle_error():
	issues = [
		ValidationIssue(path="/steps/0/dependsOn", message="x", error_type="business", code="unknown_dependency"),
		ValidationIssue(path="/steps", message="y", error_type="business", code="cycle"),
	]
	with pytest.raises(CyclicDependencyError) as exc_info:
		raise_for_issues("Invalid", issues)
	assert len(exc_info.value.issues) == 2
	assert exc_info.value.kind == "cycle"


def test_raise_for_issues_business_error():
	issues = [ValidationIssue(path="/steps/0/id", message="dup", error_type="business", code="duplicate_id")]
	with pytest.raises(BusinessRuleError) as exc_info:
		raise_for_issues("Invalid", issues)
	assert not isinstance(exc_info.value, CyclicDependencyError)


def test_raise_for_issues_noop_when_clean():
	raise_for_issues("Invalid", [])


def test_finalize_requires_steps(rules):
	issues = rules.check_can_finalize(make_plan())
	assert _codes(issues) == ["no_steps"]
	assert "at least one step" in issues[0].message


def test_finalize_requires_draft(rules):
	plan = make_plan(status=PlanStatus.ACTIVE, steps=[make_step("a")])
	issues = rules.check_can_finalize(plan)
	assert _codes(issues) == ["not_draft"]
	assert "not in draft status" in issues[0].message


def test_finalize_runs_full_validation(rules):
	plan = make_plan(steps=[make_step("a", "missing")])
	with pytest.raises(BusinessRuleError) as exc_info:
		rules.validate_can_finalize(plan)
	assert _codes(exc_info.value.issues) == ["unknown_dependency"]
