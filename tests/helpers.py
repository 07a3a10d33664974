"""Shared test fixtures and helpers for planflow tests."""

from typing import Callable, Optional

from planflow.config import Config
from planflow.plans.lifecycle import PlanLifecycle
from planflow.plans.models import (
	Duration,
	DurationUnit,
	Plan,
	PlanDetails,
	PlanMetadata,
	PlanStatus,
	PlanType,
	Step,
	StepKind,
	StepStatus,
)


def capture_tools(config: Config, lifecycle: PlanLifecycle, register_fn: Callable) -> dict:
	"""Register tools on a mock MCP and return the captured tool functions.

	Args:
		config: Config object to pass to the registration function
		lifecycle: PlanLifecycle the tools operate on
		register_fn: The registration function (e.g., register_plans_tools)

	Returns:
		Dict mapping tool name to the tool function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), config, lifecycle)
	return captured


def draft_payload(
	title: str = "Add user authentication",
	description: str = "Login and session handling for the web app",
	objective: str = "Users can sign in with email and password",
	plan_type: str = "feature",
	**metadata,
) -> dict:
	"""Wire-format payload accepted by create_draft."""
	return {
		"planType": plan_type,
		"metadata": {"title": title, "description": description, **metadata},
		"plan": {"objective": objective, "successCriteria": ["Tests pass"]},
	}


def step_payload(step_id: str, *depends_on: str, kind: str = "custom", **extra) -> dict:
	"""Wire-format step payload."""
	payload = {
		"id": step_id,
		"title": f"Step {step_id}",
		"description": f"Do {step_id}",
		"kind": kind,
	}
	if depends_on:
		payload["dependsOn"] = list(depends_on)
	payload.update(extra)
	return payload


def make_step(
	step_id: str,
	*depends_on: str,
	status: StepStatus = StepStatus.PENDING,
	hours: Optional[float] = None,
) -> Step:
	return Step(
		id=step_id,
		title=f"Step {step_id}",
		description=f"Do {step_id}",
		kind=StepKind.CUSTOM,
		status=status,
		depends_on=list(depends_on),
		estimated_duration=Duration(value=hours, unit=DurationUnit.HOURS) if hours is not None else None,
	)


def make_plan(
	plan_id: str = "test-plan-123",
	title: str = "Add user authentication",
	status: PlanStatus = PlanStatus.DRAFT,
	plan_type: PlanType = PlanType.FEATURE,
	steps: Optional[list[Step]] = None,
	author: Optional[str] = None,
) -> Plan:
	"""Create a Plan with realistic content for testing."""
	return Plan(
		id=plan_id,
		plan_type=plan_type,
		status=status,
		metadata=PlanMetadata(
			title=title,
			description="Login and session handling for the web app",
			author=author,
		),
		details=PlanDetails(
			objective="Users can sign in with email and password",
			success_criteria=["Tests pass", "No regressions"],
			constraints=["No breaking changes"],
		),
		steps=steps or [],
	)
