"""JSON API endpoints for plans."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse

from ..plans.errors import PlanflowError, StructuralValidationError, ValidationIssue
from ..plans.lifecycle import PlanLifecycle
from ..plans.models import PlanStatus, PlanType
from ..plans.store import PlanFilters

STATUS_BY_KIND = {
	"schema": 400,
	"not_found": 404,
	"conflict": 409,
	"cycle": 409,
	"business": 422,
}


def get_lifecycle(request: Request) -> PlanLifecycle:
	"""Get the PlanLifecycle from app state."""
	return request.app.state.lifecycle


async def plan_error(request: Request, exc: PlanflowError) -> JSONResponse:
	"""Map a plan error to its HTTP status."""
	return JSONResponse(exc.to_dict(), status_code=STATUS_BY_KIND.get(exc.kind, 500))


async def _body(request: Request) -> Any:
	try:
		return await request.json()
	except json.JSONDecodeError as e:
		raise StructuralValidationError("Request body is not valid JSON", [
			ValidationIssue(path="/", message=str(e), code="invalid_json"),
		])


def _schema_error(path: str, message: str, actual: Any = None) -> StructuralValidationError:
	return StructuralValidationError(message, [
		ValidationIssue(path=path, message=message, code="invalid", actual=actual),
	])


def _filters(request: Request) -> PlanFilters:
	params = request.query_params
	try:
		return PlanFilters(
			plan_type=PlanType(params["type"]) if params.get("type") else None,
			status=PlanStatus(params["status"]) if params.get("status") else None,
			author=params.get("author") or None,
			search=params.get("search") or None,
			created_after=datetime.fromisoformat(params["createdAfter"]) if params.get("createdAfter") else None,
			created_before=datetime.fromisoformat(params["createdBefore"]) if params.get("createdBefore") else None,
			limit=int(params["limit"]) if params.get("limit") else None,
			offset=int(params["offset"]) if params.get("offset") else None,
		)
	except ValueError as e:
		raise _schema_error("/query", f"Invalid filter: {e}")


async def health(request: Request) -> JSONResponse:
	return JSONResponse({"status": "ok"})


async def list_plans(request: Request) -> JSONResponse:
	"""Plan summaries, newest first."""
	plans = await get_lifecycle(request).list(_filters(request))
	return JSONResponse({
		"count": len(plans),
		"plans": [
			{
				"id": str(p.id),
				"title": p.metadata.title,
				"planType": p.plan_type.value,
				"status": p.status.value,
				"revision": p.revision,
				"stepCount": len(p.steps),
				"createdAt": p.created_at.isoformat(),
			}
			for p in plans
		],
	})


async def plan_format(request: Request) -> JSONResponse:
	return JSONResponse(get_lifecycle(request).get_format())


async def validate_plan(request: Request) -> JSONResponse:
	issues = get_lifecycle(request).validate_document(await _body(request))
	return JSONResponse({
		"valid": not issues,
		"errors": [issue.to_dict() for issue in issues],
	})


async def create_draft(request: Request) -> JSONResponse:
	plan = await get_lifecycle(request).create_draft(await _body(request))
	return JSONResponse(plan.to_dict(), status_code=201)


async def get_plan(request: Request) -> JSONResponse:
	revision = request.query_params.get("revision")
	if revision is not None and not revision.isdigit():
		raise _schema_error("/revision", "Revision must be a non-negative integer", revision)
	plan = await get_lifecycle(request).get(
		request.path_params["plan_id"],
		int(revision) if revision is not None else None,
	)
	return JSONResponse(plan.to_dict())


async def delete_plan(request: Request) -> JSONResponse:
	plan_id = request.path_params["plan_id"]
	await get_lifecycle(request).delete(plan_id)
	return JSONResponse({"success": True, "planId": plan_id})


async def plan_history(request: Request) -> JSONResponse:
	revisions = await get_lifecycle(request).history(request.path_params["plan_id"])
	return JSONResponse([p.to_dict() for p in revisions])


async def execution_order(request: Request) -> JSONResponse:
	steps = await get_lifecycle(request).execution_order(request.path_params["plan_id"])
	return JSONResponse([s.to_dict() for s in steps])


async def executable_steps(request: Request) -> JSONResponse:
	steps = await get_lifecycle(request).executable_steps(request.path_params["plan_id"])
	return JSONResponse([s.to_dict() for s in steps])


async def plan_metrics(request: Request) -> JSONResponse:
	return JSONResponse(await get_lifecycle(request).metrics(request.path_params["plan_id"]))


async def add_step(request: Request) -> JSONResponse:
	plan = await get_lifecycle(request).add_step(request.path_params["plan_id"], await _body(request))
	return JSONResponse(plan.to_dict(), status_code=201)


async def update_step(request: Request) -> JSONResponse:
	plan = await get_lifecycle(request).update_step(
		request.path_params["plan_id"],
		request.path_params["step_id"],
		await _body(request),
	)
	return JSONResponse(plan.to_dict())


async def remove_step(request: Request) -> JSONResponse:
	plan, rewritten = await get_lifecycle(request).remove_step(
		request.path_params["plan_id"],
		request.path_params["step_id"],
		request.query_params.get("mode", "strict"),
	)
	return JSONResponse({"plan": plan.to_dict(), "updatedDependents": rewritten})


async def review_step(request: Request) -> JSONResponse:
	body = await _body(request)
	if not isinstance(body, dict):
		raise _schema_error("/", "Expected an object with a decision")
	review = await get_lifecycle(request).set_step_review_status(
		request.path_params["plan_id"],
		request.path_params["step_id"],
		body.get("decision"),
		body.get("reviewer"),
	)
	return JSONResponse(review.to_dict())


def _comment_input(body: Any) -> tuple[Any, Any]:
	if not isinstance(body, dict):
		raise _schema_error("/", "Expected an object with content")
	return body.get("content"), body.get("author")


async def add_step_comment(request: Request) -> JSONResponse:
	content, author = _comment_input(await _body(request))
	comment = await get_lifecycle(request).add_step_comment(
		request.path_params["plan_id"], request.path_params["step_id"], content, author
	)
	return JSONResponse(comment.to_dict(), status_code=201)


async def update_step_comment(request: Request) -> JSONResponse:
	content, _ = _comment_input(await _body(request))
	comment = await get_lifecycle(request).update_step_comment(
		request.path_params["plan_id"],
		request.path_params["step_id"],
		request.path_params["comment_id"],
		content,
	)
	return JSONResponse(comment.to_dict())


async def delete_step_comment(request: Request) -> JSONResponse:
	await get_lifecycle(request).delete_step_comment(
		request.path_params["plan_id"],
		request.path_params["step_id"],
		request.path_params["comment_id"],
	)
	return JSONResponse({"success": True})


async def list_plan_comments(request: Request) -> JSONResponse:
	comments = await get_lifecycle(request).list_plan_comments(request.path_params["plan_id"])
	return JSONResponse([c.to_dict() for c in comments])


async def add_plan_comment(request: Request) -> JSONResponse:
	content, author = _comment_input(await _body(request))
	comment = await get_lifecycle(request).add_plan_comment(
		request.path_params["plan_id"], content, author
	)
	return JSONResponse(comment.to_dict(), status_code=201)


async def update_plan_comment(request: Request) -> JSONResponse:
	content, _ = _comment_input(await _body(request))
	comment = await get_lifecycle(request).update_plan_comment(
		request.path_params["plan_id"], request.path_params["comment_id"], content
	)
	return JSONResponse(comment.to_dict())


async def delete_plan_comment(request: Request) -> JSONResponse:
	await get_lifecycle(request).delete_plan_comment(
		request.path_params["plan_id"], request.path_params["comment_id"]
	)
	return JSONResponse({"success": True})


async def update_metadata(request: Request) -> JSONResponse:
	"""Body: {"metadata": {...}?, "plan": {...}?}."""
	body = await _body(request)
	if not isinstance(body, dict):
		raise _schema_error("/", "Expected an object with metadata and/or plan")
	plan = await get_lifecycle(request).update_metadata(
		request.path_params["plan_id"],
		metadata=body.get("metadata"),
		details=body.get("plan"),
	)
	return JSONResponse(plan.to_dict())


async def finalize_plan(request: Request) -> JSONResponse:
	plan = await get_lifecycle(request).finalize(request.path_params["plan_id"])
	return JSONResponse(plan.to_dict())


async def update_status(request: Request) -> JSONResponse:
	body = await _body(request)
	if not isinstance(body, dict):
		raise _schema_error("/", "Expected an object with a status")
	plan = await get_lifecycle(request).update_status(request.path_params["plan_id"], body.get("status"))
	return JSONResponse(plan.to_dict())


async def create_plan(request: Request) -> JSONResponse:
	"""Body: a full plan document. Activated when it carries steps."""
	plan = await get_lifecycle(request).create_plan(await _body(request))
	return JSONResponse(plan.to_dict(), status_code=201)


async def replace_plan(request: Request) -> JSONResponse:
	plan = await get_lifecycle(request).replace_plan(request.path_params["plan_id"], await _body(request))
	return JSONResponse(plan.to_dict())


async def context_format(request: Request) -> JSONResponse:
	return JSONResponse(get_lifecycle(request).get_context_format())


async def get_context(request: Request) -> JSONResponse:
	context = await get_lifecycle(request).get_context(request.path_params["plan_id"])
	return JSONResponse(context.to_dict())


async def set_context(request: Request) -> JSONResponse:
	"""Body: {"files": [{"path", "title"?, "summary"?, "lastModified"?}]}."""
	body = await _body(request)
	if not isinstance(body, dict):
		raise _schema_error("/", "Expected an object with files")
	context = await get_lifecycle(request).set_context(request.path_params["plan_id"], body.get("files"))
	return JSONResponse(context.to_dict())


async def delete_context(request: Request) -> JSONResponse:
	plan_id = request.path_params["plan_id"]
	await get_lifecycle(request).delete_context(plan_id)
	return JSONResponse({"success": True, "planId": plan_id})
