"""Starlette app with route assembly."""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator

from starlette.applications import Starlette
from starlette.routing import Mount, Route

from ..plans.errors import PlanflowError
from ..plans.lifecycle import PlanLifecycle
from . import api

logger = logging.getLogger(__name__)


def build_app(lifecycle: PlanLifecycle) -> Starlette:
	"""Build and return the Starlette ASGI app serving the plan REST API."""
	plan_routes = [
		Route("/", api.list_plans, methods=["GET"]),
		Route("/", api.create_plan, methods=["POST"]),
		Route("/format", api.plan_format, methods=["GET"]),
		Route("/format/context", api.context_format, methods=["GET"]),
		Route("/validate", api.validate_plan, methods=["POST"]),
		Route("/draft", api.create_draft, methods=["POST"]),
		Route("/{plan_id}", api.get_plan, methods=["GET"]),
		Route("/{plan_id}", api.replace_plan, methods=["PUT"]),
		Route("/{plan_id}", api.delete_plan, methods=["DELETE"]),
		Route("/{plan_id}/history", api.plan_history, methods=["GET"]),
		Route("/{plan_id}/order", api.execution_order, methods=["GET"]),
		Route("/{plan_id}/executable", api.executable_steps, methods=["GET"]),
		Route("/{plan_id}/metrics", api.plan_metrics, methods=["GET"]),
		Route("/{plan_id}/steps", api.add_step, methods=["POST"]),
		Route("/{plan_id}/steps/{step_id}", api.update_step, methods=["PUT"]),
		Route("/{plan_id}/steps/{step_id}", api.remove_step, methods=["DELETE"]),
		Route("/{plan_id}/steps/{step_id}/review", api.review_step, methods=["POST"]),
		Route("/{plan_id}/steps/{step_id}/comments", api.add_step_comment, methods=["POST"]),
		Route("/{plan_id}/steps/{step_id}/comments/{comment_id}", api.update_step_comment, methods=["PUT"]),
		Route("/{plan_id}/steps/{step_id}/comments/{comment_id}", api.delete_step_comment, methods=["DELETE"]),
		Route("/{plan_id}/comments", api.list_plan_comments, methods=["GET"]),
		Route("/{plan_id}/comments", api.add_plan_comment, methods=["POST"]),
		Route("/{plan_id}/comments/{comment_id}", api.update_plan_comment, methods=["PUT"]),
		Route("/{plan_id}/comments/{comment_id}", api.delete_plan_comment, methods=["DELETE"]),
		Route("/{plan_id}/metadata", api.update_metadata, methods=["PATCH"]),
		Route("/{plan_id}/finalize", api.finalize_plan, methods=["POST"]),
		Route("/{plan_id}/status", api.update_status, methods=["POST"]),
		Route("/{plan_id}/context", api.get_context, methods=["GET"]),
		Route("/{plan_id}/context", api.set_context, methods=["PUT"]),
		Route("/{plan_id}/context", api.delete_context, methods=["DELETE"]),
	]

	routes = [
		Route("/health", api.health),
		Mount("/api/plans", routes=plan_routes),
	]

	@contextlib.asynccontextmanager
	async def lifespan(app: Starlette) -> AsyncIterator[None]:
		yield
		await lifecycle.store.close()
		logger.info("Plan store closed")

	app = Starlette(
		routes=routes,
		exception_handlers={PlanflowError: api.plan_error},
		lifespan=lifespan,
	)
	app.state.lifecycle = lifecycle
	return app
