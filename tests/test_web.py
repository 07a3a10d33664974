"""Tests for the REST API endpoints."""

from pathlib import Path

import pytest
from starlette.testclient import TestClient

from planflow.plans.lifecycle import PlanLifecycle
from planflow.plans.store import PlanStore
from planflow.web.app import build_app

from .helpers import draft_payload, step_payload


@pytest.fixture
def client(tmp_path: Path):
	"""Test client over a fresh store; the lifespan closes the store on exit."""
	app = build_app(PlanLifecycle(PlanStore(str(tmp_path / "plans.db"))))
	with TestClient(app) as c:
		yield c


def _create(client: TestClient, *steps: dict) -> str:
	resp = client.post("/api/plans/draft", json=draft_payload())
	assert resp.status_code == 201
	plan_id = resp.json()["id"]
	for step in steps:
		assert client.post(f"/api/plans/{plan_id}/steps", json=step).status_code == 201
	return plan_id


class TestHealthAndFormat:

	def test_health(self, client: TestClient):
		resp = client.get("/health")
		assert resp.status_code == 200
		assert resp.json() == {"status": "ok"}

	def test_format(self, client: TestClient):
		data = client.get("/api/plans/format").json()
		assert data["constraints"]["maxSteps"] == 100
		assert "step" in data["schemas"]


class TestDrafts:

	def test_create_draft(self, client: TestClient):
		resp = client.post("/api/plans/draft", json=draft_payload())
		assert resp.status_code == 201
		data = resp.json()
		assert data["status"] == "draft"
		assert data["planType"] == "feature"
		assert data["plan"]["objective"].startswith("Users can")

	def test_schema_error_is_400(self, client: TestClient):
		resp = client.post("/api/plans/draft", json={"planType": "feature"})
		assert resp.status_code == 400
		assert resp.json()["kind"] == "schema"

	def test_invalid_json_is_400(self, client: TestClient):
		resp = client.post(
			"/api/plans/draft",
			content=b"{not json",
			headers={"content-type": "application/json"},
		)
		assert resp.status_code == 400
		assert resp.json()["details"][0]["code"] == "invalid_json"

	def test_incomplete_metadata_is_422(self, client: TestClient):
		resp = client.post("/api/plans/draft", json=draft_payload(title="   "))
		assert resp.status_code == 422
		assert resp.json()["details"][0]["path"] == "/metadata/title"


class TestPlans:

	def test_get_and_list(self, client: TestClient):
		plan_id = _create(client, step_payload("a"))

		data = client.get(f"/api/plans/{plan_id}").json()
		assert data["revision"] == 1

		past = client.get(f"/api/plans/{plan_id}", params={"revision": 0}).json()
		assert past["steps"] == []

		listing = client.get("/api/plans/", params={"status": "draft"}).json()
		assert listing["count"] == 1
		assert listing["plans"][0]["id"] == plan_id

	def test_bad_filter_is_400(self, client: TestClient):
		resp = client.get("/api/plans/", params={"type": "epic"})
		assert resp.status_code == 400

	def test_missing_plan_is_404(self, client: TestClient):
		resp = client.get("/api/plans/ghost")
		assert resp.status_code == 404
		assert resp.json()["kind"] == "not_found"

	def test_bad_revision_is_400(self, client: TestClient):
		plan_id = _create(client)
		resp = client.get(f"/api/plans/{plan_id}", params={"revision": "latest"})
		assert resp.status_code == 400

	def test_history_and_delete(self, client: TestClient):
		plan_id = _create(client, step_payload("a"))

		history = client.get(f"/api/plans/{plan_id}/history").json()
		assert [p["revision"] for p in history] == [1, 0]

		assert client.delete(f"/api/plans/{plan_id}").status_code == 200
		assert client.delete(f"/api/plans/{plan_id}").status_code == 404

	def test_validate(self, client: TestClient):
		document = {**draft_payload(), "steps": [step_payload("a", "b"), step_payload("b", "a")]}
		data = client.post("/api/plans/validate", json=document).json()
		assert data["valid"] is False
		assert data["errors"][0]["code"] == "cycle"


class TestSteps:

	def test_missing_dependency_is_422(self, client: TestClient):
		plan_id = _create(client, step_payload("a"))
		resp = client.post(f"/api/plans/{plan_id}/steps", json=step_payload("b", "missing-id"))
		assert resp.status_code == 422
		assert resp.json()["details"][0]["actual"] == "missing-id"

	def test_cycle_is_409(self, client: TestClient):
		plan_id = _create(client, step_payload("a"), step_payload("b", "a"))
		resp = client.put(f"/api/plans/{plan_id}/steps/a", json={"dependsOn": ["b"]})
		assert resp.status_code == 409
		assert resp.json()["kind"] == "cycle"

	def test_update_step(self, client: TestClient):
		plan_id = _create(client, step_payload("a"))
		resp = client.put(f"/api/plans/{plan_id}/steps/a", json={"status": "in_progress"})
		assert resp.status_code == 200
		assert resp.json()["steps"][0]["status"] == "in_progress"

	def test_remove_step_modes(self, client: TestClient):
		plan_id = _create(client, step_payload("a"), step_payload("b", "a"))

		resp = client.delete(f"/api/plans/{plan_id}/steps/a")
		assert resp.status_code == 422

		resp = client.delete(f"/api/plans/{plan_id}/steps/a", params={"mode": "cascade"})
		assert resp.status_code == 200
		data = resp.json()
		assert data["updatedDependents"] == ["b"]
		assert [s["id"] for s in data["plan"]["steps"]] == ["b"]

	def test_order_executable_metrics(self, client: TestClient):
		plan_id = _create(client, step_payload("b"), step_payload("a"))
		resp = client.put(f"/api/plans/{plan_id}/steps/b", json={"dependsOn": ["a"]})
		assert resp.status_code == 200

		order = client.get(f"/api/plans/{plan_id}/order").json()
		assert [s["id"] for s in order] == ["a", "b"]

		ready = client.get(f"/api/plans/{plan_id}/executable").json()
		assert [s["id"] for s in ready] == ["a"]

		metrics = client.get(f"/api/plans/{plan_id}/metrics").json()
		assert metrics["totalSteps"] == 2
		assert metrics["executableSteps"] == 1

	def test_review(self, client: TestClient):
		plan_id = _create(client, step_payload("a"))

		resp = client.post(f"/api/plans/{plan_id}/steps/a/review", json={"decision": "approved"})
		assert resp.status_code == 200
		assert resp.json()["decision"] == "approved"

		resp = client.post(f"/api/plans/{plan_id}/steps/zz/review", json={"decision": "approved"})
		assert resp.status_code == 404

		resp = client.post(f"/api/plans/{plan_id}/steps/a/review", json={"decision": "approved", "reviewer": 5})
		assert resp.status_code == 400
		assert resp.json()["details"][0]["path"] == "/reviewer"


class TestComments:

	def test_plan_comments(self, client: TestClient):
		plan_id = _create(client)

		resp = client.post(f"/api/plans/{plan_id}/comments", json={"content": "Ship it", "author": "lee"})
		assert resp.status_code == 201
		comment_id = resp.json()["id"]

		resp = client.put(f"/api/plans/{plan_id}/comments/{comment_id}", json={"content": "Ship Friday"})
		assert resp.json()["content"] == "Ship Friday"

		comments = client.get(f"/api/plans/{plan_id}/comments").json()
		assert [c["id"] for c in comments] == [comment_id]

		assert client.delete(f"/api/plans/{plan_id}/comments/{comment_id}").status_code == 200
		assert client.delete(f"/api/plans/{plan_id}/comments/{comment_id}").status_code == 404

		# Comments do not create revisions
		assert client.get(f"/api/plans/{plan_id}").json()["revision"] == 0

	def test_step_comments(self, client: TestClient):
		plan_id = _create(client, step_payload("a"))

		resp = client.post(f"/api/plans/{plan_id}/steps/a/comments", json={"content": "Add tests"})
		assert resp.status_code == 201
		comment_id = resp.json()["id"]

		resp = client.put(
			f"/api/plans/{plan_id}/steps/a/comments/{comment_id}", json={"content": "Tests added"}
		)
		assert resp.json()["content"] == "Tests added"

		resp = client.delete(f"/api/plans/{plan_id}/steps/a/comments/{comment_id}")
		assert resp.status_code == 200

	def test_blank_comment_is_400(self, client: TestClient):
		plan_id = _create(client)
		resp = client.post(f"/api/plans/{plan_id}/comments", json={"content": ""})
		assert resp.status_code == 400


class TestLifecycleTransitions:

	def test_metadata_patch(self, client: TestClient):
		plan_id = _create(client)
		resp = client.patch(
			f"/api/plans/{plan_id}/metadata",
			json={"metadata": {"author": "dana"}, "plan": {"scope": "API only"}},
		)
		assert resp.status_code == 200
		data = resp.json()
		assert data["metadata"]["author"] == "dana"
		assert data["plan"]["scope"] == "API only"

	def test_finalize_and_status(self, client: TestClient):
		plan_id = _create(client)

		resp = client.post(f"/api/plans/{plan_id}/finalize")
		assert resp.status_code == 422

		client.post(f"/api/plans/{plan_id}/steps", json=step_payload("a"))
		resp = client.post(f"/api/plans/{plan_id}/finalize")
		assert resp.status_code == 200
		assert resp.json()["status"] == "active"

		resp = client.post(f"/api/plans/{plan_id}/status", json={"status": "archived"})
		assert resp.json()["status"] == "archived"

		resp = client.post(f"/api/plans/{plan_id}/status", json={"status": "active"})
		assert resp.status_code == 400


class TestFullDocuments:

	def test_create_with_steps_is_active(self, client: TestClient):
		document = {**draft_payload(), "steps": [step_payload("a"), step_payload("b", "a")]}
		resp = client.post("/api/plans/", json=document)
		assert resp.status_code == 201
		data = resp.json()
		assert data["status"] == "active"
		assert data["revision"] == 0
		assert [s["id"] for s in data["steps"]] == ["a", "b"]

	def test_create_without_steps_is_draft(self, client: TestClient):
		resp = client.post("/api/plans/", json={**draft_payload(), "steps": []})
		assert resp.status_code == 201
		assert resp.json()["status"] == "draft"

	def test_create_with_unknown_dependency_is_422(self, client: TestClient):
		resp = client.post("/api/plans/", json={**draft_payload(), "steps": [step_payload("a", "zz")]})
		assert resp.status_code == 422
		assert client.get("/api/plans/").json()["count"] == 0

	def test_replace(self, client: TestClient):
		plan_id = _create(client, step_payload("a"))
		document = {**draft_payload(objective="SSO via OIDC"), "steps": [step_payload("x")]}

		resp = client.put(f"/api/plans/{plan_id}", json=document)
		assert resp.status_code == 200
		data = resp.json()
		assert data["id"] == plan_id
		assert data["revision"] == 2
		assert data["plan"]["objective"] == "SSO via OIDC"
		assert [s["id"] for s in data["steps"]] == ["x"]

	def test_replace_rejects_status_change(self, client: TestClient):
		plan_id = _create(client, step_payload("a"))
		resp = client.put(f"/api/plans/{plan_id}", json={**draft_payload(), "steps": [], "status": "active"})
		assert resp.status_code == 400
		assert resp.json()["details"][0]["path"] == "/status"

	def test_replace_with_cycle_is_409(self, client: TestClient):
		plan_id = _create(client, step_payload("a"))
		document = {**draft_payload(), "steps": [step_payload("a", "b"), step_payload("b", "a")]}
		assert client.put(f"/api/plans/{plan_id}", json=document).status_code == 409
		assert client.get(f"/api/plans/{plan_id}").json()["revision"] == 1


class TestContext:

	def test_context_round_trip(self, client: TestClient):
		plan_id = _create(client)
		assert client.get(f"/api/plans/{plan_id}/context").status_code == 404

		resp = client.put(f"/api/plans/{plan_id}/context", json={"files": [{"path": "/srv/app/models.py"}]})
		assert resp.status_code == 200
		assert resp.json()["files"] == [{"path": "/srv/app/models.py"}]

		resp = client.get(f"/api/plans/{plan_id}/context")
		assert resp.json()["planId"] == plan_id

		assert client.delete(f"/api/plans/{plan_id}/context").status_code == 200
		assert client.delete(f"/api/plans/{plan_id}/context").status_code == 404

	def test_context_errors(self, client: TestClient):
		plan_id = _create(client)

		resp = client.put(f"/api/plans/{plan_id}/context", json={"files": [{"path": "relative.py"}]})
		assert resp.status_code == 400

		resp = client.put(
			f"/api/plans/{plan_id}/context",
			json={"files": [{"path": "/a.py"}, {"path": "/a.py"}]},
		)
		assert resp.status_code == 422

		resp = client.put("/api/plans/ghost/context", json={"files": []})
		assert resp.status_code == 404

	def test_context_format(self, client: TestClient):
		resp = client.get("/api/plans/format/context")
		assert resp.status_code == 200
		assert "files" in resp.json()["schema"]["properties"]
