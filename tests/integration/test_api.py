"""
API tests through FastAPI's TestClient.

Services are injected through the dependency setters or
app.dependency_overrides; every test runs against its own SQLite file from
the ``db`` fixture.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from concierge.api.app import app
from concierge.api.dependencies import (
    get_backfill_runner,
    get_suggestion_engine,
    set_approval_queue,
    set_backfill_runner,
    set_pack_registry,
)
from concierge.approvals import ApprovalQueue
from concierge.backfill import BackfillRunner
from concierge.discovery.packs import PackRegistry
from concierge.discovery.pipeline import DiscoveryPipeline
from concierge.domains import DomainSuggestionEngine


@pytest.fixture
def queue():
    return ApprovalQueue()


@pytest.fixture
def client(db, queue, school_pack):
    set_approval_queue(queue)
    set_pack_registry(PackRegistry([school_pack]))
    app.dependency_overrides[get_suggestion_engine] = lambda: DomainSuggestionEngine()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    set_approval_queue(None)
    set_pack_registry(None)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "Concierge API"
        assert data["llm"]["enabled"] is False

    def test_database_health(self, client):
        data = client.get("/health/db").json()
        assert data["status"] == "healthy"
        assert data["schema_ok"] is True
        assert "usage_percent" in data["pool"]


class TestApprovals:
    def test_list_and_get(self, client, queue, make_item):
        old = queue.enqueue(make_item(discovered_at=datetime.now(UTC) - timedelta(days=9)))
        queue.enqueue(make_item())

        data = client.get("/api/approvals", params={"pack_id": "school"}).json()
        assert data["total"] == 2
        assert data["escalated_count"] == 1

        item = client.get(f"/api/approvals/{old.id}").json()
        assert item["state"] == "pending"
        assert item["escalated"] is True
        assert item["days_pending"] == 9

    def test_unknown_token_is_404(self, client):
        assert client.get("/api/approvals/nope").status_code == 404
        assert client.post("/api/approvals/nope/approve").status_code == 404

    def test_approve_then_reject_is_409(self, client, queue, make_item):
        item = queue.enqueue(make_item())

        response = client.post(f"/api/approvals/{item.id}/approve", json={"actor": "parent"})
        assert response.status_code == 200
        assert response.json()["state"] == "approved"
        assert response.json()["disposed_by"] == "parent"

        conflict = client.post(f"/api/approvals/{item.id}/reject")
        assert conflict.status_code == 409
        assert conflict.json()["state"] == "approved"

    def test_dismiss_requires_reason(self, client, queue, make_item):
        item = queue.enqueue(make_item())

        assert client.post(f"/api/approvals/{item.id}/dismiss", json={}).status_code == 400

        response = client.post(f"/api/approvals/{item.id}/dismiss", json={"reason": "not ours"})
        assert response.status_code == 200
        assert response.json()["item_id"] == item.id

        assert client.get(f"/api/approvals/{item.id}").status_code == 404
        dismissed = client.get("/api/dismissed").json()
        assert [d["item_id"] for d in dismissed] == [item.id]

        since = (datetime.now(UTC) + timedelta(hours=1)).isoformat()
        assert client.get("/api/dismissed", params={"since": since}).json() == []

    def test_reclassify(self, client, queue, make_item):
        item = queue.enqueue(make_item())
        response = client.post(
            f"/api/approvals/{item.id}/reclassify", json={"category": "sports_activities"}
        )
        assert response.json()["primary_category"] == "sports_activities"
        bad = client.post(f"/api/approvals/{item.id}/reclassify", json={"category": "pets"})
        assert bad.status_code == 400

    def test_malformed_body_is_sanitized_422(self, client, queue, make_item):
        item = queue.enqueue(make_item())
        response = client.post(f"/api/approvals/{item.id}/reclassify", json={})
        assert response.status_code == 422
        assert response.json()["invalid_fields"] == ["category"]


class TestDomains:
    def test_review_flow(self, client):
        engine = DomainSuggestionEngine()
        suggestion = engine.observe("tutoring.com", "school", ["conference"], "Conference tips")

        listed = client.get("/api/domains", params={"pack_id": "school"}).json()
        assert [s["domain"] for s in listed] == ["tutoring.com"]

        response = client.post(
            f"/api/domains/{suggestion.id}/reject", json={"reason": "ads", "permanent": True}
        )
        assert response.status_code == 200
        assert response.json()["permanent"] is True
        assert client.post(f"/api/domains/{suggestion.id}/approve").status_code == 409
        assert client.get("/api/domains", params={"status": "maybe"}).status_code == 400


class TestRuns:
    def test_runs_endpoints(self, client, make_message, message_source_factory, school_pack):
        source = message_source_factory([make_message("a"), make_message("b", subject="Lunch menu", body="Tacos")])
        stats = DiscoveryPipeline(source).run(school_pack)

        runs = client.get("/api/runs", params={"pack_id": "school"}).json()
        assert [r["id"] for r in runs] == [stats.id]
        assert runs[0]["rejections"]["keyword_no_match"] == 1

        detail = client.get(f"/api/runs/{stats.id}").json()
        assert detail["scanned"] == 2
        assert detail["samples"] == []
        assert client.get("/api/runs/missing").status_code == 404


class TestBackfill:
    def test_not_configured_is_503(self, client):
        response = client.post(
            "/api/backfill", json={"pack_id": "school", "from": "2026-01-01", "to": "2026-01-31"}
        )
        assert response.status_code == 503

    def test_dry_run(self, client, make_message, message_source_factory):
        source = message_source_factory([make_message("a")])
        set_backfill_runner(BackfillRunner(source))
        try:
            response = client.post(
                "/api/backfill", json={"pack_id": "school", "from": "2026-01-01", "to": "2026-01-31"}
            )
        finally:
            set_backfill_runner(None)

        assert response.status_code == 200
        assert response.json()["events_extracted"] == 1
        assert response.json()["events_created"] == 0

    def test_gate_errors_are_400(self, client, make_message, message_source_factory):
        source = message_source_factory([make_message("a")])
        app.dependency_overrides[get_backfill_runner] = lambda: BackfillRunner(source)

        response = client.post(
            "/api/backfill",
            json={"pack_id": "school", "from": "2026-01-01", "to": "2026-01-31", "dry_run": False},
        )
        assert response.status_code == 400
        assert source.queries == []

    def test_unknown_pack_is_404(self, client, message_source_factory):
        app.dependency_overrides[get_backfill_runner] = lambda: BackfillRunner(message_source_factory([]))
        response = client.post(
            "/api/backfill", json={"pack_id": "chess", "from": "2026-01-01", "to": "2026-01-31"}
        )
        assert response.status_code == 404
