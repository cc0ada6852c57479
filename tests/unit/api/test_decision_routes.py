"""Unit tests for the decision engine API routes.

Every test drives the app through TestClient against an in-memory
container whose clock is frozen at 2026-01-01T00:00:00Z. Data is seeded
through the API itself so all requests share the TestClient event loop.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from decision_engine.api.main import create_app
from decision_engine.bootstrap.container import EngineContainer
from decision_engine.config.engine_config import DecisionEngineConfig
from decision_engine.domain.models.realtime import Channels
from decision_engine.infrastructure.observability.correlation import (
    CORRELATION_HEADER,
)

PAST = "2025-12-31T00:00:00Z"


@pytest.fixture
def client(container):
    """TestClient with the lifespan running against the shared container."""
    with TestClient(create_app(container)) as test_client:
        yield test_client


@pytest.fixture
def owner_headers() -> dict[str, str]:
    """Headers for the instance owner."""
    return {"X-Profile-Id": str(uuid4())}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Headers for a platform admin."""
    return {"X-Profile-Id": str(uuid4()), "X-Admin": "true"}


def _create_instance(client: TestClient, headers: dict[str, str], **overrides) -> dict:
    body = {"template_id": "propose_vote", "name": "Park budget", "budget": "1000"}
    body.update(overrides)
    response = client.post("/v1/instances", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _submit(client: TestClient, instance_id: str, title: str, budget: int) -> dict:
    response = client.post(
        f"/v1/instances/{instance_id}/proposals",
        json={"content": {"title": title}, "title": title, "budget": budget},
        headers={"X-Profile-Id": str(uuid4())},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _vote(client: TestClient, instance_id: str, proposal_ids: list[str]):
    return client.put(
        f"/v1/instances/{instance_id}/ballot",
        json={"selected_proposal_ids": proposal_ids},
        headers={"X-Profile-Id": str(uuid4())},
    )


class TestHealthAndMetrics:
    """Tests for /v1/health and /v1/metrics."""

    def test_health(self, client, project_version) -> None:
        """Test that health reports the package version."""
        response = client.get("/v1/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": project_version}

    def test_correlation_id_echoed(self, client) -> None:
        """Test that an incoming correlation id is returned unchanged."""
        response = client.get("/v1/health", headers={CORRELATION_HEADER: "req-42"})

        assert response.headers[CORRELATION_HEADER] == "req-42"

    def test_metrics_count_requests_by_route(self, client) -> None:
        """Test that requests are counted under the route template."""
        client.get(f"/v1/instances/{uuid4()}")

        response = client.get("/v1/metrics")

        assert response.status_code == 200
        assert "decision_http_requests_total" in response.text
        assert 'route="/v1/instances/{instance_id}"' in response.text


class TestTemplates:
    """Tests for the template catalog endpoints."""

    def test_list_templates(self, client) -> None:
        """Test that the catalog lists its templates with their phases."""
        response = client.get("/v1/templates")

        assert response.status_code == 200
        templates = response.json()
        assert [t["id"] for t in templates] == ["propose_vote"]
        assert [p["id"] for p in templates[0]["phases"]] == ["propose", "vote"]

    def test_unknown_template_is_problem_details(self, client) -> None:
        """Test that a missing template maps to a 404 problem document."""
        response = client.get("/v1/templates/nope")

        assert response.status_code == 404
        problem = response.json()["detail"]
        assert problem["error_kind"] == "not_found"
        assert problem["type"] == "urn:decision-engine:error:not-found"
        assert problem["status"] == 404


class TestInstances:
    """Tests for instance creation, reads and edits."""

    def test_create_requires_identity(self, client) -> None:
        """Test that creating without X-Profile-Id is unauthenticated."""
        response = client.post(
            "/v1/instances", json={"template_id": "propose_vote", "name": "x"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["error_kind"] == "unauthenticated"

    def test_malformed_profile_id(self, client) -> None:
        """Test that a non-UUID profile id is unauthenticated."""
        response = client.post(
            "/v1/instances",
            json={"template_id": "propose_vote", "name": "x"},
            headers={"X-Profile-Id": "not-a-uuid"},
        )

        assert response.status_code == 401

    def test_create_starts_in_first_phase(self, client, container, owner_headers) -> None:
        """Test that a new instance sits in the first phase with the budget seeded."""
        instance = _create_instance(client, owner_headers)

        assert instance["current_phase_id"] == "propose"
        assert instance["status"] == "published"
        assert instance["revision"] == 0
        assert Decimal(instance["budget"]) == Decimal("1000")
        assert instance["owner_profile_id"] == owner_headers["X-Profile-Id"]
        assert Channels.global_decisions() in container.realtime_publisher.channels()

    def test_create_unknown_template(self, client, owner_headers) -> None:
        """Test that an unknown template id is a 404."""
        response = client.post(
            "/v1/instances",
            json={"template_id": "nope", "name": "x"},
            headers=owner_headers,
        )

        assert response.status_code == 404

    def test_create_too_many_schedule_entries(self, client, owner_headers) -> None:
        """Test that more schedule entries than phases is a validation failure."""
        response = client.post(
            "/v1/instances",
            json={
                "template_id": "propose_vote",
                "name": "x",
                "phase_schedule": [{}, {}, {}],
            },
            headers=owner_headers,
        )

        assert response.status_code == 422
        assert response.json()["detail"]["error_kind"] == "validation_error"

    def test_create_with_date_without_timezone(self, client, owner_headers) -> None:
        """Test that a planned date without an offset is refused, not a 500."""
        response = client.post(
            "/v1/instances",
            json={
                "template_id": "propose_vote",
                "name": "x",
                "phase_schedule": [
                    {
                        "planned_start_date": "2026-01-01T00:00:00",
                        "planned_end_date": "2026-01-08T00:00:00Z",
                    }
                ],
            },
            headers=owner_headers,
        )

        assert response.status_code == 422
        assert client.get("/v1/instances").json() == []

    def test_create_with_text_vote_limit(self, client, owner_headers) -> None:
        """Test that phase settings outside the settings schema are a 422 problem."""
        response = client.post(
            "/v1/instances",
            json={
                "template_id": "propose_vote",
                "name": "x",
                "phase_schedule": [{}, {"settings": {"maxVotesPerMember": "2"}}],
            },
            headers=owner_headers,
        )

        assert response.status_code == 422
        problem = response.json()["detail"]
        assert problem["error_kind"] == "validation_error"
        assert "maxVotesPerMember" in problem["detail"]

    def test_get_and_list(self, client, owner_headers) -> None:
        """Test that created instances are readable and listed."""
        created = _create_instance(client, owner_headers)

        fetched = client.get(f"/v1/instances/{created['id']}")
        listed = client.get("/v1/instances", params={"status": "published"})

        assert fetched.json()["id"] == created["id"]
        assert [i["id"] for i in listed.json()] == [created["id"]]

    def test_update_with_stale_revision_conflicts(self, client, owner_headers) -> None:
        """Test that an edit against an old revision is a retryable 409."""
        created = _create_instance(client, owner_headers)
        path = f"/v1/instances/{created['id']}"
        first = client.patch(
            path, json={"expected_revision": 0, "name": "Renamed"}, headers=owner_headers
        )

        second = client.patch(
            path, json={"expected_revision": 0, "name": "Again"}, headers=owner_headers
        )

        assert first.status_code == 200
        assert first.json()["revision"] == 1
        assert second.status_code == 409
        assert second.json()["detail"]["retryable"] is True

    def test_update_by_stranger_forbidden(self, client, owner_headers) -> None:
        """Test that only the owner or an admin may edit."""
        created = _create_instance(client, owner_headers)

        response = client.patch(
            f"/v1/instances/{created['id']}",
            json={"expected_revision": 0, "name": "Hijacked"},
            headers={"X-Profile-Id": str(uuid4())},
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error_kind"] == "permission_denied"


class TestProposals:
    """Tests for proposal submission endpoints."""

    def test_submit_within_cap(self, client, owner_headers) -> None:
        """Test that a proposal within the budget cap is submitted."""
        instance = _create_instance(client, owner_headers)

        proposal = _submit(client, instance["id"], "Benches", 600)

        assert proposal["status"] == "submitted"
        assert proposal["submitted_phase_id"] == "propose"

    def test_submit_above_cap(self, client, owner_headers) -> None:
        """Test that a budget above the instance cap is a 422."""
        instance = _create_instance(client, owner_headers)

        response = client.post(
            f"/v1/instances/{instance['id']}/proposals",
            json={"content": {"title": "Pool"}, "budget": 1500},
            headers=owner_headers,
        )

        assert response.status_code == 422
        assert "1500" in response.json()["detail"]["detail"]

    def test_submit_in_voting_phase_is_phase_violation(
        self, client, owner_headers, admin_headers
    ) -> None:
        """Test that submissions after the propose phase closed are a 409."""
        instance = _create_instance(
            client, owner_headers, phase_schedule=[{"planned_end_date": PAST}]
        )
        client.post("/v1/scheduler/tick", headers=admin_headers)

        response = client.post(
            f"/v1/instances/{instance['id']}/proposals",
            json={"content": {"title": "Late"}},
            headers=owner_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["error_kind"] == "phase_rule_violation"

    def test_draft_then_submit(self, client, owner_headers) -> None:
        """Test that a draft is listed for its author and can be submitted."""
        instance = _create_instance(client, owner_headers)
        draft = client.post(
            f"/v1/instances/{instance['id']}/proposals/drafts",
            json={"content": {}},
            headers=owner_headers,
        ).json()

        listed = client.get(
            f"/v1/instances/{instance['id']}/proposals", headers=owner_headers
        )
        submitted = client.post(
            f"/v1/proposals/{draft['id']}/submit",
            headers=owner_headers,
        )

        assert draft["status"] == "draft"
        assert [p["id"] for p in listed.json()] == [draft["id"]]
        # the title is required once the draft is submitted
        assert submitted.status_code == 422


class TestVotingAndResults:
    """Tests for ballots, the scheduler tick and results."""

    def test_results_empty_before_voting(self, client, owner_headers) -> None:
        """Test that stats and the latest result are 204 before any vote."""
        instance = _create_instance(client, owner_headers)
        base = f"/v1/instances/{instance['id']}/results"

        assert client.get(f"{base}/stats").status_code == 204
        assert client.get(f"{base}/latest").status_code == 204
        assert client.get(f"{base}/ranked").json() == []

    def test_ballot_outside_voting_phase(self, client, owner_headers) -> None:
        """Test that voting during the propose phase is a 409."""
        instance = _create_instance(client, owner_headers)
        proposal = _submit(client, instance["id"], "Benches", 600)

        response = _vote(client, instance["id"], [proposal["id"]])

        assert response.status_code == 409

    def test_too_many_selections(self, client, owner_headers, admin_headers) -> None:
        """Test that exceeding maxVotesPerMember is a 422."""
        instance = _create_instance(
            client, owner_headers, phase_schedule=[{"planned_end_date": PAST}]
        )
        ids = [_submit(client, instance["id"], f"P{i}", 10)["id"] for i in range(4)]
        client.post("/v1/scheduler/tick", headers=admin_headers)

        response = _vote(client, instance["id"], ids)

        assert response.status_code == 422
        assert response.json()["detail"]["error_kind"] == "validation_error"

    def test_full_lifecycle(self, client, owner_headers, admin_headers) -> None:
        """Test propose, tick, vote, tick and the funded outcome end to end."""
        instance = _create_instance(
            client,
            owner_headers,
            phase_schedule=[{"planned_end_date": PAST}, {"planned_end_date": PAST}],
        )
        benches = _submit(client, instance["id"], "Benches", 600)
        lights = _submit(client, instance["id"], "Lights", 500)

        first = client.post("/v1/scheduler/tick", headers=admin_headers)
        assert first.json()["processed"] == 1
        assert _vote(client, instance["id"], [benches["id"]]).status_code == 200
        assert _vote(client, instance["id"], [benches["id"], lights["id"]]).status_code == 200
        live = client.get(f"/v1/instances/{instance['id']}/results/stats").json()
        second = client.post("/v1/scheduler/tick", headers=admin_headers)

        assert live["mode"] == "open"
        assert live["vote_tallies"] == {benches["id"]: 2, lights["id"]: 1}
        assert second.json() == {"processed": 1, "failed": 0, "skipped": 0, "errors": []}
        final = client.get(f"/v1/instances/{instance['id']}").json()
        assert final["status"] == "completed"
        ranked = client.get(f"/v1/instances/{instance['id']}/results/ranked").json()
        assert ranked[0]["proposal_id"] == benches["id"]
        assert ranked[0]["outcome"] == "funded"
        assert ranked[0]["rank"] == 1
        latest = client.get(f"/v1/instances/{instance['id']}/results/latest").json()
        assert latest["phase_id"] == "vote"
        assert latest["members_voted"] == 2
        assert Decimal(latest["total_allocated"]) == Decimal("600")

    def test_voting_status(self, client, owner_headers) -> None:
        """Test that the status endpoint reports the caller's ballot state."""
        instance = _create_instance(client, owner_headers)

        response = client.get(
            f"/v1/instances/{instance['id']}/voting-status", headers=owner_headers
        )

        assert response.status_code == 200
        assert response.json()["has_voted"] is False
        assert response.json()["read_only"] is True


class TestSchedulerTick:
    """Tests for POST /v1/scheduler/tick."""

    def test_requires_admin(self, client, owner_headers) -> None:
        """Test that non-admins cannot trigger a tick."""
        response = client.post("/v1/scheduler/tick", headers=owner_headers)

        assert response.status_code == 403

    def test_nothing_due(self, client, admin_headers) -> None:
        """Test that an idle tick reports zero counts."""
        response = client.post("/v1/scheduler/tick", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"processed": 0, "failed": 0, "skipped": 0, "errors": []}


class TestEmbeddedScheduler:
    """Tests for running the transition worker inside the API process."""

    def test_worker_follows_config(self, template_catalog, fake_time_authority) -> None:
        """Test that run_scheduler starts the worker with the app and stops it after."""
        container = EngineContainer.in_memory(
            DecisionEngineConfig(run_scheduler=True, transition_interval_seconds=60),
            template_catalog=template_catalog,
            time_authority=fake_time_authority,
        )

        with patch("decision_engine.api.main.PhaseTransitionWorker") as worker_cls:
            worker = worker_cls.return_value
            worker.start = AsyncMock()
            worker.stop = AsyncMock()
            with TestClient(create_app(container)):
                worker.start.assert_awaited_once()

        worker.stop.assert_awaited_once()
        assert worker_cls.call_args.kwargs["interval_seconds"] == 60

    def test_worker_off_by_default(self, container) -> None:
        """Test that the API does not tick unless configured to."""
        with patch("decision_engine.api.main.PhaseTransitionWorker") as worker_cls:
            with TestClient(create_app(container)):
                pass

        worker_cls.assert_not_called()
