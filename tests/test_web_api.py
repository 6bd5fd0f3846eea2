"""Tests for the HTTP layer: scheduler auth, error mapping and the debate routes."""

import pytest
from fastapi.testclient import TestClient

from tests.conftest import add_user, start_debate
from web.api import create_app

AUTH = {"Authorization": "Bearer test-secret"}


@pytest.fixture
def client(engine):
    with TestClient(create_app(lambda: engine)) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/v1/api/health")
    assert response.status_code == 200
    assert response.json() == {"isAlive": True}


def test_cron_requires_bearer_token(client):
    assert client.get("/api/cron/process-expired").status_code == 401
    assert client.get("/api/cron/process-expired", headers={"Authorization": "Basic abc"}).status_code == 401
    assert client.get("/api/cron/process-expired", headers={"Authorization": "Bearer wrong"}).status_code == 403


@pytest.mark.parametrize("path", ["process-expired", "ai-tasks", "tournament-progression", "check-verdicts"])
def test_cron_routes_return_sweep_summary(client, path):
    for method in (client.get, client.post):
        response = method(f"/api/cron/{path}", headers=AUTH)
        assert response.status_code == 200
        assert set(response.json()) == {"processed", "advanced", "completed", "cancelled", "conflicts", "errors"}


def test_cron_rejected_without_configured_secret(engine, client):
    engine.config.scheduler.cron_secret = None
    assert client.get("/api/cron/check-verdicts", headers=AUTH).status_code == 401


def test_cron_runs_the_expiry_sweep(engine, client, clock):
    alice = add_user(engine, "alice")
    bob = add_user(engine, "bob")
    debate = start_debate(engine, alice, bob)

    clock.advance(days=1, seconds=1)
    response = client.post("/api/cron/process-expired", headers=AUTH)

    assert response.json()["cancelled"] == 1
    assert engine.db.get_debate(debate.id).status.value == "CANCELLED"


def test_debate_flow_over_http(client):
    alice = client.post("/v1/api/users", json={"username": "alice"}).json()
    bob = client.post("/v1/api/users", json={"username": "bob"}).json()
    assert alice["elo_rating"] == 1200

    created = client.post(
        "/v1/api/debates",
        json={"topic": "Cities should ban cars", "challenger_id": alice["id"], "total_rounds": 1},
    ).json()
    assert created["status"] == "WAITING"

    accepted = client.post(f"/v1/api/debates/{created['id']}/accept", json={"user_id": bob["id"]})
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "ACTIVE"

    early = client.post(
        f"/v1/api/debates/{created['id']}/statements", json={"author_id": bob["id"], "content": "Cars are freedom."}
    )
    assert early.status_code == 409

    submitted = client.post(
        f"/v1/api/debates/{created['id']}/statements", json={"author_id": alice["id"], "content": "Streets are for people."}
    )
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "accepted"

    detail = client.get(f"/v1/api/debates/{created['id']}").json()
    assert [s["author_id"] for s in detail["statements"]] == [alice["id"]]


def test_error_mapping(client):
    assert client.get("/v1/api/debates/missing").status_code == 404
    assert client.post("/v1/api/debates/missing/ai-response").status_code == 404
    assert client.get("/v1/api/tournaments/missing").status_code == 404

    client.post("/v1/api/users", json={"username": "alice"})
    assert client.post("/v1/api/users", json={"username": "alice"}).status_code == 409


def test_tournament_routes(engine, client):
    created = client.post("/v1/api/tournaments", json={"name": "Weekly Cup", "max_participants": 4}).json()
    for name in ("alice", "bob"):
        user = add_user(engine, name)
        response = client.post(f"/v1/api/tournaments/{created['id']}/register", json={"user_id": user.id})
        assert response.status_code == 200

    started = client.post(f"/v1/api/tournaments/{created['id']}/start")
    assert started.json()["status"] == "IN_PROGRESS"
    assert client.post(f"/v1/api/tournaments/{created['id']}/start").status_code == 409

    bracket = client.get(f"/v1/api/tournaments/{created['id']}").json()
    assert len(bracket["participants"]) == 2
    assert len(bracket["matches"]) == 1

    round_status = client.get(f"/v1/api/tournaments/{created['id']}/rounds/1").json()
    assert round_status["in_progress_matches"] == 1


def test_championship_registration_takes_a_position(engine, client):
    created = client.post(
        "/v1/api/tournaments", json={"name": "Finals", "format": "CHAMPIONSHIP", "max_participants": 4}
    ).json()
    alice = add_user(engine, "alice")
    bob = add_user(engine, "bob")

    missing = client.post(f"/v1/api/tournaments/{created['id']}/register", json={"user_id": alice.id})
    assert missing.status_code == 422

    response = client.post(
        f"/v1/api/tournaments/{created['id']}/register", json={"user_id": bob.id, "position": "AGAINST"}
    )
    assert response.status_code == 200
    assert response.json()["selected_position"] == "AGAINST"
    odd = client.post("/v1/api/tournaments", json={"name": "Odd", "format": "CHAMPIONSHIP", "max_participants": 5})
    assert odd.status_code == 422
