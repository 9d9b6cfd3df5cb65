"""
Tests for the research HTTP routes with a faked pipeline.
"""

import json

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.research_routes import get_runner
from core.pipeline.persistence import SqlSessionStore

from fakes import InMemorySessionStore, make_runner


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_runner] = lambda: make_runner(store)
    yield TestClient(app)
    app.dependency_overrides.clear()


def parse_sse(body: str):
    return [
        json.loads(line[len("data: "):])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_stream_ends_with_complete(client):
    response = client.post(
        "/api/research/thesis/stream",
        json={"thesis": "deep value shipping co.", "strategy": "value", "sessionId": "api-1"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["x-session-id"] == "api-1"

    events = parse_sse(response.text)
    assert events[0]["phase"] == "starting"
    assert events[-1]["phase"] == "complete"
    run = json.loads(events[-1]["content"])
    assert run["session_id"] == "api-1"
    assert run["summary"]["total_discovered"] == 2


def test_stream_reports_error_event(store):
    app.dependency_overrides[get_runner] = lambda: make_runner(
        store, discovery_reply=RuntimeError("provider down")
    )
    try:
        response = TestClient(app).post(
            "/api/research/thesis/stream", json={"thesis": "anything"}
        )
    finally:
        app.dependency_overrides.clear()

    events = parse_sse(response.text)
    assert [e["phase"] for e in events].count("error") == 1
    assert events[-1]["phase"] == "error"


def test_blocking_run(client):
    response = client.post("/api/research/thesis", json={"thesis": "shipping", "strategy": "value"})
    assert response.status_code == 200
    body = response.json()
    assert body["final_verdict"]["decision"] == "invest"
    assert len(body["analyzed"]) == 2


def test_empty_thesis_rejected(client):
    response = client.post("/api/research/thesis", json={"thesis": ""})
    assert response.status_code == 422


def test_session_lookup(tmp_path):
    sql_store = SqlSessionStore(f"sqlite:///{tmp_path / 'api.db'}")
    runner = make_runner(sql_store)
    app.dependency_overrides[get_runner] = lambda: runner
    try:
        client = TestClient(app)
        client.post(
            "/api/research/thesis",
            json={"thesis": "shipping", "strategy": "value", "sessionId": "api-2"},
        )
        response = client.get("/api/research/sessions/api-2")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["final_verdict"]["decision"] == "invest"
    assert [o["ticker"] for o in body["opportunities"]] == ["ZIM", "DAC"]


def test_unknown_session_is_404(client):
    response = client.get("/api/research/sessions/nope")
    assert response.status_code == 404


def test_council_roles(client):
    body = client.get("/api/research/council").json()
    assert body["roles"]["discovery"] is True
    assert body["roles"]["analyst:value"] is True
    assert body["research"] is True
    assert body["debate"] is False


# =============================================================================
# Follow-up actions on a finished session
# =============================================================================

@pytest.fixture
def finished(tmp_path):
    """A client over a SQLite store holding one completed run, api-3."""
    runner = make_runner(SqlSessionStore(f"sqlite:///{tmp_path / 'followup.db'}"))
    app.dependency_overrides[get_runner] = lambda: runner
    client = TestClient(app)
    client.post(
        "/api/research/thesis",
        json={"thesis": "deep value shipping co.", "strategy": "value", "sessionId": "api-3"},
    )
    yield client, runner
    app.dependency_overrides.clear()


def test_user_verdict_saved(finished):
    client, _ = finished
    response = client.post(
        "/api/research/sessions/api-3/verdict",
        json={"decision": "pass", "confidence": 65, "note": "Rates are peaking"},
    )
    assert response.status_code == 200
    assert response.json() == {"success": True}

    body = client.get("/api/research/sessions/api-3").json()
    assert body["user_verdict"]["decision"] == "pass"
    assert body["user_verdict"]["confidence"] == 65
    assert body["user_verdict"]["note"] == "Rates are peaking"
    # The council's verdict is untouched
    assert body["final_verdict"]["decision"] == "invest"


@pytest.mark.parametrize("payload", [
    {"decision": "buy", "confidence": 50},
    {"decision": "invest", "confidence": 150},
    {"decision": "invest"},
])
def test_user_verdict_validated(finished, payload):
    client, _ = finished
    response = client.post("/api/research/sessions/api-3/verdict", json=payload)
    assert response.status_code == 422


def test_user_verdict_unknown_session(client):
    response = client.post(
        "/api/research/sessions/nope/verdict", json={"decision": "watch", "confidence": 50}
    )
    assert response.status_code == 404


def test_delete_session(finished):
    client, _ = finished
    assert client.delete("/api/research/sessions/api-3").status_code == 200
    assert client.get("/api/research/sessions/api-3").status_code == 404
    assert client.delete("/api/research/sessions/api-3").status_code == 404


def test_interrogation_uses_stored_research(finished):
    client, runner = finished
    response = client.post(
        "/api/research/sessions/api-3/interrogate",
        json={"question": "How much net cash is there?", "ticker": "dac"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body == {
        "sessionId": "api-3",
        "ticker": "DAC",
        "response": "Net cash covers the market cap.",
    }
    [prompt] = runner.analyzer.roster.interrogator.prompts
    assert "Danaos Corporation (DAC)" in prompt
    assert "deep value shipping co." in prompt
    assert "Danaos Corporation research report." in prompt
    assert "Skeptic critique." in prompt
    assert "Risk assessment." in prompt
    assert "INVEST (72%)" in prompt
    assert prompt.endswith("User: How much net cash is there?")


def test_interrogation_defaults_to_top_pick(finished):
    client, _ = finished
    response = client.post("/api/research/sessions/api-3/interrogate", json={"question": "Why?"})
    assert response.status_code == 200
    assert response.json()["ticker"] in ("ZIM", "DAC")


def test_interrogation_without_agent(tmp_path):
    runner = make_runner(
        SqlSessionStore(f"sqlite:///{tmp_path / 'noagent.db'}"), interrogator_reply=None
    )
    app.dependency_overrides[get_runner] = lambda: runner
    try:
        client = TestClient(app)
        client.post("/api/research/thesis", json={"thesis": "shipping", "sessionId": "api-4"})
        response = client.post(
            "/api/research/sessions/api-4/interrogate", json={"question": "Why?"}
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503


def test_interrogation_needs_research(finished):
    client, _ = finished
    response = client.post(
        "/api/research/sessions/api-3/interrogate", json={"question": "Why?", "ticker": "NOPE"}
    )
    assert response.status_code == 400


def test_interrogation_unknown_session(client):
    response = client.post("/api/research/sessions/nope/interrogate", json={"question": "Why?"})
    assert response.status_code == 404
