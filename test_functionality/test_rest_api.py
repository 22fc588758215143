"""REST adapter through FastAPI's TestClient.

The database is seeded before the app starts; the lifespan initializes
the factory inside the TestClient's own event loop.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from adapters.rest.app import create_app
from adapters.rest.errors import status_for
from agents.definitions import BUDGET_COACH, INSIGHT_GENERATOR
from domain.models import ErrorCode
from factory import ServiceFactory
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.financial_repo import SQLiteFinancialRepository
from infrastructure.persistence.migrations import run_migrations
from conftest import SESSION, USER, budget_fixture_snapshot


async def _seed(db_path):
    connection = AsyncSQLiteConnection(db_path)
    await run_migrations(connection)
    repo = SQLiteFinancialRepository(connection)
    snapshot = budget_fixture_snapshot()
    for envelope in snapshot.envelopes:
        await repo.add_envelope(USER, envelope)
    for transaction in snapshot.transactions:
        await repo.add_transaction(USER, transaction)


@pytest.fixture
def client(settings, invoker):
    asyncio.run(_seed(settings.db_path))
    app = create_app(ServiceFactory(settings, agent_invoker=invoker))
    with TestClient(app) as client:
        yield client


def _chat(client, message, **extra):
    return client.post("/chat", json={"message": message, "session_id": SESSION, "user_id": USER, **extra})


def test_health(client):
    body = client.get("/health").json()
    assert body["ok"] is True
    assert body["status"] == "healthy"
    assert body["agents"] == 4


def test_chat_routes_budget_question(client, invoker):
    invoker.script(BUDGET_COACH, "You have $454.33 left for groceries.")
    response = _chat(client, "How is my budget?")
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["agent_name"] == BUDGET_COACH
    assert body["response"] == "You have $454.33 left for groceries."


def test_chat_validation_error_shape(client):
    response = client.post("/chat", json={"message": "", "session_id": SESSION, "user_id": USER})
    assert response.status_code == 400
    body = response.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert "message" in body["error"]["message"]


def test_chat_with_unknown_agent_is_400(client):
    response = _chat(client, "How is my budget?", agent_name="ghost")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_degraded_chat_is_still_200(client, invoker):
    invoker.script(BUDGET_COACH, RuntimeError("down"))
    invoker.script("financial_advisor", RuntimeError("down"))
    body = _chat(client, "How is my budget?").json()
    assert body["degraded"] is True
    assert body["error_code"] == "AGENT_ERROR"


def test_run_unknown_agent_is_404(client):
    response = client.post(
        "/agents/ghost/run", json={"message": "hi", "session_id": SESSION, "user_id": USER},
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "AGENT_NOT_FOUND"


def test_run_agent_failure_is_502(client, invoker):
    invoker.script(INSIGHT_GENERATOR, RuntimeError("down"))
    response = client.post(
        f"/agents/{INSIGHT_GENERATOR}/run",
        json={"message": "trends", "session_id": SESSION, "user_id": USER},
    )
    assert response.status_code == 502
    assert response.json()["error"]["code"] == "AGENT_ERROR"


def test_list_agents_and_tools(client):
    agents = client.get("/agents", params={"role": "budgeting"}).json()
    assert [a["name"] for a in agents["agents"]] == [BUDGET_COACH]
    tools = client.get("/tools", params={"category": "budget"}).json()
    assert {t["name"] for t in tools["tools"]} == {"budget_analysis", "variance_calculation"}
    assert "properties" in tools["tools"][0]["parameters"]

    bad = client.get("/agents", params={"role": "wizards"})
    assert bad.status_code == 400


def test_tool_execution(client):
    response = client.post("/tools/budget_analysis", json={
        "params": {"userId": USER, "timeframe": "monthly"},
        "user_id": USER, "session_id": SESSION,
    })
    assert response.status_code == 200
    result = response.json()["result"]
    assert result["success"] is True
    assert result["result"]["summary"]["total_spent"] == pytest.approx(58.17)


def test_tool_failures_map_to_status(client):
    missing = client.post("/tools/teleport", json={"user_id": USER, "session_id": SESSION})
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "TOOL_NOT_FOUND"

    invalid = client.post("/tools/variance_calculation", json={
        "params": {"budgeted": "lots"}, "user_id": USER, "session_id": SESSION,
    })
    assert invalid.status_code == 400
    assert invalid.json()["result"]["success"] is False


def test_handoff_endpoints(client):
    ok = client.post("/handoffs", json={
        "from_agent": BUDGET_COACH, "to_agent": INSIGHT_GENERATOR, "message": "Trends?",
        "reason": "insight request", "user_id": USER, "session_id": SESSION,
    })
    assert ok.status_code == 200
    assert ok.json()["handoff"]["outcome"] == "completed"

    invalid = client.post("/handoffs", json={
        "from_agent": BUDGET_COACH, "to_agent": BUDGET_COACH, "message": "loop",
        "user_id": USER, "session_id": SESSION,
    })
    assert invalid.status_code == 409
    assert invalid.json()["error"]["code"] == "INVALID_AGENTS"

    too_deep = client.post("/handoffs", json={
        "from_agent": BUDGET_COACH, "to_agent": INSIGHT_GENERATOR, "message": "again",
        "user_id": USER, "session_id": SESSION, "escalation_level": 5,
    })
    assert too_deep.status_code == 409
    assert too_deep.json()["error"]["code"] == "HANDOFF_DEPTH_EXCEEDED"

    history = client.get(f"/handoffs/{USER}").json()
    assert len(history["handoffs"]) == 1
    assert history["statistics"]["total_handoffs"] == 1


def test_history_endpoint(client):
    _chat(client, "How is my budget?")
    body = client.get(f"/sessions/{SESSION}/history", params={"limit": 1}).json()
    assert body["pagination"] == {"total": 2, "limit": 1, "offset": 0, "has_more": True}
    assert body["entries"][0]["role"] == "user"


def test_route_suggestion_and_metrics(client):
    suggestion = client.get("/route/suggest", params={"message": "budget my paycheck"}).json()
    assert suggestion["suggestion"]["target_agent"] == BUDGET_COACH
    assert suggestion["suggestion"]["authoritative"] is True

    _chat(client, "How is my budget?")
    metrics = client.get("/metrics", params={"agent_name": BUDGET_COACH}).json()["metrics"]
    assert metrics["agents"][BUDGET_COACH]["calls"] == 1
    assert metrics["active_executions"] == 0


def test_status_mapping():
    assert status_for(ErrorCode.EXECUTION_TIMEOUT) == 504
    assert status_for(ErrorCode.REPOSITORY_ERROR) == 500
    assert status_for(None) == 500
