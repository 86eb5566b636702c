from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.dependencies import queue as queue_deps
from app.dependencies.auth import Role, User
from app.main import create_app
from app.queue import QueueEngine
from app.queue.errors import StorageError

ATTENDANT = {"Authorization": "Bearer attendant-1-token"}
OTHER_ATTENDANT = {"Authorization": "Bearer attendant-2-token"}
RECEPTION = {"Authorization": "Bearer reception-token"}
MANAGER = {"Authorization": "Bearer manager-token"}
ADMIN = {"Authorization": "Bearer admin-token"}


@pytest.fixture
def ticket_client(engine: QueueEngine):
    app = create_app()
    attendant = User("guiche1", (Role.ATTENDANT,), display_name="Guichê 1")
    reception = User("recepcao", (Role.RECEPTION,))

    async def override_engine():
        return engine

    app.dependency_overrides[queue_deps.get_queue_engine] = override_engine
    app.dependency_overrides[queue_deps.require_attendant] = lambda: attendant
    app.dependency_overrides[queue_deps.require_reception] = lambda: reception

    client = TestClient(app)
    try:
        yield client, engine
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def live_client(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("AGENCY_NAME", "CRAS Centro")
    get_settings.cache_clear()
    try:
        with TestClient(create_app()) as client:
            yield client
    finally:
        get_settings.cache_clear()


def _register(client: TestClient, name: str = "Ana", **extra) -> dict:
    payload = {"name": name, "service": "Primeira vez", **extra}
    response = client.post("/tickets", json=payload, headers=RECEPTION)
    assert response.status_code == 201, response.text
    return response.json()


def test_register_ticket_returns_created(ticket_client):
    client, _ = ticket_client

    response = client.post("/tickets", json={"name": "Ana", "service": "Primeira vez"})

    assert response.status_code == 201
    body = response.json()
    assert body["number"] == "P-001"
    assert body["status"] == "waiting"
    assert body["recall_count"] == 0


def test_register_validates_payload(ticket_client):
    client, _ = ticket_client

    assert client.post("/tickets", json={"name": "", "service": "Primeira vez"}).status_code == 422
    assert client.post("/tickets", json={"name": "Ana", "service": "  "}).status_code == 422
    assert client.post("/tickets", json={"name": "Ana", "service": "X", "priority": "vip"}).status_code == 422


def test_call_next_and_lifecycle(ticket_client):
    client, _ = ticket_client
    client.post("/tickets", json={"name": "Ana", "service": "Primeira vez"})
    elderly = client.post(
        "/tickets", json={"name": "Dona Maria", "service": "Inclusão", "priority": "elderly"}
    ).json()

    called = client.post("/tickets/call-next")
    assert called.status_code == 200
    assert called.json()["id"] == elderly["id"]
    assert called.json()["attendant_name"] == "Guichê 1"

    recalled = client.post(f"/tickets/{elderly['id']}/recall").json()
    assert recalled["recall_count"] == 2

    started = client.post(f"/tickets/{elderly['id']}/start").json()
    assert started["status"] == "in_progress"
    finished = client.post(f"/tickets/{elderly['id']}/finish").json()
    assert finished["status"] == "finished"


def test_call_next_on_empty_queue_returns_no_content(ticket_client):
    client, _ = ticket_client

    response = client.post("/tickets/call-next")

    assert response.status_code == 204


def test_call_next_can_target_a_ticket(ticket_client):
    client, _ = ticket_client
    client.post("/tickets", json={"name": "Ana", "service": "Primeira vez"})
    second = client.post("/tickets", json={"name": "Bia", "service": "Primeira vez"}).json()

    response = client.post("/tickets/call-next", json={"ticket_id": second["id"]})

    assert response.json()["id"] == second["id"]


def test_invalid_transition_maps_to_conflict(ticket_client):
    client, _ = ticket_client
    ticket = client.post("/tickets", json={"name": "Ana", "service": "Primeira vez"}).json()

    response = client.post(f"/tickets/{ticket['id']}/finish")

    assert response.status_code == 409


def test_unknown_ticket_maps_to_not_found(ticket_client):
    client, _ = ticket_client

    assert client.get(f"/tickets/{uuid4()}").status_code == 404
    assert client.post(f"/tickets/{uuid4()}/no-show").status_code == 404


def test_storage_failure_maps_to_service_unavailable(ticket_client, monkeypatch):
    client, engine = ticket_client

    async def broken(**kwargs):
        raise StorageError("database offline")

    monkeypatch.setattr(engine.store, "list_tickets", broken)

    response = client.get("/tickets/waiting")

    assert response.status_code == 503
    assert response.json()["detail"] == "database offline"


def test_list_and_cancel(ticket_client):
    client, _ = ticket_client
    ticket = client.post("/tickets", json={"name": "Ana", "service": "Primeira vez"}).json()
    client.post("/tickets", json={"name": "Bia", "service": "Primeira vez"})

    canceled = client.post(f"/tickets/{ticket['id']}/cancel")
    assert canceled.json()["status"] == "canceled"

    listed = client.get("/tickets", params={"status": "waiting", "range": "today"}).json()
    assert [item["name"] for item in listed] == ["Bia"]
    waiting = client.get("/tickets/waiting").json()
    assert [item["name"] for item in waiting] == ["Bia"]


def test_queue_endpoints_require_roles(live_client):
    assert live_client.post("/tickets", json={"name": "Ana", "service": "Primeira vez"}).status_code == 403
    assert live_client.post("/tickets/call-next", headers=RECEPTION).status_code == 403
    assert live_client.get("/stats/summary", headers=ATTENDANT).status_code == 403
    assert live_client.put("/settings", json={"agency_name": "X"}, headers=MANAGER).status_code == 403
    assert live_client.get("/tickets", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_two_attendants_share_one_queue(live_client):
    first = _register(live_client, "Ana")
    second = _register(live_client, "Bia")

    one = live_client.post("/tickets/call-next", headers=ATTENDANT).json()
    two = live_client.post("/tickets/call-next", headers=OTHER_ATTENDANT).json()

    assert (one["id"], one["attendant_name"]) == (first["id"], "Guichê 1")
    assert (two["id"], two["attendant_name"]) == (second["id"], "Guichê 2")

    live_client.post(f"/tickets/{one['id']}/start", headers=ATTENDANT)
    taken = live_client.post(f"/tickets/{one['id']}/takeover", headers=OTHER_ATTENDANT).json()
    assert taken["attendant_name"] == "Guichê 2"
    assert taken["status"] == "in_progress"


def test_display_shows_current_call(live_client):
    ticket = _register(live_client, "Ana")
    live_client.post("/tickets/call-next", headers=ATTENDANT)

    board = live_client.get("/display").json()

    assert board["agency_name"] == "CRAS Centro"
    assert board["current"]["id"] == ticket["id"]
    assert board["history"] == []


def test_dashboard_and_summary(live_client):
    _register(live_client, "Ana")
    _register(live_client, "Bia", priority="pregnant")
    live_client.post("/tickets/call-next", headers=ATTENDANT)

    summary = live_client.get("/stats/summary", headers=MANAGER).json()
    dashboard = live_client.get("/stats/dashboard", params={"range": "week"}, headers=MANAGER).json()

    assert summary == {"waiting": 1, "in_progress": 1, "finished": 0, "today_total": 2}
    assert dashboard["range"] == "week"
    assert dashboard["priority_share"] == 50.0
    assert [row["service"] for row in dashboard["health"]][:4] == [
        "Primeira vez",
        "Inclusão",
        "Alteração",
        "Atualização",
    ]


def test_csv_export(live_client):
    _register(live_client, "Ana", cpf="123.456.789-00")

    response = live_client.get("/reports/tickets.csv", params={"range": "today"}, headers=MANAGER)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "relatorio_atendimentos_" in response.headers["content-disposition"]
    lines = response.text.splitlines()
    assert lines[0].startswith('"number","name"')
    assert '"123.456.789-00"' in lines[1]


def test_agency_settings_round_trip(live_client):
    assert live_client.get("/settings").json() == {"agency_name": "CRAS Centro"}

    updated = live_client.put("/settings", json={"agency_name": "CRAS Norte"}, headers=ADMIN)

    assert updated.status_code == 200
    assert live_client.get("/settings").json() == {"agency_name": "CRAS Norte"}
    assert live_client.put("/settings", json={"agency_name": "   "}, headers=ADMIN).status_code == 422


def test_ping_endpoints(live_client):
    assert live_client.get("/ping").json() == {"status": "ok"}
    assert live_client.get("/ping/secure", headers=RECEPTION).json() == {"status": "ok", "user": "recepcao"}
    assert live_client.get("/ping/secure").status_code == 403


def test_missing_engine_returns_service_unavailable():
    client = TestClient(create_app())

    response = client.get("/tickets/waiting", headers=ATTENDANT)

    assert response.status_code == 503
