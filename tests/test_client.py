import json

import httpx
import pytest

from app.ui.api import APIError, QueueAPIClient


def _client(handler) -> QueueAPIClient:
    return QueueAPIClient(
        base_url="http://queue.local",
        token="attendant-1-token",
        transport=httpx.MockTransport(handler),
    )


def test_call_next_sends_bearer_token_and_payload():
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["path"] = request.url.path
        seen["body"] = request.content
        return httpx.Response(200, json={"number": "P-001"})

    result = _client(handler).call_next()

    assert result == {"number": "P-001"}
    assert seen["auth"] == "Bearer attendant-1-token"
    assert seen["path"] == "/tickets/call-next"
    assert json.loads(seen["body"]) == {"ticket_id": None}


def test_empty_queue_returns_none():
    client = _client(lambda request: httpx.Response(204))

    assert client.call_next() is None


def test_list_tickets_passes_filters():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["status"] == "waiting"
        assert "range" not in request.url.params
        return httpx.Response(200, json=[{"number": "P-001"}])

    assert _client(handler).list_tickets(status="waiting") == [{"number": "P-001"}]


def test_errors_surface_server_detail():
    client = _client(lambda request: httpx.Response(409, json={"detail": "Cannot move ticket"}))

    with pytest.raises(APIError) as exc:
        client.finish("abc")

    assert exc.value.status_code == 409
    assert str(exc.value) == "[409] Cannot move ticket"


def test_validation_errors_use_first_message():
    body = {"detail": [{"msg": "field required"}]}
    client = _client(lambda request: httpx.Response(422, json=body))

    with pytest.raises(APIError) as exc:
        client.register_ticket(name="", service="Primeira vez")

    assert "field required" in str(exc.value)


def test_export_returns_csv_text():
    client = _client(
        lambda request: httpx.Response(200, text='"number"\n', headers={"Content-Type": "text/csv"})
    )

    assert client.export_csv("today") == '"number"\n'
