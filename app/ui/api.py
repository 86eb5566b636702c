from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx


class APIError(RuntimeError):
    """Error returned by the queue API."""

    def __init__(self, message: str, *, status_code: int | None = None, response: httpx.Response | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response

    def __str__(self) -> str:
        prefix = f"[{self.status_code}] " if self.status_code is not None else ""
        return f"{prefix}{super().__str__()}"


def _extract_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or "Unknown server error"

    if isinstance(data, Mapping):
        detail = data.get("detail")
        if isinstance(detail, str):
            return detail
        if isinstance(detail, list) and detail and isinstance(detail[0], Mapping):
            return str(detail[0].get("msg", "Invalid request"))
    return "The request could not be completed"


@dataclass(slots=True)
class QueueAPIClient:
    """Small client used by reception desks and attendant stations."""

    base_url: str
    token: str | None = None
    timeout: float = 10.0
    transport: httpx.BaseTransport | None = field(default=None, repr=False)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        headers.update(kwargs.pop("headers", {}))

        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method, self._path(path), headers=headers, **kwargs)
        except httpx.HTTPError as exc:  # pragma: no cover - network failures are checked by hand
            raise APIError(f"Queue API request failed: {exc}") from exc

        if response.status_code >= 400:
            raise APIError(_extract_error_message(response), status_code=response.status_code, response=response)

        if response.status_code == 204 or not response.content:
            return None

        content_type = response.headers.get("Content-Type", "")
        if "application/json" in content_type:
            return response.json()
        return response.text

    @staticmethod
    def _path(path: str) -> str:
        return path if path.startswith("/") else f"/{path}"

    def ping(self) -> Mapping[str, Any]:
        return self._request("GET", "/ping")

    # Reception
    def register_ticket(
        self,
        *,
        name: str,
        service: str,
        priority: str = "normal",
        cpf: str | None = None,
        observations: str | None = None,
    ) -> Mapping[str, Any]:
        payload = {
            "name": name,
            "service": service,
            "priority": priority,
            "cpf": cpf,
            "observations": observations,
        }
        return self._request("POST", "/tickets", json=payload)

    def list_tickets(self, *, status: str | None = None, date_range: str | None = None) -> list[Mapping[str, Any]]:
        params = {key: value for key, value in {"status": status, "range": date_range}.items() if value}
        return list(self._request("GET", "/tickets", params=params) or [])

    def cancel_ticket(self, ticket_id: str) -> Mapping[str, Any]:
        return self._request("POST", f"/tickets/{ticket_id}/cancel")

    # Attendant station
    def waiting_queue(self) -> list[Mapping[str, Any]]:
        return list(self._request("GET", "/tickets/waiting") or [])

    def call_next(self, ticket_id: str | None = None) -> Mapping[str, Any] | None:
        return self._request("POST", "/tickets/call-next", json={"ticket_id": ticket_id})

    def start_service(self, ticket_id: str) -> Mapping[str, Any]:
        return self._request("POST", f"/tickets/{ticket_id}/start")

    def finish(self, ticket_id: str) -> Mapping[str, Any]:
        return self._request("POST", f"/tickets/{ticket_id}/finish")

    def recall(self, ticket_id: str) -> Mapping[str, Any]:
        return self._request("POST", f"/tickets/{ticket_id}/recall")

    def mark_no_show(self, ticket_id: str) -> Mapping[str, Any]:
        return self._request("POST", f"/tickets/{ticket_id}/no-show")

    def takeover(self, ticket_id: str) -> Mapping[str, Any]:
        return self._request("POST", f"/tickets/{ticket_id}/takeover")

    # Display and coordination
    def display(self) -> Mapping[str, Any]:
        return self._request("GET", "/display")

    def dashboard(self, date_range: str = "today") -> Mapping[str, Any]:
        return self._request("GET", "/stats/dashboard", params={"range": date_range})

    def export_csv(self, date_range: str | None = None) -> str:
        params = {"range": date_range} if date_range else {}
        return self._request("GET", "/reports/tickets.csv", params=params)
