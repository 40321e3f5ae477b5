# Fleet MCP Server
# File: tests/conftest.py
# Version: v1
#
# Shared fixtures. Every test talks to an in-process fake Fleet server via
# httpx.MockTransport so no real Fleet instance is ever contacted.

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import httpx
import pytest

from fleet_mcp import connection as connection_module
from fleet_mcp.client import FleetClient
from fleet_mcp.connection import Connection

BASE_URL = "https://fleet.example.com"
API = "/api/v1/fleet/"


class FakeFleet:
    """Routes requests by (method, path) to canned responses and records them.

    A route holds a list of responses consumed in order; the last one repeats.
    A response is ``(status, json_body)``, an ``httpx.Response``, an exception
    instance (raised as a transport failure) or a callable taking the request.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, endpoint: str, *responses: Any) -> "FakeFleet":
        self.routes[(method.upper(), API + endpoint.lstrip("/"))] = list(responses)
        return self

    def calls(self, method: str, endpoint: str) -> List[httpx.Request]:
        path = API + endpoint.lstrip("/")
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "Resource Not Found"})

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(request)
        if isinstance(response, httpx.Response):
            return response

        status, body = response
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fleet() -> FakeFleet:
    return FakeFleet()


@pytest.fixture
def client(fleet: FakeFleet) -> FleetClient:
    session = httpx.AsyncClient(transport=fleet.transport)
    conn = Connection(base_url=BASE_URL, auth_header="Bearer test-token", session=session)
    return FleetClient(connection=conn)


@pytest.fixture(autouse=True)
def _no_active_connection(monkeypatch):
    """Each test starts without a process-wide connection."""
    monkeypatch.setattr(connection_module, "_ACTIVE", None)
    for name in (
        "FLEET_URL",
        "FLEET_API_TOKEN",
        "FLEET_EMAIL",
        "FLEET_PASSWORD",
        "FLEET_MAX_WAIT_SECONDS",
        "FLEET_POLL_INTERVAL_SECONDS",
        "FLEET_TIMEOUT_SECONDS",
        "FLEET_PER_PAGE",
        "FLEET_VERIFY_TLS",
    ):
        monkeypatch.delenv(name, raising=False)
