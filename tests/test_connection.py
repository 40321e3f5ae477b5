# Fleet MCP Server
# File: tests/test_connection.py
# Version: v1

"""Connection lifecycle: connect, login, failure cleanup and disconnect."""

from __future__ import annotations

import json

import httpx
import pytest

from fleet_mcp import connection
from fleet_mcp.client import FleetClient
from fleet_mcp.config import FleetConfig
from fleet_mcp.errors import (
    NotConnectedError,
    ServerError,
    TransportFailureError,
    UnauthorizedError,
)

BASE_URL = "https://fleet.example.com"


def _config(**overrides) -> FleetConfig:
    values = {"base_url": BASE_URL + "/", "api_token": "tok"}
    values.update(overrides)
    return FleetConfig(**values)


@pytest.mark.asyncio
async def test_connect_with_token_verifies_session(fleet) -> None:
    fleet.add("GET", "me", (200, {"user": {"email": "admin@example.com"}}))

    conn = await connection.connect(_config(), transport=fleet.transport)

    assert connection.get_active_connection() is conn
    assert conn.base_url == BASE_URL
    assert conn.auth_header == "Bearer tok"
    assert conn.user == {"email": "admin@example.com"}
    assert fleet.calls("GET", "me")[0].headers["Authorization"] == "Bearer tok"

    await connection.disconnect()


@pytest.mark.asyncio
async def test_connect_with_credentials_logs_in_first(fleet) -> None:
    fleet.add("POST", "login", (200, {"token": "session-token", "user": {}}))
    fleet.add("GET", "me", (200, {"user": {"email": "admin@example.com"}}))

    conn = await connection.connect(
        _config(api_token=None, email="admin@example.com", password="pw"),
        transport=fleet.transport,
    )

    login = fleet.calls("POST", "login")[0]
    assert json.loads(login.content) == {"email": "admin@example.com", "password": "pw"}
    assert "Authorization" not in login.headers
    assert conn.auth_header == "Bearer session-token"

    await connection.disconnect()


@pytest.mark.asyncio
async def test_failed_connect_leaves_no_state(fleet) -> None:
    fleet.add("GET", "me", (401, {"message": "Authentication required"}))

    with pytest.raises(UnauthorizedError):
        await connection.connect(_config(), transport=fleet.transport)

    assert connection.is_connected() is False
    with pytest.raises(NotConnectedError):
        connection.get_active_connection()


@pytest.mark.asyncio
async def test_failed_connect_clears_previous_connection(fleet) -> None:
    fleet.add("GET", "me", (200, {"user": {}}), (500, {"message": "boom"}))

    first = await connection.connect(_config(), transport=fleet.transport)
    with pytest.raises(ServerError):
        await connection.connect(_config(), transport=fleet.transport)

    assert first.session.is_closed
    assert connection.current_connection() is None


@pytest.mark.asyncio
async def test_disconnect_closes_session(fleet) -> None:
    fleet.add("GET", "me", (200, {"user": {}}))
    conn = await connection.connect(_config(), transport=fleet.transport)

    await connection.disconnect()

    assert conn.session.is_closed
    assert connection.is_connected() is False
    with pytest.raises(NotConnectedError):
        await FleetClient().execute("hosts")


@pytest.mark.asyncio
async def test_connect_requires_url_and_credentials(fleet) -> None:
    fleet.add("GET", "me", (200, {"user": {}}))
    previous = await connection.connect(_config(), transport=fleet.transport)

    with pytest.raises(ValueError):
        await connection.connect(FleetConfig(base_url=None, api_token="tok"))

    assert previous.session.is_closed
    assert connection.current_connection() is None

    with pytest.raises(ValueError):
        await connection.connect(FleetConfig(base_url=BASE_URL))
    assert connection.current_connection() is None


@pytest.mark.asyncio
async def test_non_json_verification_response_fails_connect(fleet) -> None:
    fleet.add("GET", "me", httpx.Response(200, text="<html>login page</html>"))

    with pytest.raises(TransportFailureError) as exc_info:
        await connection.connect(_config(), transport=fleet.transport)

    assert "login page" in exc_info.value.message
    assert connection.is_connected() is False
