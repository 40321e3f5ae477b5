# Fleet MCP Server
# File: connection.py
# Version: v1

"""Connection state for the Fleet API.

A ``Connection`` bundles the server address, the authorization header and
the pooled ``httpx.AsyncClient`` every request goes through. One connection
is active per process; ``connect()`` replaces it and ``disconnect()`` clears
it. Core calls also accept an explicit ``Connection``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from .classifier import classify
from .config import FleetConfig
from .errors import NotConnectedError, TransportFailureError, UnauthorizedError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/fleet/"
USER_AGENT = "fleet-mcp"


@dataclass
class Connection:
    base_url: str
    auth_header: str
    session: httpx.AsyncClient
    established_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user: Optional[Dict[str, Any]] = None

    def api_url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}{API_PREFIX}{endpoint.lstrip('/')}"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": self.auth_header,
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }


_ACTIVE: Optional[Connection] = None


def get_active_connection() -> Connection:
    """Return the process-wide connection or raise NotConnectedError."""
    if _ACTIVE is None:
        raise NotConnectedError(
            "Not connected to Fleet. Call connect() with FLEET_URL and "
            "FLEET_API_TOKEN (or FLEET_EMAIL / FLEET_PASSWORD) configured."
        )
    return _ACTIVE


def current_connection() -> Optional[Connection]:
    return _ACTIVE


def is_connected() -> bool:
    return _ACTIVE is not None


async def _send(
    session: httpx.AsyncClient,
    method: str,
    url: str,
    headers: Dict[str, str],
    body: Optional[Dict[str, Any]] = None,
) -> Any:
    try:
        if body is None:
            response = await session.request(method, url, headers=headers)
        else:
            response = await session.request(method, url, headers=headers, json=body)
    except httpx.RequestError as exc:
        raise classify(exc) from exc

    if not response.is_success:
        raise classify(response)
    try:
        return response.json()
    except ValueError as exc:
        raise TransportFailureError(
            f"Fleet returned a non-JSON response from {url}: {response.text[:200]!r}",
            http_status=response.status_code,
        ) from exc


async def _login(session: httpx.AsyncClient, base_url: str, config: FleetConfig) -> str:
    url = f"{base_url}{API_PREFIX}login"
    data = await _send(
        session,
        "POST",
        url,
        {"Accept": "application/json", "User-Agent": USER_AGENT},
        body={"email": config.email, "password": config.password},
    )
    token = data.get("token") if isinstance(data, dict) else None
    if not token:
        raise UnauthorizedError("Fleet login response did not contain 'token'.")
    return str(token)


async def connect(
    config: Optional[FleetConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Connection:
    """Establish the process-wide Fleet connection.

    Any existing connection is closed first. On failure nothing survives:
    the HTTP client is closed and no connection is active.
    """
    global _ACTIVE

    config = config or FleetConfig.from_env()
    await disconnect()

    if not config.base_url:
        raise ValueError("FLEET_URL is not set. Please configure it before calling connect().")
    if not config.has_credentials:
        raise ValueError(
            "Fleet credentials are incomplete. "
            "Set FLEET_API_TOKEN, or FLEET_EMAIL and FLEET_PASSWORD."
        )

    base_url = config.base_url.rstrip("/")
    session = httpx.AsyncClient(
        timeout=float(config.timeout_seconds),
        verify=config.verify_tls,
        transport=transport,
    )

    try:
        token = config.api_token or await _login(session, base_url, config)
        conn = Connection(base_url=base_url, auth_header=f"Bearer {token}", session=session)
        user = await _send(session, "GET", conn.api_url("me"), conn.headers)
        conn.user = user.get("user") if isinstance(user, dict) else None
    except BaseException:
        await session.aclose()
        _ACTIVE = None
        raise

    _ACTIVE = conn
    logger.info(
        "Connected to Fleet at %s as %s",
        base_url,
        (conn.user or {}).get("email", "<unknown user>"),
    )
    return conn


async def disconnect() -> None:
    """Close the pooled HTTP client and clear the active connection."""
    global _ACTIVE

    conn, _ACTIVE = _ACTIVE, None
    if conn is None:
        return
    await conn.session.aclose()
    logger.info("Disconnected from Fleet at %s", conn.base_url)
