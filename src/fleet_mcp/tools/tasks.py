# Fleet MCP Server
# File: tools/tasks.py
# Version: v4
#
# NOTE: This module is the single place where we define "business logic"
# that is exposed as MCP tools.  The stdio transport simply calls
# `register_tools(server)` to wire these up.

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .. import connection
from ..client import FleetClient
from ..config import FleetConfig
from ..errors import FleetApiError, NoTargetsError
from ..params import HostListParams, PolicyListParams, QueryListParams, SoftwareListParams
from ..queries import invoke_query, summarize

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _make_error(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Small, LLM-friendly error shape for argument errors."""
    err: Dict[str, Any] = {"code": code, "message": message}
    if details:
        err["details"] = details
    return err


def _make_client(cfg: Optional[FleetConfig] = None) -> FleetClient:
    """Create a FleetClient bound to the process-wide connection.

    Note: Callers should prefer invoking this with *no arguments* to keep
    unit tests monkeypatch-friendly (tests often replace _make_client with
    a no-arg lambda).
    """
    cfg = cfg or FleetConfig.from_env()
    return FleetClient(per_page=cfg.per_page)


async def _ensure_connected(client: Any) -> None:
    """Connect from the environment on first use of a real client."""
    if not isinstance(client, FleetClient) or client.connection is not None:
        return
    if not connection.is_connected():
        await connection.connect(FleetConfig.from_env())


async def _client() -> FleetClient:
    client = _make_client()
    await _ensure_connected(client)
    return client


def _listing(kind: str, items: List[Dict[str, Any]], **meta: Any) -> Dict[str, Any]:
    return {
        "summary": f"Found {len(items)} Fleet {kind}.",
        "data": items,
        "meta": {"count": len(items), **meta},
    }


# ---------------------------------------------------------------------------
# Core async tasks (library-style)
# ---------------------------------------------------------------------------


async def connection_status() -> Dict[str, Any]:
    """Report whether a Fleet connection is (or can be) established."""
    error: Optional[Dict[str, Any]] = None
    try:
        await _client()
    except FleetApiError as exc:
        error = exc.to_dict()
    except ValueError as exc:
        error = _make_error("ConfigError", str(exc))

    conn = connection.current_connection()
    connected = conn is not None
    data: Dict[str, Any] = {"connected": connected, "error": error}
    if conn is not None:
        data.update(
            {
                "base_url": conn.base_url,
                "user": (conn.user or {}).get("email"),
                "established_at": conn.established_at.isoformat(),
            }
        )

    status = "ok" if connected else "not_ok"
    return {"summary": f"Fleet connection status: {status}", "data": data, "meta": {}}


async def list_hosts(
    status: Optional[str] = None,
    query: Optional[str] = None,
    team_id: Optional[int] = None,
    label_id: Optional[int] = None,
) -> Dict[str, Any]:
    client = await _client()
    hosts = await client.list_hosts(
        HostListParams(status=status, query=query, team_id=team_id, label_id=label_id)
    )
    return _listing("hosts", hosts, team_id=team_id, label_id=label_id)


async def get_host(host_id: int) -> Dict[str, Any]:
    client = await _client()
    host = await client.get_host(host_id)
    return {
        "summary": f"Host {host_id}: {host.get('display_name') or host.get('hostname')}",
        "data": host,
        "meta": {},
    }


async def list_policies(team_id: Optional[int] = None) -> Dict[str, Any]:
    client = await _client()
    policies = await client.list_policies(PolicyListParams(team_id=team_id))
    return _listing("policies", policies, team_id=team_id)


async def list_queries(
    query: Optional[str] = None,
    team_id: Optional[int] = None,
) -> Dict[str, Any]:
    client = await _client()
    queries = await client.list_queries(QueryListParams(query=query, team_id=team_id))
    return _listing("queries", queries, team_id=team_id)


async def list_software(
    query: Optional[str] = None,
    vulnerable: Optional[bool] = None,
    team_id: Optional[int] = None,
) -> Dict[str, Any]:
    client = await _client()
    software = await client.list_software(
        SoftwareListParams(query=query, vulnerable=vulnerable, team_id=team_id)
    )
    return _listing("software items", software, team_id=team_id)


async def run_query(
    sql: Optional[str] = None,
    query_id: Optional[int] = None,
    host_ids: Optional[List[int]] = None,
    label_ids: Optional[List[int]] = None,
    wait_synchronously: bool = True,
    wait: bool = True,
    max_wait_seconds: Optional[int] = None,
) -> Dict[str, Any]:
    """Run ad-hoc SQL or a saved query against hosts and/or labels."""
    cfg = FleetConfig.from_env()
    client = await _client()
    result = await invoke_query(
        client,
        sql=sql,
        query_id=query_id,
        host_ids=host_ids or [],
        label_ids=label_ids or [],
        wait_synchronously=wait_synchronously,
        wait=wait,
        max_wait_seconds=cfg.max_wait_seconds if max_wait_seconds is None else max_wait_seconds,
        poll_interval_seconds=cfg.poll_interval_seconds,
    )

    data = summarize(result)
    if data["mode"] == "saved_query_run":
        summary = (
            f"{data['responded_host_count']} of {data['targeted_host_count']} host(s) "
            f"responded ({data['response_rate']}%), {len(data['errors'])} with errors."
        )
    elif data["campaign"] is None:
        summary = "Live query started but no campaign id was returned."
    elif data["partial"]:
        summary = f"Campaign {data['campaign']['id']} did not finish in time; partial results."
    else:
        summary = (
            f"Campaign {data['campaign']['id']}: {len(data['results'])} host result(s), "
            f"{len(data['errors'])} error(s)."
        )

    return {"summary": summary, "data": data, "meta": {"partial": data.get("partial", False)}}


# ---------------------------------------------------------------------------
# MCP tool registration
# ---------------------------------------------------------------------------


async def _as_tool_result(call: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
    """Turn a classified failure into one terminal error payload."""
    try:
        return await call()
    except FleetApiError as exc:
        logger.info("Fleet tool call failed: %s", exc.message)
        return {"ok": False, "error": exc.to_dict()}
    except NoTargetsError as exc:
        return {"ok": False, "error": _make_error("NoTargets", str(exc))}
    except ValueError as exc:
        return {"ok": False, "error": _make_error("InvalidArguments", str(exc))}


def register_tools(server: Any) -> None:
    """Register MCP tools on an MCP Server-like instance."""
    if server is None or not hasattr(server, "tool"):
        raise ValueError(
            "register_tools(server) expects an MCP Server-like object that exposes a .tool() decorator."
        )

    @server.tool(name="fleet_connection_status", description="Check the connection to the Fleet server.")
    async def mcp_connection_status() -> Dict[str, Any]:
        return await connection_status()

    @server.tool(name="fleet_list_hosts", description="List Fleet hosts, optionally filtered by status, team or label.")
    async def mcp_list_hosts(
        status: Optional[str] = None,
        query: Optional[str] = None,
        team_id: Optional[int] = None,
        label_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        return await _as_tool_result(
            lambda: list_hosts(status=status, query=query, team_id=team_id, label_id=label_id)
        )

    @server.tool(name="fleet_get_host", description="Get details for a single Fleet host by id.")
    async def mcp_get_host(host_id: int) -> Dict[str, Any]:
        return await _as_tool_result(lambda: get_host(host_id=host_id))

    @server.tool(name="fleet_list_policies", description="List global policies, or a team's policies.")
    async def mcp_list_policies(team_id: Optional[int] = None) -> Dict[str, Any]:
        return await _as_tool_result(lambda: list_policies(team_id=team_id))

    @server.tool(name="fleet_list_queries", description="List saved queries.")
    async def mcp_list_queries(query: Optional[str] = None, team_id: Optional[int] = None) -> Dict[str, Any]:
        return await _as_tool_result(lambda: list_queries(query=query, team_id=team_id))

    @server.tool(name="fleet_list_software", description="List software inventory, optionally only vulnerable items.")
    async def mcp_list_software(
        query: Optional[str] = None,
        vulnerable: Optional[bool] = None,
        team_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        return await _as_tool_result(
            lambda: list_software(query=query, vulnerable=vulnerable, team_id=team_id)
        )

    @server.tool(
        name="fleet_run_query",
        description=(
            "Run ad-hoc SQL or a saved query against host ids and/or label ids. "
            "Label targets run as a live campaign that is polled until it finishes."
        ),
    )
    async def mcp_run_query(
        sql: Optional[str] = None,
        query_id: Optional[int] = None,
        host_ids: Optional[List[int]] = None,
        label_ids: Optional[List[int]] = None,
        wait_synchronously: bool = True,
        wait: bool = True,
        max_wait_seconds: Optional[int] = None,
    ) -> Dict[str, Any]:
        return await _as_tool_result(
            lambda: run_query(
                sql=sql,
                query_id=query_id,
                host_ids=host_ids,
                label_ids=label_ids,
                wait_synchronously=wait_synchronously,
                wait=wait,
                max_wait_seconds=max_wait_seconds,
            )
        )
