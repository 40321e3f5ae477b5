# Fleet MCP Server
# File: client.py
# Version: v3
"""High-level client for the Fleet REST API.

Every call goes through ``FleetClient.execute``, which:

- builds ``<base_url>/api/v1/fleet/<endpoint>`` plus percent-encoded params,
- reuses the connection's pooled ``httpx.AsyncClient``,
- optionally follows Fleet's ``page`` / ``meta.has_next_results`` pagination,
- converts transport failures and non-2xx responses into ``FleetApiError``.

The resource helpers further down are thin pass-throughs used by the MCP
tools (hosts, policies, queries, software, labels).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

import httpx

from .classifier import classify
from .connection import Connection, get_active_connection
from .params import (
    CreateQueryBody,
    HostListParams,
    PolicyListParams,
    QueryListParams,
    SoftwareListParams,
    encode_params,
)

logger = logging.getLogger(__name__)

METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

# Collection fields Fleet uses in paginated list responses, in lookup order.
COLLECTION_FIELDS: Tuple[str, ...] = (
    "hosts",
    "policies",
    "queries",
    "software",
    "software_titles",
    "versions",
    "labels",
    "users",
    "teams",
    "packs",
    "scripts",
    "activities",
)


@dataclass
class Request:
    endpoint: str
    method: str = "GET"
    body: Optional[Any] = None
    params: Dict[str, str] = field(default_factory=dict)
    follow_pagination: bool = False


@dataclass
class Page:
    items: List[Any]
    has_more: bool


def encode_query_string(params: Mapping[str, str]) -> str:
    """Percent-encode every key and value independently and join with '&'."""
    return "&".join(
        f"{quote(str(key), safe='')}={quote(str(value), safe='')}"
        for key, value in params.items()
    )


def build_url(connection: Connection, endpoint: str, params: Optional[Mapping[str, str]] = None) -> str:
    url = connection.api_url(endpoint)
    if params:
        separator = "&" if "?" in endpoint else "?"
        url = f"{url}{separator}{encode_query_string(params)}"
    return url


def _collection_field(data: Dict[str, Any]) -> Optional[str]:
    for name in COLLECTION_FIELDS:
        if isinstance(data.get(name), list):
            return name
    candidates = [k for k, v in data.items() if k != "meta" and isinstance(v, list)]
    if len(candidates) == 1:
        return candidates[0]
    return None


def parse_page(data: Any) -> Optional[Page]:
    """Interpret one response as a Page, or None if it is not paginated."""
    if not isinstance(data, dict) or not isinstance(data.get("meta"), dict):
        return None

    name = _collection_field(data)
    items = list(data.get(name) or []) if name else []
    return Page(items=items, has_more=bool(data["meta"].get("has_next_results")))


def _as_params(params: Any) -> Dict[str, str]:
    if params is None:
        return {}
    if hasattr(params, "to_params"):
        return params.to_params()
    return encode_params(params)


def _items(data: Any, name: str) -> List[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return list(data.get(name) or [])
    return []


@dataclass
class FleetClient:
    """Wrapper around the Fleet REST API.

    ``connection`` defaults to the process-wide connection established by
    ``connection.connect()``.
    """

    connection: Optional[Connection] = None
    per_page: int = 100

    def _resolve_connection(self) -> Connection:
        return self.connection or get_active_connection()

    # ------------------------------------------------------------------
    # Request engine
    # ------------------------------------------------------------------

    async def execute(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[Any] = None,
        params: Optional[Any] = None,
        follow_pagination: bool = False,
    ) -> Any:
        """Issue one logical API call and return the parsed JSON body.

        With ``follow_pagination`` on a GET, pages 0, 1, 2, ... are requested
        until ``meta.has_next_results`` is false and the concatenated items
        are returned instead.
        """
        if hasattr(body, "to_body"):
            body = body.to_body()
        request = Request(
            endpoint=endpoint,
            method=method.upper(),
            body=body,
            params=_as_params(params),
            follow_pagination=follow_pagination,
        )
        return await self.send(request)

    async def send(self, request: Request) -> Any:
        connection = self._resolve_connection()

        if request.method not in METHODS:
            raise ValueError(f"Unsupported HTTP method '{request.method}'.")

        if request.follow_pagination and request.method == "GET":
            return await self._paginate(connection, request)

        return await self._request(
            connection, request.method, request.endpoint, request.params, request.body
        )

    async def _paginate(self, connection: Connection, request: Request) -> Any:
        items: List[Any] = []
        page_index = 0

        while True:
            params = dict(request.params)
            params["page"] = str(page_index)
            data = await self._request(connection, "GET", request.endpoint, params, None)

            page = parse_page(data)
            if page is None:
                # Not a paginated object: the first answer is the whole answer.
                if page_index == 0:
                    return data
                if not isinstance(data, list):
                    raise RuntimeError(
                        f"Unexpected response for '{request.endpoint}' page {page_index}: "
                        "expected a paginated listing."
                    )
                items.extend(data)
                return items

            items.extend(page.items)
            if not page.has_more:
                return items
            page_index += 1

    async def _request(
        self,
        connection: Connection,
        method: str,
        endpoint: str,
        params: Mapping[str, str],
        body: Optional[Any],
    ) -> Any:
        url = build_url(connection, endpoint, params)
        logger.debug("Fleet API %s %s", method, url)

        try:
            if body is None:
                response = await connection.session.request(
                    method, url, headers=connection.headers
                )
            else:
                response = await connection.session.request(
                    method, url, headers=connection.headers, json=body
                )
        except httpx.RequestError as exc:
            error = classify(exc)
            logger.debug("Fleet API %s %s failed: %s", method, url, error.kind.value)
            raise error from exc

        if not response.is_success:
            error = classify(response)
            logger.debug(
                "Fleet API %s %s returned HTTP %s (%s)",
                method,
                url,
                response.status_code,
                error.kind.value,
            )
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def get_me(self) -> Dict[str, Any]:
        data = await self.execute("me")
        return (data.get("user") or {}) if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Hosts
    # ------------------------------------------------------------------

    async def list_hosts(self, params: Optional[HostListParams] = None) -> List[Dict[str, Any]]:
        """List hosts, optionally restricted to members of a label."""
        params = params or HostListParams()
        if params.per_page is None:
            params = replace(params, per_page=self.per_page)

        endpoint = "hosts"
        if params.label_id is not None:
            endpoint = f"labels/{params.label_id}/hosts"

        data = await self.execute(endpoint, params=params, follow_pagination=True)
        return _items(data, "hosts")

    async def get_host(self, host_id: int) -> Dict[str, Any]:
        data = await self.execute(f"hosts/{int(host_id)}")
        return (data.get("host") or {}) if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    async def list_policies(
        self, params: Optional[PolicyListParams] = None
    ) -> List[Dict[str, Any]]:
        """List global policies, or a team's policies when team_id is set."""
        params = params or PolicyListParams()
        if params.per_page is None:
            params = replace(params, per_page=self.per_page)

        endpoint = "global/policies"
        if params.team_id is not None:
            endpoint = f"teams/{params.team_id}/policies"

        data = await self.execute(endpoint, params=params, follow_pagination=True)
        return _items(data, "policies")

    async def get_policy(self, policy_id: int) -> Dict[str, Any]:
        data = await self.execute(f"global/policies/{int(policy_id)}")
        return (data.get("policy") or {}) if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_queries(
        self, params: Optional[QueryListParams] = None
    ) -> List[Dict[str, Any]]:
        params = params or QueryListParams()
        if params.per_page is None:
            params = replace(params, per_page=self.per_page)
        data = await self.execute("queries", params=params, follow_pagination=True)
        return _items(data, "queries")

    async def get_query(self, query_id: int) -> Dict[str, Any]:
        data = await self.execute(f"queries/{int(query_id)}")
        return (data.get("query") or {}) if isinstance(data, dict) else {}

    async def create_query(self, body: CreateQueryBody) -> Dict[str, Any]:
        data = await self.execute("queries", method="POST", body=body)
        if not isinstance(data, dict) or not isinstance(data.get("query"), dict):
            raise RuntimeError(
                "Unexpected response when creating query "
                f"'{body.name}': expected a 'query' object, got {type(data).__name__}."
            )
        return data["query"]

    async def delete_query(self, query_id: int) -> None:
        await self.execute(f"queries/id/{int(query_id)}", method="DELETE")

    # ------------------------------------------------------------------
    # Software & labels
    # ------------------------------------------------------------------

    async def list_software(
        self, params: Optional[SoftwareListParams] = None
    ) -> List[Dict[str, Any]]:
        params = params or SoftwareListParams()
        if params.per_page is None:
            params = replace(params, per_page=self.per_page)
        data = await self.execute("software", params=params, follow_pagination=True)
        return _items(data, "software")

    async def list_labels(self) -> List[Dict[str, Any]]:
        data = await self.execute("labels", follow_pagination=True)
        return _items(data, "labels")
