# Fleet MCP Server
# File: queries.py
# Version: v2
"""Query execution against Fleet-managed hosts.

Two execution modes are supported:

- **Saved-query run** (``run_saved_query``): one blocking POST to
  ``queries/<id>/run``. Fleet waits out its own response window and replies
  with per-host rows and errors. Ad-hoc SQL uses this mode through a
  temporary saved query (``run_adhoc_query``) that is always deleted again.
- **Campaign** (``run_live_query``): POST to ``queries/run`` starts a live
  query campaign, which is optionally polled until it finishes or the wait
  deadline elapses. A deadline is not an error: the last snapshot is
  returned with ``partial=True``.

``invoke_query`` picks the mode from the caller's inputs.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from .client import FleetClient
from .errors import FleetApiError, NoTargetsError, NotFoundError
from .models import (
    Campaign,
    CampaignRunResult,
    QueryRunResult,
    TemporaryQuery,
    partition_host_entries,
)
from .params import CreateQueryBody, LiveQueryBody, RunSavedQueryBody

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_WAIT_SECONDS = 25.0

TEMPORARY_QUERY_PREFIX = "fleet-mcp-tmp"


def _now() -> float:
    return time.monotonic()


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


def temporary_query_name() -> str:
    """Unique name for a temporary query: UTC timestamp plus random suffix."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
    return f"{TEMPORARY_QUERY_PREFIX}-{stamp}-{secrets.token_hex(4)}"


# ---------------------------------------------------------------------------
# Temporary query lifecycle
# ---------------------------------------------------------------------------


async def _delete_temporary_query(client: FleetClient, tmp: TemporaryQuery) -> None:
    try:
        await client.delete_query(tmp.id)
    except NotFoundError:
        logger.debug("Temporary query %s was already removed.", tmp.id)
    except Exception as exc:  # noqa: BLE001
        tmp.cleanup_warning = (
            f"Failed to delete temporary query '{tmp.name}' (id {tmp.id}): {exc}"
        )
        logger.warning(tmp.cleanup_warning)
    else:
        logger.debug("Deleted temporary query %s (%s).", tmp.id, tmp.name)


@asynccontextmanager
async def temporary_query(client: FleetClient, sql: str) -> AsyncIterator[TemporaryQuery]:
    """Create a saved query for one ad-hoc run and delete it on exit.

    A failed create raises and leaves nothing behind. The delete runs exactly
    once however the body exits.
    """
    name = temporary_query_name()
    created = await client.create_query(
        CreateQueryBody(
            name=name,
            query=sql,
            description="Temporary query created for a single ad-hoc run.",
        )
    )
    tmp = TemporaryQuery(id=int(created["id"]), name=name, sql=sql)
    logger.debug("Created temporary query %s (%s).", tmp.id, tmp.name)

    try:
        yield tmp
    finally:
        await _delete_temporary_query(client, tmp)


# ---------------------------------------------------------------------------
# Saved-query run (synchronous)
# ---------------------------------------------------------------------------


def _host_id_list(host_ids: Optional[Sequence[int]]) -> List[int]:
    return [int(h) for h in (host_ids or [])]


async def run_saved_query(
    client: FleetClient,
    query_id: int,
    host_ids: Sequence[int],
) -> QueryRunResult:
    """Run a saved query against explicit hosts and wait for the results."""
    targets = _host_id_list(host_ids)
    if not targets:
        raise NoTargetsError("At least one host id is required to run a query.")

    data = await client.execute(
        f"queries/{int(query_id)}/run",
        method="POST",
        body=RunSavedQueryBody(host_ids=targets),
    )
    if not isinstance(data, dict):
        data = {}

    results, errors = partition_host_entries(data.get("results"))
    targeted = data.get("targeted_host_count")
    responded = data.get("responded_host_count")

    return QueryRunResult(
        query_id=int(data.get("query_id") or query_id),
        targeted_host_count=int(targeted if targeted is not None else len(targets)),
        responded_host_count=int(
            responded if responded is not None else len(results) + len(errors)
        ),
        results=results,
        errors=errors,
    )


async def run_adhoc_query(
    client: FleetClient,
    sql: str,
    host_ids: Sequence[int],
) -> QueryRunResult:
    """Run SQL against explicit hosts through a temporary saved query."""
    if not _host_id_list(host_ids):
        raise NoTargetsError("At least one host id is required to run a query.")

    async with temporary_query(client, sql) as tmp:
        result = await run_saved_query(client, tmp.id, host_ids)

    if tmp.cleanup_warning:
        result.warnings.append(tmp.cleanup_warning)
    return result


# ---------------------------------------------------------------------------
# Campaign run (fire-and-poll)
# ---------------------------------------------------------------------------


async def get_campaign_status(client: FleetClient, campaign_id: int) -> CampaignRunResult:
    """Fetch one snapshot of a live query campaign."""
    data = await client.execute(f"queries/campaigns/{int(campaign_id)}")
    if not isinstance(data, dict) or not isinstance(data.get("campaign"), dict):
        raise RuntimeError(
            f"Unexpected response for campaign {campaign_id}: expected a 'campaign' object."
        )

    try:
        campaign = Campaign.from_api(data["campaign"])
    except (KeyError, TypeError, ValueError) as exc:
        raise RuntimeError(
            f"Unexpected response for campaign {campaign_id}: missing or invalid campaign id."
        ) from exc

    results, errors = partition_host_entries(data.get("results"))
    more_results, more_errors = partition_host_entries(data.get("errors"))
    return CampaignRunResult(
        campaign=campaign,
        results=results + more_results,
        errors=errors + more_errors,
    )


async def _wait_for_campaign(
    client: FleetClient,
    campaign: Campaign,
    max_wait_seconds: float,
    poll_interval_seconds: float,
) -> CampaignRunResult:
    deadline = _now() + max_wait_seconds
    latest: Optional[CampaignRunResult] = None

    while _now() < deadline:
        await _sleep(poll_interval_seconds)
        try:
            latest = await get_campaign_status(client, campaign.id)
        except (FleetApiError, RuntimeError) as exc:
            logger.warning("Polling campaign %s failed, will retry: %s", campaign.id, exc)
            continue

        if latest.finished:
            latest.waited = True
            return latest

    # Deadline reached: one last fetch for whatever the campaign has so far.
    try:
        latest = await get_campaign_status(client, campaign.id)
    except (FleetApiError, RuntimeError) as exc:
        logger.warning("Final status fetch for campaign %s failed: %s", campaign.id, exc)

    if latest is None:
        latest = CampaignRunResult(campaign=campaign)
    latest.waited = True
    latest.partial = not latest.finished
    if latest.partial:
        latest.warnings.append(
            f"Campaign {campaign.id} did not finish within {max_wait_seconds:g} seconds; "
            "results are partial."
        )
    return latest


async def run_live_query(
    client: FleetClient,
    sql: Optional[str] = None,
    query_id: Optional[int] = None,
    host_ids: Sequence[int] = (),
    label_ids: Sequence[int] = (),
    wait: bool = True,
    max_wait_seconds: Optional[float] = None,
    poll_interval_seconds: Optional[float] = None,
) -> CampaignRunResult:
    """Start a live query campaign and optionally wait for it to finish."""
    if (sql is None) == (query_id is None):
        raise ValueError("Provide exactly one of 'sql' or 'query_id'.")

    hosts = _host_id_list(host_ids)
    labels = [int(label) for label in label_ids or []]
    if not hosts and not labels:
        raise NoTargetsError("At least one host id or label id is required to run a query.")

    data = await client.execute(
        "queries/run",
        method="POST",
        body=LiveQueryBody(query=sql, query_id=query_id, host_ids=hosts, label_ids=labels),
    )

    raw_campaign = data.get("campaign") if isinstance(data, dict) else None
    if not isinstance(raw_campaign, dict) or raw_campaign.get("id") is None:
        message = "Live query response did not contain a campaign id; not polling."
        logger.warning(message)
        return CampaignRunResult(campaign=None, raw=data, warnings=[message])

    campaign = Campaign.from_api(raw_campaign)
    logger.info(
        "Started campaign %s targeting %d host(s) and %d label(s).",
        campaign.id,
        len(hosts),
        len(labels),
    )

    if not wait:
        return CampaignRunResult(campaign=campaign)

    return await _wait_for_campaign(
        client,
        campaign,
        max_wait_seconds=DEFAULT_MAX_WAIT_SECONDS if max_wait_seconds is None else max_wait_seconds,
        poll_interval_seconds=poll_interval_seconds or DEFAULT_POLL_INTERVAL_SECONDS,
    )


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


async def invoke_query(
    client: FleetClient,
    sql: Optional[str] = None,
    query_id: Optional[int] = None,
    host_ids: Sequence[int] = (),
    label_ids: Sequence[int] = (),
    wait_synchronously: bool = True,
    wait: bool = True,
    max_wait_seconds: Optional[float] = None,
    poll_interval_seconds: Optional[float] = None,
) -> Any:
    """Run a query the way its targets require.

    Label targets, or ``wait_synchronously=False``, use a campaign. Otherwise
    a saved query runs directly and ad-hoc SQL runs through a temporary query.
    """
    if (sql is None) == (query_id is None):
        raise ValueError("Provide exactly one of 'sql' or 'query_id'.")
    if not host_ids and not label_ids:
        raise NoTargetsError("At least one host id or label id is required to run a query.")

    if label_ids or not wait_synchronously:
        return await run_live_query(
            client,
            sql=sql,
            query_id=query_id,
            host_ids=host_ids,
            label_ids=label_ids,
            wait=wait,
            max_wait_seconds=max_wait_seconds,
            poll_interval_seconds=poll_interval_seconds,
        )

    if query_id is not None:
        return await run_saved_query(client, query_id, host_ids)
    return await run_adhoc_query(client, sql, host_ids)


def summarize(result: Any) -> Dict[str, Any]:
    """JSON-friendly view of either result type."""
    if isinstance(result, QueryRunResult):
        mode = "saved_query_run"
    else:
        mode = "campaign"
    return {"mode": mode, **result.to_dict()}
