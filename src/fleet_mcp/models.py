# Fleet MCP Server
# File: models.py
# Version: v1

"""Domain models used by the Fleet MCP server."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class TemporaryQuery:
    """A saved query created only to back one ad-hoc run."""

    id: int
    name: str
    sql: str
    created_for_run: bool = True

    # Set when the delete on exit failed for a reason other than NotFound.
    cleanup_warning: Optional[str] = None


@dataclass
class HostResult:
    host_id: int
    rows: List[Dict[str, Any]]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> Dict[str, Any]:
        return {"host_id": self.host_id, "rows": self.rows, "row_count": self.row_count}


@dataclass
class HostError:
    host_id: int
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"host_id": self.host_id, "error": self.error}


def partition_host_entries(entries: Any) -> tuple[List[HostResult], List[HostError]]:
    """Split raw per-host entries on the presence of an ``error`` field."""
    results: List[HostResult] = []
    errors: List[HostError] = []
    if not isinstance(entries, list):
        return results, errors

    for item in entries:
        if not isinstance(item, dict):
            continue
        host_id = item.get("host_id", item.get("host"))
        if isinstance(host_id, dict):
            host_id = host_id.get("id")
        error = item.get("error")
        if error:
            errors.append(HostError(host_id=host_id, error=str(error)))
        else:
            rows = item.get("rows") or []
            results.append(HostResult(host_id=host_id, rows=list(rows)))
    return results, errors


@dataclass
class QueryRunResult:
    """Outcome of a synchronous saved-query run."""

    query_id: int
    targeted_host_count: int
    responded_host_count: int
    results: List[HostResult] = field(default_factory=list)
    errors: List[HostError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def response_rate(self) -> float:
        """Percentage of targeted hosts that responded, to 2 decimal places."""
        if not self.targeted_host_count:
            return 0.0
        return round(self.responded_host_count / self.targeted_host_count * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query_id": self.query_id,
            "targeted_host_count": self.targeted_host_count,
            "responded_host_count": self.responded_host_count,
            "response_rate": self.response_rate,
            "results": [r.to_dict() for r in self.results],
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
        }


class CampaignStatus(str, Enum):
    RUNNING = "running"
    FINISHED = "finished"

    @classmethod
    def parse(cls, raw: Any) -> "CampaignStatus":
        # Fleet reports campaign status either by name or as its numeric state
        # (0 waiting, 1 running, 2 finished).
        if isinstance(raw, str) and raw.strip().lower() == "finished":
            return cls.FINISHED
        if isinstance(raw, int) and not isinstance(raw, bool) and raw == 2:
            return cls.FINISHED
        return cls.RUNNING


@dataclass
class CampaignTotals:
    count: int = 0
    online: int = 0
    offline: int = 0
    missing_in_action: int = 0

    @classmethod
    def from_api(cls, raw: Any) -> "CampaignTotals":
        if not isinstance(raw, dict):
            return cls()
        return cls(
            count=int(raw.get("count") or 0),
            online=int(raw.get("online") or 0),
            offline=int(raw.get("offline") or 0),
            missing_in_action=int(raw.get("missing_in_action") or 0),
        )


@dataclass
class Campaign:
    id: int
    status: CampaignStatus = CampaignStatus.RUNNING
    totals: CampaignTotals = field(default_factory=CampaignTotals)

    # Raw JSON payload from the API, for debugging / advanced use.
    raw: Optional[Dict[str, Any]] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Campaign":
        return cls(
            id=int(raw["id"]),
            status=CampaignStatus.parse(raw.get("status")),
            totals=CampaignTotals.from_api(raw.get("totals")),
            raw=raw,
        )

    @property
    def finished(self) -> bool:
        return self.status is CampaignStatus.FINISHED


@dataclass
class CampaignRunResult:
    """Outcome of a fire-and-poll campaign run.

    ``partial`` is True when the wait deadline elapsed before the campaign
    finished; the data is then a best-effort snapshot.
    """

    campaign: Optional[Campaign]
    results: List[HostResult] = field(default_factory=list)
    errors: List[HostError] = field(default_factory=list)
    partial: bool = False
    waited: bool = False

    # Set when the run response could not be interpreted as a campaign.
    raw: Optional[Any] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def totals(self) -> Optional[CampaignTotals]:
        return self.campaign.totals if self.campaign else None

    @property
    def finished(self) -> bool:
        return bool(self.campaign and self.campaign.finished)

    def to_dict(self) -> Dict[str, Any]:
        campaign = None
        if self.campaign is not None:
            campaign = {"id": self.campaign.id, "status": self.campaign.status.value}
        return {
            "campaign": campaign,
            "finished": self.finished,
            "partial": self.partial,
            "totals": asdict(self.totals) if self.totals else None,
            "results": [r.to_dict() for r in self.results],
            "errors": [e.to_dict() for e in self.errors],
            "raw": self.raw,
            "warnings": list(self.warnings),
        }
