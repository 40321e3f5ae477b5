# Fleet MCP Server
# File: params.py
# Version: v1

"""Query-parameter and request-body encoding for the Fleet API.

Each endpoint gets a small dataclass describing its inputs. Field metadata
carries the wire name (``wire``) and whether the field is sent at all
(``exclude``); ``to_params()`` funnels everything through ``encode_params``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional


def wire(name: Optional[str] = None, *, exclude: bool = False, default: Any = None) -> Any:
    """Declare a parameter field with an optional wire name."""
    metadata: Dict[str, Any] = {"exclude": exclude}
    if name:
        metadata["wire"] = name
    return field(default=default, metadata=metadata)


def _normalize(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return _normalize(value.value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(_normalize(v) for v in value)
    if isinstance(value, str):
        return value.strip()
    return str(value)


def encode_params(
    values: Mapping[str, Any],
    rename: Optional[Mapping[str, str]] = None,
    exclude: Iterable[str] = (),
) -> Dict[str, str]:
    """Flatten caller inputs into wire-level query parameters.

    ``None`` values and names listed in ``exclude`` are dropped; ``rename``
    maps input names to wire names.
    """
    rename = rename or {}
    skipped = set(exclude)
    out: Dict[str, str] = {}
    for name, value in values.items():
        if value is None or name in skipped:
            continue
        out[rename.get(name, name)] = _normalize(value)
    return out


class OrderDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class ListParams:
    """Common listing options shared by every Fleet collection endpoint."""

    query: Optional[str] = None
    order_key: Optional[str] = None
    order_direction: Optional[OrderDirection] = None
    per_page: Optional[int] = None

    def to_params(self) -> Dict[str, str]:
        values: Dict[str, Any] = {}
        rename: Dict[str, str] = {}
        exclude: List[str] = []
        for f in fields(self):
            values[f.name] = getattr(self, f.name)
            if f.metadata.get("exclude"):
                exclude.append(f.name)
            if f.metadata.get("wire"):
                rename[f.name] = f.metadata["wire"]
        return encode_params(values, rename=rename, exclude=exclude)


@dataclass
class HostListParams(ListParams):
    status: Optional[str] = None
    team_id: Optional[int] = None
    label_id: Optional[int] = wire(exclude=True)
    policy_id: Optional[int] = None
    policy_response: Optional[str] = None
    software_id: Optional[int] = None
    disable_failing_policies: Optional[bool] = None
    device_mapping: Optional[bool] = None


@dataclass
class PolicyListParams(ListParams):
    team_id: Optional[int] = wire(exclude=True)
    inherited: Optional[bool] = wire("merge_inherited")


@dataclass
class QueryListParams(ListParams):
    team_id: Optional[int] = None
    merge_inherited: Optional[bool] = None


@dataclass
class SoftwareListParams(ListParams):
    team_id: Optional[int] = None
    vulnerable: Optional[bool] = None
    available_for_install: Optional[bool] = None
    min_cvss_score: Optional[float] = None


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


@dataclass
class CreateQueryBody:
    name: str
    query: str
    description: str = ""
    observer_can_run: bool = False
    team_id: Optional[int] = None

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": self.name,
            "query": self.query,
            "description": self.description,
            "observer_can_run": self.observer_can_run,
        }
        if self.team_id is not None:
            body["team_id"] = self.team_id
        return body


@dataclass
class RunSavedQueryBody:
    host_ids: List[int]

    def to_body(self) -> Dict[str, Any]:
        return {"host_ids": list(self.host_ids)}


@dataclass
class LiveQueryBody:
    """Body for a campaign run. Exactly one of query/query_id is sent."""

    query: Optional[str] = None
    query_id: Optional[int] = None
    host_ids: List[int] = field(default_factory=list)
    label_ids: List[int] = field(default_factory=list)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if self.query_id is not None:
            body["query_id"] = self.query_id
        else:
            body["query"] = self.query
        body["selected"] = {
            "hosts": list(self.host_ids),
            "labels": list(self.label_ids),
        }
        return body
