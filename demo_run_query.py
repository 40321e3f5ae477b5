# demo_run_query.py
# Version: v1

r"""
Demo: run an ad-hoc query against a few Fleet hosts through the MCP task
`run_query` and print the per-host results.

Usage (PowerShell):

  $env:FLEET_URL       = "https://fleet.example.com"
  $env:FLEET_API_TOKEN = "<api token>"

  # Defaults ("SELECT * FROM os_version;" on host 1)
  python demo_run_query.py

  # Custom SQL and hosts:
  $env:FLEET_DEMO_SQL   = "SELECT name, version FROM programs LIMIT 5;"
  $env:FLEET_DEMO_HOSTS = "1,2,3"
  python demo_run_query.py

  # Label targets run as a live campaign:
  $env:FLEET_DEMO_LABELS = "6"
  python demo_run_query.py
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import List

from fleet_mcp import connection
from fleet_mcp.tools.tasks import run_query


def _int_list(raw: str | None) -> List[int]:
    if not raw:
        return []
    return [int(part.strip()) for part in raw.split(",") if part.strip()]


SQL = os.environ.get("FLEET_DEMO_SQL", "SELECT * FROM os_version;")
HOSTS = _int_list(os.environ.get("FLEET_DEMO_HOSTS", "1"))
LABELS = _int_list(os.environ.get("FLEET_DEMO_LABELS"))


async def main() -> None:
    print(f"Running {SQL!r} on hosts={HOSTS} labels={LABELS}")
    try:
        out = await run_query(sql=SQL, host_ids=HOSTS, label_ids=LABELS)
    finally:
        await connection.disconnect()

    print(out["summary"])
    print(json.dumps(out["data"], indent=2, default=str))


if __name__ == "__main__":
    asyncio.run(main())
