# Fleet MCP Server
# File: tests/test_sanity.py
# Version: v2

"""Basic sanity tests for the package scaffolding."""

import fleet_mcp
from fleet_mcp.client import FleetClient
from fleet_mcp.config import FleetConfig
from fleet_mcp.tools import tasks


def test_version_resolves() -> None:
    assert isinstance(fleet_mcp.__version__, str)
    assert fleet_mcp.__version__


def test_config_from_env_minimal() -> None:
    config = FleetConfig.from_env()
    assert config is not None
    assert config.base_url is None
    assert config.has_credentials is False


def test_make_client_uses_configured_page_size(monkeypatch) -> None:
    monkeypatch.setenv("FLEET_PER_PAGE", "250")
    client = tasks._make_client()
    assert isinstance(client, FleetClient)
    assert client.per_page == 250
    assert client.connection is None
