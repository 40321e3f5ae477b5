# Fleet MCP Server
# File: tests/test_config.py
# Version: v1

from __future__ import annotations

from fleet_mcp.config import FleetConfig


def test_from_env_reads_connection_settings(monkeypatch) -> None:
    monkeypatch.setenv("FLEET_URL", " https://fleet.example.com ")
    monkeypatch.setenv("FLEET_API_TOKEN", "abc123")
    monkeypatch.setenv("FLEET_VERIFY_TLS", "no")

    cfg = FleetConfig.from_env()

    assert cfg.base_url == "https://fleet.example.com"
    assert cfg.api_token == "abc123"
    assert cfg.verify_tls is False
    assert cfg.has_credentials is True


def test_defaults_match_campaign_polling_reference() -> None:
    cfg = FleetConfig.from_env()
    assert cfg.poll_interval_seconds == 2
    assert cfg.max_wait_seconds == 25
    assert cfg.timeout_seconds == 30
    assert cfg.verify_tls is True


def test_int_settings_clamp_and_fall_back(monkeypatch) -> None:
    monkeypatch.setenv("FLEET_PER_PAGE", "0")
    monkeypatch.setenv("FLEET_MAX_WAIT_SECONDS", "999999")
    monkeypatch.setenv("FLEET_TIMEOUT_SECONDS", "not-a-number")

    cfg = FleetConfig.from_env()

    assert cfg.per_page == 1
    assert cfg.max_wait_seconds == 3600
    assert cfg.timeout_seconds == 30


def test_email_and_password_count_as_credentials(monkeypatch) -> None:
    monkeypatch.setenv("FLEET_EMAIL", "admin@example.com")
    assert FleetConfig.from_env().has_credentials is False

    monkeypatch.setenv("FLEET_PASSWORD", "hunter2")
    assert FleetConfig.from_env().has_credentials is True
