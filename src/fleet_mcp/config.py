# Fleet MCP Server
# File: config.py
# Version: v2

"""Configuration loading for the Fleet MCP Server."""

from __future__ import annotations

from dataclasses import dataclass
import os


def _parse_bool_env(name: str, default: bool = False) -> bool:
    """Parse a boolean-like environment variable.

    Accepts 1/0, true/false, yes/no, on/off (case-insensitive).
    """
    val = os.getenv(name)
    if val is None or not str(val).strip():
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _parse_int_env(
    name: str,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    """Parse an int environment variable with clamping and safe fallback."""
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        value = int(default)
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = int(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value

    return value


def _env_str(name: str) -> str | None:
    val = os.getenv(name)
    if val is None:
        return None
    val = val.strip()
    return val or None


@dataclass
class FleetConfig:
    """Configuration values required to talk to a Fleet server.

    Authentication uses ``api_token`` when set; otherwise ``email`` and
    ``password`` are exchanged for a session token at connect time.
    """

    base_url: str | None
    api_token: str | None = None
    email: str | None = None
    password: str | None = None

    verify_tls: bool = True
    timeout_seconds: int = 30

    # Listing page size sent as per_page by the resource helpers
    per_page: int = 100

    # Campaign polling
    poll_interval_seconds: int = 2
    max_wait_seconds: int = 25

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_token or (self.email and self.password))

    @classmethod
    def from_env(cls) -> "FleetConfig":
        """Create configuration from environment variables."""
        return cls(
            base_url=_env_str("FLEET_URL"),
            api_token=_env_str("FLEET_API_TOKEN"),
            email=_env_str("FLEET_EMAIL"),
            password=os.getenv("FLEET_PASSWORD") or None,
            verify_tls=_parse_bool_env("FLEET_VERIFY_TLS", default=True),
            timeout_seconds=_parse_int_env(
                "FLEET_TIMEOUT_SECONDS", default=30, min_value=1, max_value=600
            ),
            per_page=_parse_int_env(
                "FLEET_PER_PAGE", default=100, min_value=1, max_value=10000
            ),
            poll_interval_seconds=_parse_int_env(
                "FLEET_POLL_INTERVAL_SECONDS", default=2, min_value=1, max_value=60
            ),
            max_wait_seconds=_parse_int_env(
                "FLEET_MAX_WAIT_SECONDS", default=25, min_value=0, max_value=3600
            ),
        )
