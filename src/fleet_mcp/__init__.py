# Fleet MCP Server
# File: __init__.py
# Version: v1

"""Top-level package for the Fleet MCP Server."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]


def _resolve_version() -> str:
    """Resolve installed distribution version.

    Falls back to a default when running from source without an installed
    distribution.
    """
    try:
        return version("mcp-fleet-server")
    except PackageNotFoundError:
        return "0.1.0"


__version__ = _resolve_version()
