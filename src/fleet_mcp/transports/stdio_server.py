# Fleet MCP Server
# File: transports/stdio_server.py
# Version: v1

"""STDIO entrypoint for the Fleet MCP server.

This is the script behind the ``fleet-mcp`` console command. It creates a
FastMCP server, registers the Fleet tools and runs the stdio transport.
"""

from __future__ import annotations

import logging
import os

from mcp.server.fastmcp import FastMCP

from ..tools import register_all_tools


def main() -> None:
    """Synchronous entrypoint for console_scripts."""
    # stdout carries the MCP protocol, so logs go to stderr.
    logging.basicConfig(
        level=os.getenv("FLEET_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    mcp = FastMCP("fleet-mcp")
    register_all_tools(mcp)
    mcp.run()


if __name__ == "__main__":
    main()
