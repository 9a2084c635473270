"""
MCP Tools Package.

This package contains all MCP tool definitions organized by category:
- auth: Privy authentication and auth state
- platforms: Platform catalogue, linking, revalidation and portfolio access

Each module provides a register_*_tools() function to register tools with FastMCP.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastmcp import FastMCP

from luxbridge.tools.auth import register_auth_tools
from luxbridge.tools.platforms import register_platform_tools

logger = logging.getLogger(__name__)


def register_tools(mcp: "FastMCP") -> None:
    """
    Register all MCP tools with the FastMCP instance.

    Args:
        mcp: FastMCP instance to register tools with
    """
    logger.info("Registering all MCP tools...")

    register_auth_tools(mcp)
    register_platform_tools(mcp)

    logger.info("All MCP tools registered successfully")


__all__ = [
    "register_auth_tools",
    "register_platform_tools",
    "register_tools",
]
