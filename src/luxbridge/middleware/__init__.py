"""HTTP middleware for the LuxBridge MCP server."""

from .setup import setup_middleware

__all__ = ["setup_middleware"]
