"""Core functionality for the LuxBridge MCP server.

``core.context`` wires every component together and is imported directly,
not re-exported here.
"""

from .constants import HTTP_OK, HTTP_UNAUTHORIZED, PLATFORM_INFO, Platform
from .decorators import track_request
from .exceptions import LuxBridgeError, MCPToolError
from .logging import configure_logging, logger

__all__ = [
    "HTTP_OK",
    "HTTP_UNAUTHORIZED",
    "LuxBridgeError",
    "MCPToolError",
    "PLATFORM_INFO",
    "Platform",
    "configure_logging",
    "logger",
    "track_request",
]
