"""
LuxBridge MCP Server - one OAuth identity bridged to many investment platform accounts.

This package provides MCP (Model Context Protocol) tools and OAuth endpoints
that let an AI assistant act on a user's linked platform accounts through
a single authenticated session.
"""

__version__ = "0.1.0"
