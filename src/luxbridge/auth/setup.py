"""
OAuth2 and linking route registration for FastMCP server.

This module registers the handlers from ``auth.routes`` with FastMCP,
using closure adapters that look up the application context per request.
Routes are registered at import time while the context only exists once
``main()`` has initialized it, so the adapters never capture it directly.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Optional

from starlette.responses import JSONResponse

from luxbridge.core.logging import logger

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from luxbridge.core.context import LuxBridgeContext

ContextProvider = Callable[[], Optional["LuxBridgeContext"]]


def setup_oauth2_routes(mcp: "FastMCP", context_provider: ContextProvider) -> None:
    """
    Register OAuth2, linking and health endpoints with FastMCP server.

    Registers:
    - /.well-known/oauth-authorization-server (RFC 8414)
    - /oauth/register (RFC 7591 - Dynamic Client Registration)
    - /oauth/store-auth-code, /oauth/verify-auth-code, /oauth/complete
    - /oauth/token (Token exchange)
    - /auth/platforms/{platform}/complete (Platform credential login)
    - /health

    Args:
        mcp: FastMCP server instance
        context_provider: Returns the current application context, or None
            before startup has finished

    Example:
        >>> from luxbridge.core.context import get_app_context
        >>> setup_oauth2_routes(mcp, get_app_context)
    """
    from luxbridge.auth import routes

    def bind(handler):
        async def endpoint(request):
            context = context_provider()
            if context is None:
                return JSONResponse(
                    {
                        "error": "temporarily_unavailable",
                        "error_description": "Server is starting up",
                    },
                    status_code=503,
                )
            return await handler(request, context)

        endpoint.__name__ = handler.__name__
        endpoint.__doc__ = handler.__doc__
        return endpoint

    route_table = [
        ("/.well-known/oauth-authorization-server", "GET", routes.authorization_server_metadata),
        ("/oauth/register", "POST", routes.register_client),
        ("/oauth/store-auth-code", "POST", routes.store_auth_code),
        ("/oauth/verify-auth-code", "POST", routes.verify_auth_code),
        ("/oauth/complete", "POST", routes.complete_authorization),
        ("/oauth/token", "POST", routes.token_endpoint),
        ("/auth/platforms/{platform}/complete", "POST", routes.platform_login_complete),
        ("/health", "GET", routes.health_check),
    ]
    for path, method, handler in route_table:
        mcp.custom_route(path, methods=[method])(bind(handler))

    logger.info(f"✓ OAuth2 endpoints registered ({len(route_table)} routes)")
