"""
Middleware configuration for the FastMCP server.

HTTP transports always run behind bearer authentication; stdio has no
HTTP boundary and gets no middleware.
"""

from typing import TYPE_CHECKING

from starlette.middleware import Middleware

from luxbridge.core.logging import logger

if TYPE_CHECKING:
    from luxbridge.auth.issuer import OAuthIssuer


def setup_middleware(issuer: "OAuthIssuer") -> list[Middleware]:
    """
    Build the middleware stack for HTTP transports.

    Args:
        issuer: Issuer the bearer middleware resolves tokens against

    Returns:
        List of configured Middleware instances

    Example:
        >>> middleware = setup_middleware(context.issuer)
        >>> await mcp.run_async(transport="streamable-http", middleware=middleware)
    """
    from luxbridge.auth.middleware import BearerAuthMiddleware

    middleware = [Middleware(BearerAuthMiddleware, issuer=issuer)]
    logger.info("✓ Bearer authentication enabled")
    return middleware
