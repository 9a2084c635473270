"""
Bearer authentication middleware for the MCP server.

Every MCP-facing request must carry a bridge access token issued by the
token endpoint. OAuth, account-linking and health endpoints are public.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from luxbridge.core.exceptions import InvalidToken, StoreError

from .issuer import OAuthIssuer

logger = logging.getLogger(__name__)

PUBLIC_PATHS = ("/health",)
PUBLIC_PREFIXES = (
    "/.well-known/oauth-authorization-server",
    "/oauth/",
    "/auth/platforms/",
)


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or any(path.startswith(prefix) for prefix in PUBLIC_PREFIXES)


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """
    Resolve ``Authorization: Bearer <token>`` to a bridge access token.

    On success the token record is stored on ``request.state.access_token``.
    Unknown, expired or missing tokens get a 401; store failures a 503.
    """

    def __init__(self, app, issuer: OAuthIssuer):
        """
        Initialize middleware.

        Args:
            app: ASGI application
            issuer: Issuer used to look up bridge tokens
        """
        super().__init__(app)
        self.issuer = issuer

    async def dispatch(self, request: Request, call_next):
        """Process request with bearer authentication."""
        if is_public_path(request.url.path):
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return self._unauthorized_response("Missing or invalid Authorization header")

        try:
            access_token = await self.issuer.authenticate_bearer(auth_header[7:].strip())
        except InvalidToken as e:
            return self._unauthorized_response(e.description)
        except StoreError as e:
            logger.error("Token lookup failed: %s", e)
            return JSONResponse(
                {"error": "temporarily_unavailable", "error_description": "Token store unavailable"},
                status_code=503,
            )

        request.state.access_token = access_token
        return await call_next(request)

    @staticmethod
    def _unauthorized_response(message: str) -> JSONResponse:
        """Create 401 Unauthorized response with WWW-Authenticate header."""
        return JSONResponse(
            {"error": "invalid_token", "error_description": message},
            status_code=401,
            headers={"WWW-Authenticate": 'Bearer realm="oauth"'},
        )
