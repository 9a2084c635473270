"""
Authentication tools for MCP server.

This module contains the identity-facing MCP tools:
- authenticate_luxbridge_user: Open a session from a Privy identity token
- get_auth_state: Describe the caller's bridge token, identity and session
"""

import json
import logging
from typing import TYPE_CHECKING, Any

from fastmcp.server.dependencies import get_http_request

if TYPE_CHECKING:
    from fastmcp import FastMCP

from luxbridge.auth.models import AccessToken
from luxbridge.core import MCPToolError, track_request
from luxbridge.core.context import require_app_context
from luxbridge.core.exceptions import ConfigurationError, LuxBridgeError

logger = logging.getLogger(__name__)


def current_access_token() -> AccessToken | None:
    """Bridge token resolved by the bearer middleware for this HTTP request, if any."""
    try:
        request = get_http_request()
    except RuntimeError:
        # stdio transport: no HTTP request behind the tool call
        return None
    return getattr(request.state, "access_token", None)


def tool_error(error: str, action: str | None = None, **extra: Any) -> str:
    """JSON payload for failures the user can fix by taking ``action``."""
    payload: dict[str, Any] = {"success": False, "error": error}
    if action:
        payload["action"] = action
    payload.update(extra)
    return json.dumps(payload, indent=2)


SESSION_EXPIRED_ACTION = (
    "Authenticate again with authenticate_luxbridge_user to start a new session"
)


def register_auth_tools(mcp: "FastMCP") -> None:
    """
    Register authentication MCP tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("authenticate_luxbridge_user")
    async def authenticate_luxbridge_user(privy_token: str) -> str:
        """
        Authenticate with a Privy identity token and open a LuxBridge session.

        The session id returned here is what the platform tools expect. It
        stays valid while it is in use and can hold one linked account per
        supported platform.

        Args:
            privy_token: Identity token issued by Privy after login

        Returns:
            JSON string with the new session and the user's identity
        """
        context = require_app_context()
        try:
            identity = await context.identity_verifier.verify(privy_token)
            if identity is None:
                return tool_error(
                    "Invalid Privy token",
                    action="Log in with Privy again and pass the fresh identity token",
                )

            lux_user = identity.to_lux_user()
            existing = await context.identities.get_user(identity.privy_id)
            if existing is not None:
                lux_user.created_at = existing.created_at
            await context.identities.store_user(lux_user)
            await context.identities.resolve_identity(
                identity.privy_id, identity.email, lux_user.name
            )

            session_id = await context.sessions.create_session(lux_user.user_id, privy_token)
            summary = await context.sessions.summarize(
                session_id, email=lux_user.email, name=lux_user.name
            )
        except ConfigurationError as e:
            logger.exception("Identity verification is not configured")
            msg = f"Authentication unavailable: {e!s}"
            raise MCPToolError(msg) from e
        except LuxBridgeError as e:
            logger.exception("Error opening session")
            msg = f"Authentication failed: {e!s}"
            raise MCPToolError(msg) from e

        return json.dumps(
            {
                "success": True,
                "message": "LuxBridge authentication successful",
                "session_id": session_id,
                "session_expires_in": context.settings.session_ttl,
                "session": summary.model_dump(mode="json"),
                "next_steps": "Use generate_platform_auth_links to link platform accounts",
            },
            indent=2,
        )

    @mcp.tool()
    @track_request("get_auth_state")
    async def get_auth_state() -> str:
        """
        Report the current authentication state.

        Describes the bridge access token used for this request, the identity
        behind it and its session, including which platforms are linked.

        Returns:
            JSON string with ``authenticated`` and, when true, user, session and token details
        """
        context = require_app_context()
        access_token = current_access_token()
        if access_token is None:
            return json.dumps(
                {
                    "authenticated": False,
                    "message": "No bridge access token on this request",
                },
                indent=2,
            )

        try:
            user_data = access_token.user_data
            lux_user = (
                await context.identities.get_user(user_data.privy_user_id)
                if user_data
                else None
            )

            session = None
            if access_token.session_id:
                session = await context.sessions.get_session(access_token.session_id)
            if session is None:
                session = await context.sessions.get_active_user_session(access_token.user_id)

            summary = None
            if session is not None:
                summary = await context.sessions.summarize(
                    session.session_id,
                    email=lux_user.email if lux_user else None,
                    name=lux_user.name if lux_user else None,
                )
        except LuxBridgeError as e:
            logger.exception("Error reading auth state")
            msg = f"Failed to read auth state: {e!s}"
            raise MCPToolError(msg) from e

        return json.dumps(
            {
                "authenticated": True,
                "user": {
                    "userId": access_token.user_id,
                    "email": lux_user.email if lux_user else (user_data and user_data.email),
                    "name": lux_user.name if lux_user else None,
                    "walletAddress": lux_user.wallet_address if lux_user else None,
                    "privyId": user_data.privy_user_id if user_data else None,
                },
                "session": summary.model_dump(mode="json") if summary else None,
                "oauth": {
                    "clientId": access_token.client_id,
                    "tokenType": "Bearer",
                    "expiresAt": access_token.expires_at.isoformat(),
                },
            },
            indent=2,
        )
