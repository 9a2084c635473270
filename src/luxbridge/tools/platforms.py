"""
Platform tools for MCP server.

This module contains the MCP tools that work on a session's platform links:
- list_supported_platforms: Platform catalogue with link status
- generate_platform_auth_links: Links the user opens to connect platforms
- get_linked_platforms: Per-platform link details and summary counts
- get_user_portfolio_cross_platform: Portfolio through the call proxy
- revalidate_platform_links: Probe every active link
- unlink_platform: Remove a platform link everywhere
"""

import json
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fastmcp import FastMCP

from luxbridge.core import MCPToolError, track_request
from luxbridge.core.constants import PLATFORM_INFO, Platform
from luxbridge.core.context import require_app_context
from luxbridge.core.exceptions import (
    LuxBridgeError,
    PlatformAuthExpired,
    PlatformCallFailed,
    PlatformNotLinked,
    SessionNotFound,
    UnsupportedPlatform,
)
from luxbridge.platforms.models import LinkStatus

from .auth import SESSION_EXPIRED_ACTION, current_access_token, tool_error

logger = logging.getLogger(__name__)


def relink_action(platform: Platform) -> str:
    return f"Use generate_platform_auth_links with ['{platform}'] to link {platform.display_name}"


def auth_link_url(issuer: str, platform: Platform, session_id: str) -> str:
    return f"{issuer}/auth/{platform.value.replace('_', '-')}?session={session_id}"


def register_platform_tools(mcp: "FastMCP") -> None:
    """
    Register platform MCP tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("list_supported_platforms")
    async def list_supported_platforms(session_id: str | None = None) -> str:
        """
        List the investment platforms LuxBridge can link, with link status.

        Args:
            session_id: Session to report link status for; defaults to the
                session of the bridge token used for this request

        Returns:
            JSON string with the platform catalogue
        """
        context = require_app_context()
        if session_id is None:
            access_token = current_access_token()
            session_id = access_token.session_id if access_token else None

        try:
            session = await context.sessions.get_session(session_id) if session_id else None
        except LuxBridgeError as e:
            logger.exception("Error reading session")
            msg = f"Failed to list platforms: {e!s}"
            raise MCPToolError(msg) from e

        platforms = []
        for platform in Platform:
            link = session.platforms[platform] if session else None
            platforms.append(
                {
                    "platform": platform.value,
                    **PLATFORM_INFO[platform],
                    "isLinked": link is not None,
                    "linkStatus": link.status.value if link else None,
                    "lastUsed": link.last_used_at.isoformat() if link else None,
                }
            )

        return json.dumps(
            {
                "platforms": platforms,
                "totalSupported": len(platforms),
                "linkedCount": sum(1 for p in platforms if p["isLinked"]),
                "sessionId": session.session_id if session else None,
            },
            indent=2,
        )

    @mcp.tool()
    @track_request("generate_platform_auth_links")
    async def generate_platform_auth_links(session_id: str, platforms: list[str]) -> str:
        """
        Generate the links a user opens to connect platform accounts to a session.

        Each link leads to the platform's login page; logging in there links
        the platform account to this session.

        Args:
            session_id: LuxBridge session id from authenticate_luxbridge_user
            platforms: Platform keys (splint_invest, masterworks, realt)

        Returns:
            JSON string with one auth link per platform
        """
        context = require_app_context()
        try:
            requested = [Platform.parse(p) for p in platforms]
        except UnsupportedPlatform as e:
            return tool_error(
                str(e),
                action="Use list_supported_platforms to see valid platform keys",
            )

        try:
            session = await context.sessions.get_session(session_id)
        except LuxBridgeError as e:
            logger.exception("Error reading session")
            msg = f"Failed to generate auth links: {e!s}"
            raise MCPToolError(msg) from e
        if session is None:
            return tool_error("Invalid or expired session", action=SESSION_EXPIRED_ACTION)

        ttl = context.settings.auth_link_ttl
        expires_at = (datetime.now(UTC) + timedelta(seconds=ttl)).isoformat()
        issuer = context.settings.oauth2_issuer or ""
        auth_links = [
            {
                "platform": platform.value,
                "authUrl": auth_link_url(issuer, platform, session_id),
                "expiresAt": expires_at,
                "instructions": f"Click the link to authenticate with {platform.display_name}",
            }
            for platform in dict.fromkeys(requested)
        ]

        return json.dumps(
            {
                "authLinks": auth_links,
                "sessionExpiresAt": session.expires_at.isoformat(),
                "instructions": (
                    "Visit each link to authenticate with the respective platform. "
                    f"Links expire in {ttl // 60} minutes."
                ),
            },
            indent=2,
        )

    @mcp.tool()
    @track_request("get_linked_platforms")
    async def get_linked_platforms(session_id: str) -> str:
        """
        Show the link status of every platform in a session.

        Args:
            session_id: LuxBridge session id

        Returns:
            JSON string with per-platform details and summary counts
        """
        context = require_app_context()
        try:
            session = await context.sessions.get_session(session_id)
        except LuxBridgeError as e:
            logger.exception("Error reading session")
            msg = f"Failed to read linked platforms: {e!s}"
            raise MCPToolError(msg) from e
        if session is None:
            return tool_error("Invalid or expired session", action=SESSION_EXPIRED_ACTION)

        linked: list[dict[str, Any]] = []
        for platform in Platform:
            link = session.platforms[platform]
            entry: dict[str, Any] = {
                "platform": platform.value,
                "platformName": platform.display_name,
                "category": PLATFORM_INFO[platform]["category"],
            }
            if link is None:
                entry["status"] = "not_linked"
                entry["nextStep"] = relink_action(platform)
            else:
                entry.update(link.public_view())
                if not link.is_active:
                    entry["nextStep"] = relink_action(platform)
            linked.append(entry)

        statuses = [entry["status"] for entry in linked]
        return json.dumps(
            {
                "sessionId": session.session_id,
                "linkedPlatforms": linked,
                "summary": {
                    "totalPlatforms": len(Platform),
                    "totalLinked": sum(1 for s in statuses if s != "not_linked"),
                    "activeCount": statuses.count(LinkStatus.ACTIVE.value),
                    "expiredCount": statuses.count(LinkStatus.EXPIRED.value),
                    "invalidCount": statuses.count(LinkStatus.INVALID.value),
                },
            },
            indent=2,
        )

    @mcp.tool()
    @track_request("get_user_portfolio_cross_platform")
    async def get_user_portfolio_cross_platform(session_id: str, platform: str) -> str:
        """
        Fetch the user's portfolio from one linked platform.

        Args:
            session_id: LuxBridge session id
            platform: Platform key (splint_invest, masterworks, realt)

        Returns:
            JSON string with the platform's portfolio and retrieval metadata
        """
        context = require_app_context()
        try:
            target = Platform.parse(platform)
            portfolio = await context.proxy.call(session_id, target, "/portfolio")
            session = await context.sessions.get_session(session_id)
        except UnsupportedPlatform as e:
            return tool_error(
                str(e),
                action="Use list_supported_platforms to see valid platform keys",
            )
        except SessionNotFound:
            return tool_error("Invalid or expired session", action=SESSION_EXPIRED_ACTION)
        except PlatformNotLinked as e:
            return tool_error(str(e), action=relink_action(Platform.parse(e.platform)))
        except PlatformAuthExpired as e:
            return tool_error(
                str(e),
                action=(
                    f"Re-authenticate {Platform.parse(e.platform).display_name} with "
                    f"generate_platform_auth_links; other linked platforms are unaffected"
                ),
            )
        except PlatformCallFailed as e:
            return tool_error(str(e), status_code=e.status_code)
        except LuxBridgeError as e:
            logger.exception("Error retrieving portfolio")
            msg = f"Failed to retrieve portfolio: {e!s}"
            raise MCPToolError(msg) from e

        link = session.platforms[target] if session else None
        return json.dumps(
            {
                "platform": target.value,
                "portfolio": portfolio,
                "metadata": {
                    "retrievedAt": datetime.now(UTC).isoformat(),
                    "platformUserId": link.platform_user_id if link else None,
                    "credentialStatus": link.status.value if link else None,
                },
            },
            indent=2,
        )

    @mcp.tool()
    @track_request("revalidate_platform_links")
    async def revalidate_platform_links(session_id: str) -> str:
        """
        Check with each platform that the user's linked credentials still work.

        Links the platform rejects become expired or invalid and must be
        re-linked.

        Args:
            session_id: LuxBridge session id

        Returns:
            JSON string mapping each linked platform to its status
        """
        context = require_app_context()
        try:
            session = await context.sessions.get_session(session_id)
            if session is None:
                return tool_error("Invalid or expired session", action=SESSION_EXPIRED_ACTION)
            results = await context.links.revalidate_all(session.lux_user_id)
        except LuxBridgeError as e:
            logger.exception("Error revalidating platform links")
            msg = f"Failed to revalidate platform links: {e!s}"
            raise MCPToolError(msg) from e

        needs_relink = [p.value for p, status in results.items() if status != LinkStatus.ACTIVE]
        return json.dumps(
            {
                "results": {p.value: status.value for p, status in results.items()},
                "needsRelink": needs_relink,
                "nextStep": (
                    f"Use generate_platform_auth_links with {needs_relink} to reconnect"
                    if needs_relink
                    else None
                ),
            },
            indent=2,
        )

    @mcp.tool()
    @track_request("unlink_platform")
    async def unlink_platform(session_id: str, platform: str) -> str:
        """
        Remove a platform link from the user and from all of the user's sessions.

        Args:
            session_id: LuxBridge session id
            platform: Platform key to unlink

        Returns:
            JSON string confirming the unlink
        """
        context = require_app_context()
        try:
            target = Platform.parse(platform)
            session = await context.sessions.get_session(session_id)
            if session is None:
                return tool_error("Invalid or expired session", action=SESSION_EXPIRED_ACTION)
            await context.links.delete_link(session.lux_user_id, target)
        except UnsupportedPlatform as e:
            return tool_error(
                str(e),
                action="Use list_supported_platforms to see valid platform keys",
            )
        except LuxBridgeError as e:
            logger.exception("Error unlinking platform")
            msg = f"Failed to unlink platform: {e!s}"
            raise MCPToolError(msg) from e

        return json.dumps(
            {
                "success": True,
                "platform": target.value,
                "message": f"{target.display_name} unlinked",
            },
            indent=2,
        )
