"""
Authenticated call proxy.

Forwards a request to a platform API with the credential held in the
session's platform slot, and reacts to what the platform says about it.
The proxy never retries; that decision belongs to the caller.
"""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from luxbridge.core.constants import HTTP_UNAUTHORIZED, Platform
from luxbridge.core.exceptions import (
    LuxBridgeError,
    PlatformAuthExpired,
    PlatformCallFailed,
    PlatformNotLinked,
    SessionNotFound,
)
from luxbridge.sessions.manager import SessionManager

from .client import PlatformClient
from .links import PlatformLinkStore
from .models import LinkStatus, PlatformLink

logger = logging.getLogger(__name__)


class AuthenticatedCallProxy:
    """Session-scoped gateway to the platform APIs."""

    def __init__(
        self,
        sessions: SessionManager,
        links: PlatformLinkStore,
        client: PlatformClient,
    ):
        self.sessions = sessions
        self.links = links
        self.client = client

    async def call(
        self,
        session_id: str,
        platform: Platform | str,
        endpoint: str,
        method: str = "GET",
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Call ``endpoint`` on ``platform`` on behalf of the session's user.

        Returns:
            The parsed JSON response body

        Raises:
            SessionNotFound: If the session is missing or expired
            PlatformNotLinked: If the platform slot is empty or not active
            PlatformAuthExpired: If the platform answers 401; every copy still holding
                the rejected credential becomes invalid. Raised even when the
                session expired while the call was in flight.
            PlatformCallFailed: On any other error status, a timeout, or a network error
            StoreError: If session state cannot be read or the 401 cannot be recorded
        """
        platform = Platform.parse(platform)

        session = await self.sessions.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)

        link = session.platforms[platform]
        if link is None or link.status != LinkStatus.ACTIVE:
            raise PlatformNotLinked(platform)

        try:
            response = await self.client.request(
                method,
                platform,
                endpoint,
                access_token=link.access_token,
                json=json,
                params=params,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.error("Platform %s timed out on %s", platform, endpoint)
            raise PlatformCallFailed(platform, f"timeout calling {endpoint}") from e
        except httpx.HTTPError as e:
            logger.error("Platform %s request to %s failed: %s", platform, endpoint, e)
            raise PlatformCallFailed(platform, str(e) or type(e).__name__) from e

        if response.status_code == HTTP_UNAUTHORIZED:
            logger.warning(
                "Platform %s rejected credential for session %s", platform, session_id
            )
            await self._record_rejection(session_id, platform, link)
            await self.links.mark_status(
                session.lux_user_id, platform, LinkStatus.INVALID, access_token=link.access_token
            )
            raise PlatformAuthExpired(platform)

        if not response.is_success:
            raise PlatformCallFailed(
                platform,
                f"{response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise PlatformCallFailed(
                platform, "response is not valid JSON", status_code=response.status_code
            ) from e

        await self._record_use(session_id, platform, session.lux_user_id, link.access_token)
        return body

    async def _record_rejection(
        self, session_id: str, platform: Platform, link: PlatformLink
    ) -> None:
        """Mark the session slot invalid. A session that expired meanwhile needs no update."""
        rejected = link.model_copy(update={"status": LinkStatus.INVALID})
        try:
            await self.sessions.update_session_platform_link(
                session_id, platform, rejected, replacing=link.access_token
            )
        except SessionNotFound:
            logger.info("Session %s expired before %s rejection was recorded", session_id, platform)

    async def _record_use(
        self, session_id: str, platform: Platform, lux_user_id: str, access_token: str
    ) -> None:
        """Stamp ``last_used_at`` on both copies still holding the credential used."""
        now = datetime.now(UTC)
        await self.links.touch_last_used(lux_user_id, platform, when=now, access_token=access_token)
        try:
            session = await self.sessions.get_session(session_id)
            link = session.platforms[platform] if session else None
            if link is not None and link.is_active and link.holds(access_token):
                link.last_used_at = now
                await self.sessions.update_session_platform_link(
                    session_id, platform, link, replacing=access_token
                )
        except LuxBridgeError as e:
            logger.warning("Failed to record use of %s in session %s: %s", platform, session_id, e)
