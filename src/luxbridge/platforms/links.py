"""
Platform link state machine.

A link starts ``active`` and can only move to ``expired`` (token past its
expiry, or the platform answers 401 to a revalidation probe) or ``invalid``
(the probe fails any other way). Both are terminal: re-linking writes a fresh
``active`` record with a new ``linked_at``.

Each link is written twice: the user-indexed record, and the slot of the
session it was linked through. The two copies may drift apart until the call
proxy, which writes both after every use, brings them back in line.
"""

import logging
import math
from datetime import UTC, datetime, timedelta

import httpx

from luxbridge.config import Settings
from luxbridge.core.constants import HTTP_UNAUTHORIZED, Platform
from luxbridge.core.exceptions import (
    LuxBridgeError,
    PlatformLoginFailed,
    SessionNotFound,
    UnsupportedPlatform,
)
from luxbridge.sessions.manager import SessionManager
from luxbridge.storage import keys
from luxbridge.storage.base import CredentialStore

from .client import PlatformClient
from .models import LinkStatus, PlatformAuthResult, PlatformLink

logger = logging.getLogger(__name__)


class PlatformLinkStore:
    """User-indexed platform links and their status transitions."""

    def __init__(
        self,
        store: CredentialStore,
        sessions: SessionManager,
        client: PlatformClient,
        settings: Settings,
    ):
        self.store = store
        self.sessions = sessions
        self.client = client
        self.max_ttl = settings.platform_link_ttl

    def link_ttl(self, link: PlatformLink, now: datetime | None = None) -> int:
        """Store TTL for the user-indexed copy: the token's remaining life, capped."""
        if link.token_expiry is None:
            return self.max_ttl
        remaining = math.floor((link.token_expiry - (now or datetime.now(UTC))).total_seconds())
        if remaining <= 0:
            # Already past expiry: keep it long enough to be read back as expired
            return self.max_ttl
        return min(remaining, self.max_ttl)

    async def _write(self, link: PlatformLink, keep_ttl: bool = False) -> None:
        key = keys.platform_link_key(link.lux_user_id, link.platform)
        ttl = await self.store.ttl(key) if keep_ttl else None
        await self.store.put(key, link.to_fields(), ttl or self.link_ttl(link))

    # ========================================
    # Link records
    # ========================================

    async def store_link(
        self,
        lux_user_id: str,
        platform: Platform,
        platform_user_id: str,
        platform_email: str,
        access_token: str,
        token_expiry: datetime | None = None,
        session_id: str | None = None,
    ) -> PlatformLink:
        """
        Write a fresh active link, replacing whatever was stored before.

        Raises:
            SessionNotFound: If ``session_id`` is given but the session is gone
        """
        now = datetime.now(UTC)
        link = PlatformLink(
            lux_user_id=lux_user_id,
            platform=Platform.parse(platform),
            platform_user_id=platform_user_id,
            platform_email=platform_email,
            access_token=access_token,
            token_expiry=token_expiry,
            linked_at=now,
            last_used_at=now,
            status=LinkStatus.ACTIVE,
        )
        await self._write(link)
        if session_id is not None:
            await self.sessions.update_session_platform_link(session_id, link.platform, link)
        logger.info("Linked %s for user %s", link.platform, lux_user_id)
        return link

    async def get_link(self, lux_user_id: str, platform: Platform | str) -> PlatformLink | None:
        """Read a link, persisting the move to ``expired`` once its token has lapsed."""
        try:
            platform = Platform.parse(platform)
        except UnsupportedPlatform:
            return None

        fields = await self.store.get_all(keys.platform_link_key(lux_user_id, platform))
        if not fields:
            return None

        link = PlatformLink.from_fields(fields)
        if link.is_active and link.token_expired():
            logger.info("Platform link %s for %s expired", platform, lux_user_id)
            link.status = LinkStatus.EXPIRED
            await self._write(link, keep_ttl=True)
        return link

    async def get_all_links(self, lux_user_id: str) -> list[PlatformLink]:
        links = []
        for platform in Platform:
            link = await self.get_link(lux_user_id, platform)
            if link is not None:
                links.append(link)
        return links

    async def delete_link(self, lux_user_id: str, platform: Platform) -> None:
        """Unlink: drop the user-indexed copy and empty the slot in every live session."""
        platform = Platform.parse(platform)
        await self.store.delete(keys.platform_link_key(lux_user_id, platform))
        for session_id in await self.sessions.get_user_active_sessions(lux_user_id):
            await self.sessions.remove_session_platform_link(session_id, platform)
        logger.info("Unlinked %s for user %s", platform, lux_user_id)

    # ========================================
    # Bookkeeping (never raises)
    # ========================================

    async def touch_last_used(
        self,
        lux_user_id: str,
        platform: Platform,
        when: datetime | None = None,
        access_token: str | None = None,
    ) -> bool:
        """Stamp the last use. With ``access_token``, a re-linked record is left alone."""
        try:
            link = await self.get_link(lux_user_id, platform)
            if link is None or not link.holds(access_token):
                return False
            link.last_used_at = when or datetime.now(UTC)
            await self._write(link, keep_ttl=True)
        except LuxBridgeError as e:
            logger.warning("Failed to update last use of %s for %s: %s", platform, lux_user_id, e)
            return False
        return True

    async def mark_status(
        self,
        lux_user_id: str,
        platform: Platform,
        status: LinkStatus,
        access_token: str | None = None,
    ) -> bool:
        """
        Set the status of the user-indexed link.

        With ``access_token``, only a link still holding that credential is
        changed: a platform re-linked since keeps its fresh status.
        """
        try:
            link = await self.get_link(lux_user_id, platform)
            if link is None:
                return False
            if not link.holds(access_token):
                logger.info(
                    "Not marking %s %s for %s: credential was replaced",
                    platform,
                    status,
                    lux_user_id,
                )
                return False
            link.status = status
            await self._write(link, keep_ttl=True)
        except LuxBridgeError as e:
            logger.warning("Failed to mark %s %s for %s: %s", platform, status, lux_user_id, e)
            return False
        return True

    async def _mirror_to_sessions(self, link: PlatformLink) -> bool:
        """Copy a status change into every live session still holding the same credential."""
        try:
            for session_id in await self.sessions.get_user_active_sessions(link.lux_user_id):
                session = await self.sessions.get_session(session_id)
                if session is None:
                    continue
                current = session.platforms[link.platform]
                if current is not None and current.holds(link.access_token):
                    current.status = link.status
                    await self.sessions.update_session_platform_link(
                        session_id, link.platform, current, replacing=link.access_token
                    )
        except LuxBridgeError as e:
            logger.warning("Failed to mirror %s status into sessions: %s", link.platform, e)
            return False
        return True

    # ========================================
    # Revalidation
    # ========================================

    async def probe(self, link: PlatformLink) -> LinkStatus:
        """Ask the platform whether the credential still works."""
        try:
            response = await self.client.request(
                "GET", link.platform, "/auth/me", access_token=link.access_token
            )
        except httpx.HTTPError as e:
            logger.warning("Revalidation of %s failed: %s", link.platform, e)
            return LinkStatus.INVALID
        if response.status_code == HTTP_UNAUTHORIZED:
            return LinkStatus.EXPIRED
        if not response.is_success:
            return LinkStatus.INVALID
        return LinkStatus.ACTIVE

    async def revalidate_all(self, lux_user_id: str) -> dict[Platform, LinkStatus]:
        """
        Probe every active link of the user.

        Each platform is checked independently; a failure on one never stops
        the others. Links that are already expired or invalid are reported as-is.
        """
        results: dict[Platform, LinkStatus] = {}
        for platform in Platform:
            try:
                link = await self.get_link(lux_user_id, platform)
                if link is None:
                    continue
                if not link.is_active:
                    results[platform] = link.status
                    continue

                status = await self.probe(link)
                results[platform] = status
                if status != LinkStatus.ACTIVE:
                    link.status = status
                    await self._write(link, keep_ttl=True)
                    await self._mirror_to_sessions(link)
                    logger.info("Platform link %s for %s is now %s", platform, lux_user_id, status)
            except LuxBridgeError as e:
                logger.error("Revalidation of %s for %s aborted: %s", platform, lux_user_id, e)
        return results

    # ========================================
    # Linking with platform credentials
    # ========================================

    async def authenticate_platform(
        self,
        platform: Platform,
        email: str,
        password: str,
    ) -> PlatformAuthResult:
        """Log in to a platform API with the user's platform credentials."""
        platform = Platform.parse(platform)
        try:
            response = await self.client.request(
                "POST",
                platform,
                "/auth/login",
                json={"email": email, "password": password},
            )
        except httpx.HTTPError as e:
            logger.error("Platform auth error for %s: %s", platform, e)
            return PlatformAuthResult(success=False, error="Network error")

        if not response.is_success:
            error = (
                "Invalid credentials"
                if response.status_code == HTTP_UNAUTHORIZED
                else "Authentication failed"
            )
            return PlatformAuthResult(success=False, error=error)

        try:
            data = response.json()
            user_id = str(data["userId"])
            access_token = str(data["accessToken"])
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Malformed login response from %s: %s", platform, e)
            return PlatformAuthResult(success=False, error="Authentication failed")

        expires_in = data.get("expiresIn")
        return PlatformAuthResult(
            success=True,
            platform_user_id=user_id,
            email=email,
            name=data.get("name"),
            access_token=access_token,
            expires_at=(
                datetime.now(UTC) + timedelta(seconds=int(expires_in)) if expires_in else None
            ),
        )

    async def link_platform(
        self,
        session_id: str,
        platform: Platform,
        email: str,
        password: str,
    ) -> PlatformLink:
        """
        Authenticate against a platform and attach the resulting link to a session.

        Raises:
            SessionNotFound: If the session is missing or expired
            PlatformLoginFailed: If the platform rejects the credentials
        """
        platform = Platform.parse(platform)
        session = await self.sessions.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)

        result = await self.authenticate_platform(platform, email, password)
        if not result.success:
            raise PlatformLoginFailed(platform, result.error or "Authentication failed")

        return await self.store_link(
            lux_user_id=session.lux_user_id,
            platform=platform,
            platform_user_id=result.platform_user_id or "",
            platform_email=result.email or email,
            access_token=result.access_token or "",
            token_expiry=result.expires_at,
            session_id=session_id,
        )
