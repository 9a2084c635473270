"""
Session manager for multi-platform auth sessions.

A session is one credential-store hash with a sliding lifetime. Platform slots
are updated by read-modify-write of the whole record; those sequences run
under a per-session lock so concurrent updates of different platforms cannot
overwrite each other. The per-user session index is bookkeeping: failures
while maintaining it are logged and never abort the primary operation.
"""

import logging
import secrets
import time
from datetime import UTC, datetime, timedelta

from luxbridge.config import Settings
from luxbridge.core.constants import (
    SESSION_ID_PREFIX,
    SESSION_SUFFIX_ALPHABET,
    SESSION_SUFFIX_LENGTH,
    Platform,
)
from luxbridge.core.exceptions import LuxBridgeError, SessionNotFound
from luxbridge.core.locks import KeyedLock
from luxbridge.platforms.models import PlatformLink
from luxbridge.storage import keys
from luxbridge.storage.base import CredentialStore

from .models import AuthSession, AuthSessionSummary

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    """``lux_session_{epoch_ms}_{9 random base36 chars}``."""
    suffix = "".join(
        secrets.choice(SESSION_SUFFIX_ALPHABET) for _ in range(SESSION_SUFFIX_LENGTH)
    )
    return f"{SESSION_ID_PREFIX}{int(time.time() * 1000)}_{suffix}"


class SessionManager:
    """Create, read, extend and mutate multi-platform sessions."""

    def __init__(
        self,
        store: CredentialStore,
        settings: Settings,
        locks: KeyedLock | None = None,
    ):
        self.store = store
        self.session_ttl = settings.session_ttl
        self.locks = locks or KeyedLock()

    # ========================================
    # Session lifecycle
    # ========================================

    async def create_session(self, lux_user_id: str, privy_token: str) -> str:
        """
        Create a session with every platform slot empty.

        Raises:
            StoreError: If the session record cannot be written
        """
        now = datetime.now(UTC)
        session = AuthSession(
            session_id=generate_session_id(),
            lux_user_id=lux_user_id,
            privy_token=privy_token,
            created_at=now,
            expires_at=now + timedelta(seconds=self.session_ttl),
        )
        await self.store.put(
            keys.session_key(session.session_id),
            session.to_fields(),
            self.session_ttl,
        )
        await self._add_session_to_user(lux_user_id, session.session_id, now)
        logger.info("Created session %s for user %s", session.session_id, lux_user_id)
        return session.session_id

    async def get_session(self, session_id: str) -> AuthSession | None:
        """Read a session, deleting it if its ``expires_at`` has passed."""
        fields = await self.store.get_all(keys.session_key(session_id))
        if not fields:
            return None

        session = AuthSession.from_fields(fields)
        if session.is_expired():
            logger.info("Session %s expired, deleting", session_id)
            await self._delete(session)
            return None
        return session

    async def extend_session(self, session_id: str) -> bool:
        """Slide ``expires_at`` to now + session TTL. Returns False if the session is gone."""
        async with self.locks.hold(session_id):
            session = await self.get_session(session_id)
            if session is None:
                return False
            session.expires_at = datetime.now(UTC) + timedelta(seconds=self.session_ttl)
            await self.store.put(
                keys.session_key(session_id),
                session.to_fields(),
                self.session_ttl,
            )
        await self._touch_user_index(session.lux_user_id)
        return True

    async def delete_session(self, session_id: str) -> None:
        fields = await self.store.get_all(keys.session_key(session_id))
        if not fields:
            return
        await self._delete(AuthSession.from_fields(fields))

    async def _delete(self, session: AuthSession) -> None:
        await self.store.delete(keys.session_key(session.session_id))
        await self._remove_session_from_user(session.lux_user_id, session.session_id)
        logger.info("Deleted session %s", session.session_id)

    # ========================================
    # Platform slots
    # ========================================

    async def update_session_platform_link(
        self,
        session_id: str,
        platform: Platform,
        link: PlatformLink,
        replacing: str | None = None,
    ) -> AuthSession:
        """
        Put ``link`` into the session's slot for ``platform``.

        With ``replacing``, the slot is only written while it still holds that
        access token; a slot re-linked in the meantime is left untouched.

        Raises:
            SessionNotFound: If the session is missing or expired
        """
        return await self._mutate_slot(
            session_id, platform, link, missing_ok=False, replacing=replacing
        )

    async def remove_session_platform_link(
        self,
        session_id: str,
        platform: Platform,
    ) -> AuthSession | None:
        """Empty the session's slot for ``platform``. A missing session is ignored."""
        return await self._mutate_slot(session_id, platform, None, missing_ok=True)

    async def _mutate_slot(
        self,
        session_id: str,
        platform: Platform,
        link: PlatformLink | None,
        missing_ok: bool,
        replacing: str | None = None,
    ) -> AuthSession | None:
        platform = Platform.parse(platform)
        async with self.locks.hold(session_id):
            session = await self.get_session(session_id)
            if session is None:
                if missing_ok:
                    return None
                raise SessionNotFound(session_id)

            # Rewriting drops the store TTL, so reapply what is left of it
            ttl = session.remaining_ttl()
            if ttl <= 0:
                logger.info("Session %s expired during slot update, deleting", session_id)
                await self._delete(session)
                if missing_ok:
                    return None
                raise SessionNotFound(session_id)

            current = session.platforms[platform]
            if replacing is not None and (current is None or not current.holds(replacing)):
                logger.info("Slot %s of session %s was re-linked, keeping it", platform, session_id)
                return session

            session.platforms[platform] = link
            await self.store.put(keys.session_key(session_id), session.to_fields(), ttl)
            return session

    async def get_user_connected_platforms(self, session_id: str) -> list[Platform]:
        """Platforms whose slot holds an active link."""
        session = await self.get_session(session_id)
        if session is None:
            return []
        return session.active_platforms()

    # ========================================
    # Per-user index
    # ========================================

    async def get_user_active_sessions(self, lux_user_id: str) -> list[str]:
        """List the user's live session ids, pruning dead entries from the index."""
        index_key = keys.user_sessions_key(lux_user_id)
        index = await self.store.get_all(index_key)
        if not index:
            return []

        # Probed outside the index lock: get_session may unindex expired sessions itself
        active = {}
        for session_id, created_at in index.items():
            if await self.get_session(session_id) is not None:
                active[session_id] = created_at

        dead = set(index) - set(active)
        if dead:
            await self._prune_user_index(lux_user_id, dead)

        # Most recently created first
        return sorted(active, key=lambda sid: active[sid], reverse=True)

    async def get_active_user_session(self, lux_user_id: str) -> AuthSession | None:
        """Most recently created live session of the user."""
        for session_id in await self.get_user_active_sessions(lux_user_id):
            session = await self.get_session(session_id)
            if session is not None:
                return session
        return None

    async def _add_session_to_user(
        self, lux_user_id: str, session_id: str, created_at: datetime
    ) -> bool:
        index_key = keys.user_sessions_key(lux_user_id)
        try:
            async with self.locks.hold(index_key):
                index = await self.store.get_all(index_key)
                index[session_id] = created_at.isoformat()
                await self.store.put(index_key, index, self.session_ttl)
        except LuxBridgeError as e:
            logger.warning("Failed to index session %s for %s: %s", session_id, lux_user_id, e)
            return False
        return True

    async def _remove_session_from_user(self, lux_user_id: str, session_id: str) -> bool:
        return await self._prune_user_index(lux_user_id, {session_id})

    async def _prune_user_index(self, lux_user_id: str, session_ids: set[str]) -> bool:
        index_key = keys.user_sessions_key(lux_user_id)
        try:
            async with self.locks.hold(index_key):
                index = await self.store.get_all(index_key)
                remaining = {sid: v for sid, v in index.items() if sid not in session_ids}
                if len(remaining) == len(index):
                    return True
                if remaining:
                    await self.store.put(index_key, remaining, self.session_ttl)
                else:
                    await self.store.delete(index_key)
        except LuxBridgeError as e:
            logger.warning("Failed to prune session index for %s: %s", lux_user_id, e)
            return False
        return True

    async def _touch_user_index(self, lux_user_id: str) -> bool:
        index_key = keys.user_sessions_key(lux_user_id)
        try:
            async with self.locks.hold(index_key):
                index = await self.store.get_all(index_key)
                if index:
                    await self.store.put(index_key, index, self.session_ttl)
        except LuxBridgeError as e:
            logger.warning("Failed to refresh session index for %s: %s", lux_user_id, e)
            return False
        return True

    # ========================================
    # Maintenance
    # ========================================

    async def cleanup_expired_sessions(self) -> int:
        """Delete every session whose ``expires_at`` has passed. Returns the count removed."""
        removed = 0
        for key in await self.store.scan_keys(keys.SESSION_PREFIX):
            fields = await self.store.get_all(key)
            if not fields:
                continue
            try:
                session = AuthSession.from_fields(fields)
            except (KeyError, ValueError) as e:
                logger.warning("Deleting unreadable session record %s: %s", key, e)
                await self.store.delete(key)
                removed += 1
                continue
            if session.is_expired():
                await self._delete(session)
                removed += 1
        if removed:
            logger.info("Cleaned up %d expired sessions", removed)
        return removed

    async def summarize(
        self,
        session_id: str,
        email: str | None = None,
        name: str | None = None,
    ) -> AuthSessionSummary:
        """
        Raises:
            SessionNotFound: If the session is missing or expired
        """
        session = await self.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return AuthSessionSummary(
            session_id=session.session_id,
            user_id=session.lux_user_id,
            email=email,
            name=name,
            linked_platforms=[p.value for p in session.active_platforms()],
            session_expires_at=session.expires_at,
            platforms={
                platform.value: link.public_view() if link else None
                for platform, link in session.platforms.items()
            },
        )
