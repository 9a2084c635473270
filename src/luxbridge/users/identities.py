"""
Verified identities and their mapping to bridge users.

``lux_user:{privy_id}`` holds the identity as last verified;
``privy_user_mapping:{privy_id}`` pins the identity to one bridge user id so
repeated logins resolve to the same account.
"""

import logging
import secrets
from datetime import UTC, datetime

from luxbridge.core.exceptions import IdentityConflict, LuxBridgeError
from luxbridge.storage import keys
from luxbridge.storage.base import CredentialStore

from .accounts import AccountStore
from .models import LuxBridgeUser, UserMapping

logger = logging.getLogger(__name__)


class IdentityStore:
    """Identity records, activity timestamps and privy -> user resolution."""

    def __init__(self, store: CredentialStore, accounts: AccountStore):
        self.store = store
        self.accounts = accounts

    # ========================================
    # Identity records
    # ========================================

    async def store_user(self, user: LuxBridgeUser) -> None:
        await self.store.put(keys.lux_user_key(user.privy_id), user.to_fields())

    async def get_user(self, privy_id: str) -> LuxBridgeUser | None:
        fields = await self.store.get_all(keys.lux_user_key(privy_id))
        return LuxBridgeUser.from_fields(fields) if fields else None

    async def update_activity(self, privy_id: str) -> bool:
        """Stamp ``last_active_at``. Bookkeeping only: failures are logged, not raised."""
        try:
            user = await self.get_user(privy_id)
            if user is None:
                return False
            user.last_active_at = datetime.now(UTC)
            await self.store_user(user)
        except LuxBridgeError as e:
            logger.warning("Failed to update activity for %s: %s", privy_id, e)
            return False
        return True

    # ========================================
    # Identity mapping
    # ========================================

    async def get_mapping(self, privy_user_id: str) -> UserMapping | None:
        fields = await self.store.get_all(keys.user_mapping_key(privy_user_id))
        return UserMapping.from_fields(fields) if fields else None

    async def create_mapping(self, privy_user_id: str, user_id: str, email: str) -> UserMapping:
        """
        Pin an identity to a bridge user. If another request pinned it first,
        that mapping wins and is returned instead.
        """
        mapping = UserMapping(privy_user_id=privy_user_id, user_id=user_id, email=email)
        if await self.store.put_if_absent(keys.user_mapping_key(privy_user_id), mapping.to_fields()):
            logger.info("Mapped identity %s to user %s", privy_user_id, user_id)
            return mapping

        existing = await self.get_mapping(privy_user_id)
        if existing is None:
            raise IdentityConflict(keys.user_mapping_key(privy_user_id))
        return existing

    async def delete_mapping(self, privy_user_id: str) -> None:
        await self.store.delete(keys.user_mapping_key(privy_user_id))

    async def resolve_identity(
        self,
        privy_user_id: str,
        email: str | None = None,
        name: str | None = None,
    ) -> str | None:
        """
        Return the bridge user id for an identity, creating the user if needed.

        Resolution order: existing mapping, existing bridge user with the same
        email, new bridge user. Without a mapping and without an email there is
        nothing to resolve against and None is returned.
        """
        mapping = await self.get_mapping(privy_user_id)
        if mapping is not None:
            return mapping.user_id
        if not email:
            return None

        account = await self.accounts.get_user_by_email(email)
        if account is None:
            try:
                account = await self.accounts.create_user(
                    email=email,
                    # Identity-provider users never log in with a password
                    password=secrets.token_urlsafe(32),
                    name=name or email.split("@")[0],
                )
            except IdentityConflict:
                # Lost a creation race for the same email: use the winner's account
                account = await self.accounts.get_user_by_email(email)
                if account is None:
                    raise

        mapping = await self.create_mapping(privy_user_id, account.user_id, account.email)
        return mapping.user_id
