"""
Password accounts in the two user namespaces.

Bridge users live under ``user:{email}`` with a ``user_id:{id}`` reverse key;
platform-native users live under ``platform_user:{platform}:{email}`` with a
``platform_user_id:{id}`` reverse key. A bare user id says nothing about its
namespace, so lookups by id go through ``resolve_user_ref``.
"""

import logging
import secrets
import time

from passlib.context import CryptContext

from luxbridge.core.constants import SESSION_SUFFIX_ALPHABET, Platform
from luxbridge.core.exceptions import IdentityConflict
from luxbridge.storage import keys
from luxbridge.storage.base import CredentialStore

from .models import AccountRecord, BridgeUserRef, PlatformUserRef, UserRef, UserView

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _new_user_id(prefix: str) -> str:
    suffix = "".join(secrets.choice(SESSION_SUFFIX_ALPHABET) for _ in range(13))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


class AccountStore:
    """Bridge and platform-native password accounts."""

    def __init__(self, store: CredentialStore):
        self.store = store

    async def _create(
        self,
        record_key: str,
        reverse_key: str,
        reverse: dict[str, str],
        account: AccountRecord,
    ) -> AccountRecord:
        if not await self.store.put_if_absent(record_key, account.to_fields()):
            raise IdentityConflict(record_key)
        await self.store.put(reverse_key, reverse)
        return account

    async def create_user(self, email: str, password: str, name: str) -> AccountRecord:
        """
        Create a bridge user.

        Raises:
            IdentityConflict: If a bridge user with this email already exists
        """
        account = AccountRecord(
            user_id=_new_user_id("user"),
            email=email.lower(),
            password_hash=pwd_context.hash(password),
            name=name,
        )
        await self._create(
            keys.user_key(email),
            keys.user_id_key(account.user_id),
            {"email": account.email},
            account,
        )
        logger.info("Created bridge user %s", account.user_id)
        return account

    async def create_platform_user(
        self,
        platform: Platform,
        email: str,
        password: str,
        name: str,
    ) -> AccountRecord:
        """
        Create a platform-native user.

        Raises:
            IdentityConflict: If the platform already has a user with this email
        """
        platform = Platform.parse(platform)
        account = AccountRecord(
            user_id=_new_user_id(f"{platform}_user"),
            email=email.lower(),
            password_hash=pwd_context.hash(password),
            name=name,
            platform=platform,
        )
        await self._create(
            keys.platform_user_key(platform, email),
            keys.platform_user_id_key(account.user_id),
            {"platform": platform.value, "email": account.email},
            account,
        )
        logger.info("Created %s user %s", platform, account.user_id)
        return account

    async def get_user_by_email(self, email: str) -> AccountRecord | None:
        fields = await self.store.get_all(keys.user_key(email))
        return AccountRecord.from_fields(fields) if fields else None

    async def get_platform_user_by_email(
        self, platform: Platform, email: str
    ) -> AccountRecord | None:
        fields = await self.store.get_all(keys.platform_user_key(Platform.parse(platform), email))
        return AccountRecord.from_fields(fields) if fields else None

    async def resolve_user_ref(self, user_id: str) -> UserRef | None:
        """Find which namespace a user id belongs to: bridge first, then platform-native."""
        bridge = await self.store.get_all(keys.user_id_key(user_id))
        if bridge.get("email"):
            return BridgeUserRef(user_id=user_id, email=bridge["email"])

        native = await self.store.get_all(keys.platform_user_id_key(user_id))
        if native.get("email") and native.get("platform"):
            return PlatformUserRef(
                user_id=user_id,
                platform=Platform.parse(native["platform"]),
                email=native["email"],
            )
        return None

    async def get_account(self, ref: UserRef) -> AccountRecord | None:
        match ref:
            case BridgeUserRef(email=email):
                return await self.get_user_by_email(email)
            case PlatformUserRef(platform=platform, email=email):
                return await self.get_platform_user_by_email(platform, email)
        return None

    async def get_user_by_id(self, user_id: str) -> UserView | None:
        ref = await self.resolve_user_ref(user_id)
        if ref is None:
            return None
        account = await self.get_account(ref)
        return UserView.from_account(account) if account else None

    async def validate_credentials(self, email: str, password: str) -> AccountRecord | None:
        """Return the bridge user if the password matches."""
        return self._check(await self.get_user_by_email(email), password)

    async def validate_platform_credentials(
        self, platform: Platform, email: str, password: str
    ) -> AccountRecord | None:
        """Return the platform-native user if the password matches."""
        return self._check(await self.get_platform_user_by_email(platform, email), password)

    @staticmethod
    def _check(account: AccountRecord | None, password: str) -> AccountRecord | None:
        if account is None:
            # Same hashing cost as a real check
            pwd_context.dummy_verify()
            return None
        if not pwd_context.verify(password, account.password_hash):
            return None
        return account

    async def delete_user(self, user_id: str) -> bool:
        ref = await self.resolve_user_ref(user_id)
        if ref is None:
            return False
        match ref:
            case BridgeUserRef(email=email):
                await self.store.delete(keys.user_key(email))
                await self.store.delete(keys.user_id_key(user_id))
            case PlatformUserRef(platform=platform, email=email):
                await self.store.delete(keys.platform_user_key(platform, email))
                await self.store.delete(keys.platform_user_id_key(user_id))
        logger.info("Deleted user %s", user_id)
        return True
