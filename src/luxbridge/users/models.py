"""User identity records and the tagged user reference."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from luxbridge.core.constants import Platform
from luxbridge.storage.records import HashRecord


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LuxBridgeUser(HashRecord):
    """Identity verified through the upstream identity provider, keyed by privy id."""

    user_id: str
    privy_id: str
    email: str | None = None
    name: str | None = None
    wallet_address: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    last_active_at: datetime = Field(default_factory=_utcnow)


class UserMapping(HashRecord):
    """Durable privy id -> bridge user id link that makes identity resolution idempotent."""

    privy_user_id: str
    user_id: str
    email: str
    created_at: datetime = Field(default_factory=_utcnow)


class AccountRecord(HashRecord):
    """Password account in either namespace. ``platform`` is set for platform-native users."""

    user_id: str
    email: str
    password_hash: str
    name: str
    platform: Platform | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


@dataclass(frozen=True)
class BridgeUserRef:
    user_id: str
    email: str


@dataclass(frozen=True)
class PlatformUserRef:
    user_id: str
    platform: Platform
    email: str


UserRef = BridgeUserRef | PlatformUserRef


class UserView(BaseModel):
    """Namespace-independent view of an account."""

    user_id: str
    email: str
    name: str
    namespace: Literal["bridge", "platform"]
    platform: Platform | None = None
    created_at: datetime

    @classmethod
    def from_account(cls, account: AccountRecord) -> "UserView":
        return cls(
            user_id=account.user_id,
            email=account.email,
            name=account.name,
            namespace="platform" if account.platform else "bridge",
            platform=account.platform,
            created_at=account.created_at,
        )
