"""Platform link records and platform login results."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from luxbridge.core.constants import Platform
from luxbridge.storage.records import HashRecord


class LinkStatus(StrEnum):
    """Link states. ``expired`` and ``invalid`` are terminal until the user re-links."""

    ACTIVE = "active"
    EXPIRED = "expired"
    INVALID = "invalid"


class PlatformLink(HashRecord):
    """Credential proving the bridge user is authenticated against one platform.

    Kept in two places: the user-indexed record ``platform_link:{user}:{platform}``
    and the owning session's platform slot.
    """

    lux_user_id: str
    platform: Platform
    platform_user_id: str
    platform_email: str
    access_token: str
    token_expiry: datetime | None = None
    linked_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_used_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    status: LinkStatus = LinkStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == LinkStatus.ACTIVE

    def token_expired(self, now: datetime | None = None) -> bool:
        if self.token_expiry is None:
            return False
        return self.token_expiry < (now or datetime.now(UTC))

    def holds(self, access_token: str | None) -> bool:
        """True if this link carries ``access_token``; ``None`` matches any link."""
        return access_token is None or self.access_token == access_token

    def public_view(self) -> dict[str, Any]:
        """Link details safe to return to MCP clients (no credential)."""
        return {
            "platform": self.platform.value,
            "platformUserId": self.platform_user_id,
            "platformEmail": self.platform_email,
            "status": self.status.value,
            "linkedAt": self.linked_at.isoformat(),
            "lastUsedAt": self.last_used_at.isoformat(),
            "tokenExpiry": self.token_expiry.isoformat() if self.token_expiry else None,
        }


class PlatformAuthResult(BaseModel):
    """Outcome of a credential login against a platform API."""

    success: bool
    platform_user_id: str | None = None
    email: str | None = None
    name: str | None = None
    access_token: str | None = None
    expires_at: datetime | None = None
    error: str | None = None
