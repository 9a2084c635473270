"""Multi-platform session aggregate."""

import json
import math
from datetime import UTC, datetime
from typing import Any, Self

from pydantic import BaseModel, Field, model_validator

from luxbridge.core.constants import Platform
from luxbridge.platforms.models import PlatformLink
from luxbridge.storage.records import HashRecord

PLATFORM_FIELD_PREFIX = "platform:"


def _empty_slots() -> dict[Platform, PlatformLink | None]:
    return {platform: None for platform in Platform}


class AuthSession(HashRecord):
    """One bridge user's set of platform links.

    ``platforms`` always holds exactly one slot per supported platform, ``None``
    while the platform is unlinked.
    """

    session_id: str
    lux_user_id: str
    privy_token: str
    platforms: dict[Platform, PlatformLink | None] = Field(default_factory=_empty_slots)
    created_at: datetime
    expires_at: datetime

    @model_validator(mode="after")
    def _fill_slots(self) -> Self:
        for platform in Platform:
            self.platforms.setdefault(platform, None)
        return self

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at < (now or datetime.now(UTC))

    def remaining_ttl(self, now: datetime | None = None) -> int:
        """Whole seconds left until ``expires_at``, floored."""
        delta = self.expires_at - (now or datetime.now(UTC))
        return math.floor(delta.total_seconds())

    def active_platforms(self) -> list[Platform]:
        return [p for p, link in self.platforms.items() if link is not None and link.is_active]

    # Stored as a single hash: meta fields plus one JSON field per platform slot
    def to_fields(self) -> dict[str, str]:
        fields = {
            "session_id": self.session_id,
            "lux_user_id": self.lux_user_id,
            "privy_token": self.privy_token,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }
        for platform, link in self.platforms.items():
            fields[f"{PLATFORM_FIELD_PREFIX}{platform}"] = (
                link.model_dump_json() if link is not None else ""
            )
        return fields

    @classmethod
    def from_fields(cls, fields: dict[str, str]) -> Self:
        platforms: dict[Platform, PlatformLink | None] = {}
        for platform in Platform:
            raw = fields.get(f"{PLATFORM_FIELD_PREFIX}{platform}", "")
            platforms[platform] = PlatformLink.model_validate_json(raw) if raw else None
        return cls(
            session_id=fields["session_id"],
            lux_user_id=fields["lux_user_id"],
            privy_token=fields.get("privy_token", ""),
            platforms=platforms,
            created_at=fields["created_at"],
            expires_at=fields["expires_at"],
        )


class AuthSessionSummary(BaseModel):
    """Session state as reported to MCP clients."""

    session_id: str
    user_id: str
    email: str | None = None
    name: str | None = None
    linked_platforms: list[str]
    session_expires_at: datetime
    platforms: dict[str, dict[str, Any] | None]

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), indent=2)
