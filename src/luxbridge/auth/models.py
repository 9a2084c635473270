"""OAuth entities persisted by the code/token issuer."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from luxbridge.storage.records import HashRecord


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UserData(BaseModel):
    """Identity details captured when the user completes authorization."""

    email: str | None = None
    privy_user_id: str
    wallet_address: str | None = None


class OAuthClient(HashRecord):
    """Registered OAuth client. Immutable after registration."""

    id: str
    client_id: str
    client_secret: str
    name: str
    redirect_uris: list[str]
    created_at: datetime = Field(default_factory=_utcnow)


class AuthorizationCode(HashRecord):
    """Single-use authorization code, optionally bound to a PKCE challenge."""

    code: str
    expires_at: datetime
    client_id: str
    user_id: str = ""
    redirect_uri: str
    code_challenge: str | None = None
    code_challenge_method: str | None = None
    user_data: UserData | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or _utcnow())


class AccessToken(HashRecord):
    """Bridge access token. ``session_id`` is a loose pointer, not a foreign key."""

    token: str
    expires_at: datetime
    client_id: str
    user_id: str
    session_id: str | None = None
    user_data: UserData | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or _utcnow())
