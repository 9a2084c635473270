"""
Privy identity token verification.

Privy issues ES256-signed JWTs (issuer ``privy.io``, audience = app id, subject
= privy user id). Tokens are verified locally with the app's verification key;
profile details missing from the token are fetched from the Privy REST API.
"""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx
from jose import JWTError, jwt
from pydantic import BaseModel

from luxbridge.config import Settings
from luxbridge.core.constants import LUX_USER_ID_PREFIX
from luxbridge.core.exceptions import ConfigurationError
from luxbridge.users.models import LuxBridgeUser

logger = logging.getLogger(__name__)

PRIVY_ISSUER = "privy.io"
PRIVY_ALGORITHM = "ES256"


class VerifiedIdentity(BaseModel):
    """Claims of a verified identity token plus the user's profile."""

    privy_id: str
    email: str | None = None
    name: str | None = None
    wallet_address: str | None = None
    created_at: datetime | None = None

    @property
    def lux_user_id(self) -> str:
        return f"{LUX_USER_ID_PREFIX}{self.privy_id}"

    def to_lux_user(self) -> LuxBridgeUser:
        now = datetime.now(UTC)
        return LuxBridgeUser(
            user_id=self.lux_user_id,
            privy_id=self.privy_id,
            email=self.email,
            name=self.name or self.email,
            wallet_address=self.wallet_address,
            created_at=self.created_at or now,
            last_active_at=now,
        )


def _linked_account(profile: dict[str, Any], account_type: str) -> str | None:
    for account in profile.get("linked_accounts") or []:
        if account.get("type") == account_type and account.get("address"):
            return account["address"]
    return None


class PrivyIdentityVerifier:
    """Verify Privy identity tokens and load the matching profile."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self.app_id = settings.privy_app_id
        self.app_secret = settings.privy_app_secret
        self.verification_key = settings.privy_verification_key
        self.api_url = settings.privy_api_url.rstrip("/")
        self._http = http_client

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(10.0))
        return self._http

    def decode(self, token: str) -> dict[str, Any]:
        """
        Check signature, audience, issuer and expiry.

        Raises:
            ConfigurationError: If no app id or verification key is configured
            JWTError: If the token fails verification
        """
        if not self.app_id or not self.verification_key:
            raise ConfigurationError("Privy app id and verification key are required")
        return jwt.decode(
            token,
            self.verification_key,
            algorithms=[PRIVY_ALGORITHM],
            audience=self.app_id,
            issuer=PRIVY_ISSUER,
        )

    async def fetch_profile(self, privy_id: str) -> dict[str, Any] | None:
        """Load the Privy user record; None when the API is unavailable or unconfigured."""
        if not self.app_id or not self.app_secret:
            return None
        try:
            response = await self._get_http().get(
                f"{self.api_url}/users/{privy_id}",
                auth=(self.app_id, self.app_secret),
                headers={"privy-app-id": self.app_id},
            )
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch Privy profile for %s: %s", privy_id, e)
            return None

    async def verify(self, token: str) -> VerifiedIdentity | None:
        """Verify a token and build the identity; None if verification fails."""
        if not token:
            return None
        try:
            claims = self.decode(token)
        except JWTError as e:
            logger.warning("Privy token verification failed: %s", e)
            return None

        privy_id = claims.get("sub")
        if not privy_id:
            return None

        identity = VerifiedIdentity(
            privy_id=privy_id,
            email=claims.get("email"),
            name=claims.get("name"),
            wallet_address=claims.get("wallet_address"),
        )
        if identity.email is None:
            profile = await self.fetch_profile(privy_id)
            if profile:
                identity.email = _linked_account(profile, "email")
                identity.wallet_address = identity.wallet_address or _linked_account(
                    profile, "wallet"
                )
                created = profile.get("created_at")
                if isinstance(created, int | float):
                    identity.created_at = datetime.fromtimestamp(created, UTC)
        return identity

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
