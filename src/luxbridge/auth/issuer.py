"""
OAuth code and bridge-token issuer.

Persists OAuth clients, authorization codes and bridge access tokens in the
credential store. Codes and tokens expire through the store TTL; lookups for
unknown or expired ids return None instead of raising.

Redeeming a code does not delete it. The token-exchange handler reads the code
with ``redeem_auth_code`` and invalidates it with ``delete_auth_code`` once the
exchange succeeds; until then the code stays replayable for its remaining TTL.
"""

import logging
import math
from datetime import UTC, datetime, timedelta

from luxbridge.config import Settings
from luxbridge.core.exceptions import InvalidToken
from luxbridge.core.logging import mask_secret
from luxbridge.storage import keys
from luxbridge.storage.base import CredentialStore

from .ids import generate_access_token, generate_auth_code
from .models import AccessToken, AuthorizationCode, OAuthClient, UserData

logger = logging.getLogger(__name__)


class OAuthIssuer:
    """Authorization-code and bridge-access-token lifecycle."""

    def __init__(self, store: CredentialStore, settings: Settings):
        self.store = store
        self.auth_code_ttl = settings.auth_code_ttl
        self.bridge_token_ttl = settings.bridge_token_ttl

    # ========================================
    # Clients
    # ========================================

    async def issue_client(self, client: OAuthClient) -> None:
        await self.store.put(keys.oauth_client_key(client.client_id), client.to_fields())
        logger.info("Registered OAuth client %s (%s)", client.client_id, client.name)

    async def get_client(self, client_id: str) -> OAuthClient | None:
        fields = await self.store.get_all(keys.oauth_client_key(client_id))
        if not fields:
            return None
        return OAuthClient.from_fields(fields)

    # ========================================
    # Authorization codes
    # ========================================

    def new_auth_code(
        self,
        client_id: str,
        redirect_uri: str,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
        code: str | None = None,
    ) -> AuthorizationCode:
        """Build an unattached authorization code expiring after the configured TTL."""
        return AuthorizationCode(
            code=code or generate_auth_code(),
            expires_at=datetime.now(UTC) + timedelta(seconds=self.auth_code_ttl),
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge or None,
            code_challenge_method=code_challenge_method or None,
        )

    async def issue_auth_code(self, auth_code: AuthorizationCode) -> None:
        await self.store.put(
            keys.auth_code_key(auth_code.code),
            auth_code.to_fields(),
            self.auth_code_ttl,
        )
        logger.debug("Issued authorization code %s", mask_secret(auth_code.code))

    async def redeem_auth_code(self, code: str) -> AuthorizationCode | None:
        """Read a code without invalidating it."""
        fields = await self.store.get_all(keys.auth_code_key(code))
        if not fields:
            return None
        return AuthorizationCode.from_fields(fields)

    async def delete_auth_code(self, code: str) -> None:
        await self.store.delete(keys.auth_code_key(code))
        logger.debug("Deleted authorization code %s", mask_secret(code))

    async def attach_user_to_auth_code(
        self,
        code: str,
        user_id: str,
        user_data: UserData | None = None,
    ) -> AuthorizationCode | None:
        """
        Bind a verified user to a pending code.

        The rewrite keeps the code's original deadline: the TTL is recomputed
        from ``expires_at`` so the record cannot outlive it.

        Returns:
            The updated code, or None if it is unknown or already expired
        """
        auth_code = await self.redeem_auth_code(code)
        if auth_code is None:
            return None

        remaining = math.floor((auth_code.expires_at - datetime.now(UTC)).total_seconds())
        if remaining <= 0:
            await self.delete_auth_code(code)
            return None

        auth_code.user_id = user_id
        auth_code.user_data = user_data
        await self.store.put(keys.auth_code_key(code), auth_code.to_fields(), remaining)
        logger.info("Attached user %s to authorization code %s", user_id, mask_secret(code))
        return auth_code

    # ========================================
    # Bridge access tokens
    # ========================================

    def new_access_token(
        self,
        client_id: str,
        user_id: str,
        session_id: str | None = None,
        user_data: UserData | None = None,
    ) -> AccessToken:
        return AccessToken(
            token=generate_access_token(),
            expires_at=datetime.now(UTC) + timedelta(seconds=self.bridge_token_ttl),
            client_id=client_id,
            user_id=user_id,
            session_id=session_id,
            user_data=user_data,
        )

    async def issue_access_token(self, access_token: AccessToken) -> None:
        await self.store.put(
            keys.access_token_key(access_token.token),
            access_token.to_fields(),
            self.bridge_token_ttl,
        )
        logger.info(
            "Issued bridge token %s for user %s",
            mask_secret(access_token.token),
            access_token.user_id,
        )

    async def get_access_token(self, token: str) -> AccessToken | None:
        fields = await self.store.get_all(keys.access_token_key(token))
        if not fields:
            return None
        return AccessToken.from_fields(fields)

    async def delete_access_token(self, token: str) -> None:
        await self.store.delete(keys.access_token_key(token))
        logger.info("Revoked bridge token %s", mask_secret(token))

    async def authenticate_bearer(self, token: str) -> AccessToken:
        """
        Resolve a bearer credential presented to an MCP-facing endpoint.

        Raises:
            InvalidToken: If the token is unknown or past its expiry
        """
        if not token:
            raise InvalidToken("Missing bearer token")
        access_token = await self.get_access_token(token)
        if access_token is None:
            raise InvalidToken("Unknown or expired access token")
        if access_token.is_expired():
            raise InvalidToken("Access token expired")
        return access_token
