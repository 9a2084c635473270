"""
OAuth2 Authorization Server for the LuxBridge MCP server.

Implements the authorization-code grant with optional PKCE on top of the
code/token issuer:
- Authorization Server Metadata (RFC 8414)
- Dynamic Client Registration (RFC 7591)
- Authorization code creation and completion with a verified identity
- Token exchange, which also opens the user's multi-platform session
"""

import logging
import secrets
from datetime import UTC, datetime
from urllib.parse import urlparse

from pydantic import BaseModel

from luxbridge.config import Settings
from luxbridge.core.exceptions import (
    InvalidClient,
    InvalidGrant,
    InvalidRequest,
    UnsupportedGrantType,
)
from luxbridge.core.logging import mask_secret
from luxbridge.sessions.manager import SessionManager
from luxbridge.users.identities import IdentityStore

from .identity import VerifiedIdentity
from .ids import generate_client_id, generate_client_secret
from .issuer import OAuthIssuer
from .models import AuthorizationCode, OAuthClient, UserData
from .pkce import SUPPORTED_METHODS, verify_code_verifier

logger = logging.getLogger(__name__)


class TokenResponse(BaseModel):
    """Token endpoint response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    session_id: str | None = None


def _is_absolute_uri(uri: object) -> bool:
    if not isinstance(uri, str):
        return False
    parsed = urlparse(uri)
    return bool(parsed.scheme and (parsed.netloc or parsed.path))


class OAuth2Server:
    """
    OAuth2 authorization server.

    The issuer stores codes and tokens; this class owns the protocol checks
    around them. Redeemed codes are deleted here, right after validation.
    """

    def __init__(
        self,
        issuer: OAuthIssuer,
        sessions: SessionManager,
        identities: IdentityStore,
        settings: Settings,
    ):
        """
        Initialize OAuth2 server.

        Args:
            issuer: Code and token store
            sessions: Session manager used to open a session per login
            identities: Identity store used to resolve the login to a bridge user
            settings: Application settings (issuer URL, token lifetime)
        """
        self.issuer = issuer
        self.sessions = sessions
        self.identities = identities
        self.issuer_url = settings.oauth2_issuer or ""
        self.bridge_token_ttl = settings.bridge_token_ttl

    def get_authorization_server_metadata(self) -> dict:
        """
        Get OAuth 2.0 Authorization Server Metadata (RFC 8414).

        Returns:
            Authorization server metadata
        """
        return {
            "issuer": self.issuer_url,
            "authorization_endpoint": f"{self.issuer_url}/oauth/authorize",
            "token_endpoint": f"{self.issuer_url}/oauth/token",
            "registration_endpoint": f"{self.issuer_url}/oauth/register",
            "response_types_supported": ["code"],
            "grant_types_supported": ["authorization_code"],
            "code_challenge_methods_supported": list(SUPPORTED_METHODS),
            "token_endpoint_auth_methods_supported": ["none", "client_secret_post"],
        }

    async def register_client(
        self,
        client_name: str,
        redirect_uris: list[str] | str,
    ) -> OAuthClient:
        """
        Register a new OAuth2 client (Dynamic Client Registration - RFC 7591).

        Args:
            client_name: Client application name
            redirect_uris: Allowed redirect URIs; entries that are not absolute URIs are dropped

        Returns:
            Registered OAuth2 client

        Raises:
            InvalidRequest: If the name is blank or no valid redirect URI remains
        """
        if not isinstance(client_name, str) or not client_name.strip():
            raise InvalidRequest("Client name must be a non-empty string")

        uris = redirect_uris if isinstance(redirect_uris, list) else [redirect_uris]
        valid_uris = [uri for uri in uris if _is_absolute_uri(uri)]
        if not valid_uris:
            raise InvalidRequest("At least one valid redirect URI is required")

        client_id = generate_client_id()
        client = OAuthClient(
            id=client_id,
            client_id=client_id,
            client_secret=generate_client_secret(),
            name=client_name.strip(),
            redirect_uris=valid_uris,
        )
        await self.issuer.issue_client(client)
        return client

    async def create_authorization_code(
        self,
        client_id: str,
        redirect_uri: str,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
        code: str | None = None,
    ) -> AuthorizationCode:
        """
        Create a pending authorization code, not yet bound to a user.

        Args:
            client_id: Client ID
            redirect_uri: Redirect URI; must be registered for the client
            code_challenge: PKCE code challenge
            code_challenge_method: PKCE method (S256 or plain)
            code: Code value chosen by the authorization front end, generated if omitted

        Raises:
            InvalidRequest: If the client, redirect URI or PKCE method is invalid
        """
        if not client_id or not redirect_uri:
            raise InvalidRequest("client_id and redirect_uri are required")

        client = await self.issuer.get_client(client_id)
        if client is None:
            raise InvalidRequest("Invalid client_id")
        if redirect_uri not in client.redirect_uris:
            raise InvalidRequest("Invalid redirect_uri")
        if code_challenge_method and code_challenge_method not in SUPPORTED_METHODS:
            raise InvalidRequest(f"Unsupported code_challenge_method: {code_challenge_method}")

        auth_code = self.issuer.new_auth_code(
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            code=code,
        )
        await self.issuer.issue_auth_code(auth_code)
        return auth_code

    async def complete_authorization(
        self,
        code: str,
        identity: VerifiedIdentity,
    ) -> AuthorizationCode:
        """
        Bind a verified identity to a pending code.

        Raises:
            InvalidGrant: If the code is unknown or expired
        """
        user_data = UserData(
            email=identity.email,
            privy_user_id=identity.privy_id,
            wallet_address=identity.wallet_address,
        )
        auth_code = await self.issuer.attach_user_to_auth_code(
            code, identity.lux_user_id, user_data
        )
        if auth_code is None:
            raise InvalidGrant("Invalid or expired authorization code")
        return auth_code

    async def exchange_code_for_token(
        self,
        grant_type: str,
        code: str,
        redirect_uri: str,
        client_id: str,
        client_secret: str | None = None,
        code_verifier: str | None = None,
    ) -> TokenResponse:
        """
        Exchange authorization code for a bridge access token.

        Args:
            grant_type: Must be ``authorization_code``
            code: Authorization code
            redirect_uri: Redirect URI the code was issued for
            client_id: Client ID
            client_secret: Client secret; required when the code carries no PKCE challenge
            code_verifier: PKCE code verifier

        Returns:
            Token response including the id of the newly opened session

        Raises:
            UnsupportedGrantType, InvalidRequest, InvalidClient, InvalidGrant
        """
        if grant_type != "authorization_code":
            raise UnsupportedGrantType("Unsupported grant type")
        if not code or not redirect_uri or not client_id:
            raise InvalidRequest("code, redirect_uri and client_id are required")

        client = await self.issuer.get_client(client_id)
        if client is None:
            raise InvalidClient("Invalid client")

        auth_code = await self.issuer.redeem_auth_code(code)
        if auth_code is None:
            raise InvalidGrant("Invalid code")
        if auth_code.client_id != client_id:
            raise InvalidGrant("Invalid code")
        if auth_code.redirect_uri != redirect_uri:
            raise InvalidGrant("Invalid code")
        if not auth_code.user_id.strip():
            raise InvalidGrant("Auth code not yet associated with user")
        if auth_code.is_expired():
            raise InvalidGrant("Code expired")

        if auth_code.code_challenge:
            if not code_verifier:
                raise InvalidRequest("Missing code_verifier for PKCE")
            if not verify_code_verifier(
                code_verifier, auth_code.code_challenge, auth_code.code_challenge_method
            ):
                raise InvalidGrant("Invalid code_verifier for PKCE")
        elif client.client_secret and not secrets.compare_digest(
            client.client_secret, client_secret or ""
        ):
            raise InvalidClient("Invalid client")

        await self.issuer.delete_auth_code(code)

        session_id = None
        if auth_code.user_data is not None:
            session_id = await self._open_session(auth_code, auth_code.user_data)

        access_token = self.issuer.new_access_token(
            client_id=client_id,
            user_id=auth_code.user_id,
            session_id=session_id,
            user_data=auth_code.user_data,
        )
        await self.issuer.issue_access_token(access_token)
        logger.info(
            "Exchanged code %s for bridge token (client %s, session %s)",
            mask_secret(code),
            client_id,
            session_id,
        )
        return TokenResponse(
            access_token=access_token.token,
            expires_in=self.bridge_token_ttl,
            session_id=session_id,
        )

    async def _open_session(self, auth_code: AuthorizationCode, user_data: UserData) -> str:
        """Record the identity, open a session and pin the identity to a bridge user."""
        email = user_data.email or ""
        name = email.split("@")[0] if email else "User"
        privy_id = user_data.privy_user_id or auth_code.user_id

        existing = await self.identities.get_user(privy_id)
        now = datetime.now(UTC)
        lux_user = (existing or VerifiedIdentity(privy_id=privy_id).to_lux_user()).model_copy(
            update={
                "user_id": auth_code.user_id,
                "email": email or None,
                "name": (existing.name if existing and existing.name else name),
                "wallet_address": user_data.wallet_address,
                "last_active_at": now,
            }
        )
        await self.identities.store_user(lux_user)

        session_id = await self.sessions.create_session(auth_code.user_id, "")

        if user_data.privy_user_id and user_data.email:
            await self.identities.resolve_identity(
                user_data.privy_user_id, user_data.email, name
            )
        return session_id
