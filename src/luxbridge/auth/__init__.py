"""OAuth authorization server, bridge tokens and identity verification.

``auth.routes`` and ``auth.setup`` depend on the application context and are
imported directly.
"""

from .identity import PrivyIdentityVerifier, VerifiedIdentity
from .issuer import OAuthIssuer
from .middleware import BearerAuthMiddleware
from .models import AccessToken, AuthorizationCode, OAuthClient, UserData
from .oauth2_server import OAuth2Server, TokenResponse

__all__ = [
    "AccessToken",
    "AuthorizationCode",
    "BearerAuthMiddleware",
    "OAuth2Server",
    "OAuthClient",
    "OAuthIssuer",
    "PrivyIdentityVerifier",
    "TokenResponse",
    "UserData",
    "VerifiedIdentity",
]
