"""Custom exceptions for the LuxBridge MCP server."""


class MCPToolError(Exception):
    """Custom exception for MCP tool errors that should be returned as JSON-RPC errors."""

    def __init__(self, message: str, code: int = -32000):
        self.message = message
        self.code = code
        super().__init__(message)


# ========================================
# Base Exceptions
# ========================================


class LuxBridgeError(Exception):
    """Base exception for all LuxBridge errors."""


class ConfigurationError(LuxBridgeError):
    """Configuration validation failed."""


# ========================================
# Credential Store Exceptions
# ========================================


class StoreError(LuxBridgeError):
    """Credential store connection or command failed."""


# ========================================
# OAuth Exceptions
# ========================================


class OAuthError(LuxBridgeError):
    """Base exception for OAuth protocol errors.

    Carries the RFC 6749 error code and the HTTP status the token
    endpoint should answer with.
    """

    error = "server_error"
    status_code = 500

    def __init__(self, description: str = ""):
        self.description = description
        super().__init__(description or self.error)

    def to_dict(self) -> dict[str, str]:
        payload = {"error": self.error}
        if self.description:
            payload["error_description"] = self.description
        return payload


class InvalidRequest(OAuthError):
    """Request is missing a parameter or carries a malformed one."""

    error = "invalid_request"
    status_code = 400


class InvalidClient(OAuthError):
    """Client authentication failed."""

    error = "invalid_client"
    status_code = 401


class InvalidGrant(OAuthError):
    """Authorization code is unknown, expired, or bound to another client."""

    error = "invalid_grant"
    status_code = 400


class InvalidToken(OAuthError):
    """Bridge access token is unknown or expired."""

    error = "invalid_token"
    status_code = 401


class UnsupportedGrantType(OAuthError):
    """Grant type is not supported by the token endpoint."""

    error = "unsupported_grant_type"
    status_code = 400


# ========================================
# Session Exceptions
# ========================================


class SessionNotFound(LuxBridgeError):
    """Session is missing or expired."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found or expired")


# ========================================
# Platform Exceptions
# ========================================


class UnsupportedPlatform(LuxBridgeError, ValueError):
    """Platform key is not one of the supported platforms."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"Unsupported platform: {platform}")


class PlatformError(LuxBridgeError):
    """Base exception for platform link and platform API errors."""

    def __init__(self, platform: str, message: str):
        self.platform = platform
        super().__init__(message)


class PlatformNotLinked(PlatformError):
    """No active link exists for the requested platform."""

    def __init__(self, platform: str):
        super().__init__(platform, f"Platform {platform} not linked or inactive")


class PlatformAuthExpired(PlatformError):
    """Platform rejected the stored credential with HTTP 401."""

    def __init__(self, platform: str):
        super().__init__(platform, f"Platform {platform} authentication expired")


class PlatformLoginFailed(PlatformError):
    """Platform refused the credentials offered while linking."""

    def __init__(self, platform: str, reason: str):
        self.reason = reason
        super().__init__(platform, f"Platform {platform} login failed: {reason}")


class PlatformCallFailed(PlatformError):
    """Platform API call failed with a non-401 error, a timeout, or a network error."""

    def __init__(self, platform: str, detail: str, status_code: int | None = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(platform, f"Platform API call failed: {detail}")


# ========================================
# Identity Exceptions
# ========================================


class IdentityConflict(LuxBridgeError):
    """A record that was expected to be new already exists."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Identity record already exists: {key}")
