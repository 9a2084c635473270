"""Key builders for every record kept in the credential store."""

from luxbridge.core.constants import Platform

OAUTH_CLIENT_PREFIX = "oauth:client:"
AUTH_CODE_PREFIX = "oauth:authcode:"
ACCESS_TOKEN_PREFIX = "oauth:token:"
SESSION_PREFIX = "session:"
USER_SESSIONS_PREFIX = "user_sessions:"
PLATFORM_LINK_PREFIX = "platform_link:"


def oauth_client_key(client_id: str) -> str:
    return f"{OAUTH_CLIENT_PREFIX}{client_id}"


def auth_code_key(code: str) -> str:
    return f"{AUTH_CODE_PREFIX}{code}"


def access_token_key(token: str) -> str:
    return f"{ACCESS_TOKEN_PREFIX}{token}"


def session_key(session_id: str) -> str:
    return f"{SESSION_PREFIX}{session_id}"


def user_sessions_key(lux_user_id: str) -> str:
    return f"{USER_SESSIONS_PREFIX}{lux_user_id}"


def platform_link_key(lux_user_id: str, platform: Platform) -> str:
    return f"{PLATFORM_LINK_PREFIX}{lux_user_id}:{platform}"


def lux_user_key(privy_id: str) -> str:
    return f"lux_user:{privy_id}"


def user_mapping_key(privy_user_id: str) -> str:
    return f"privy_user_mapping:{privy_user_id}"


def user_key(email: str) -> str:
    return f"user:{email.lower()}"


def user_id_key(user_id: str) -> str:
    return f"user_id:{user_id}"


def platform_user_key(platform: Platform, email: str) -> str:
    return f"platform_user:{platform}:{email.lower()}"


def platform_user_id_key(user_id: str) -> str:
    return f"platform_user_id:{user_id}"
