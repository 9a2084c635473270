"""Random identifier generators for OAuth clients, codes and tokens."""

import secrets

from luxbridge.core.constants import (
    ACCESS_TOKEN_LENGTH,
    AUTH_CODE_LENGTH,
    CLIENT_ID_LENGTH,
    CLIENT_SECRET_LENGTH,
    ID_ALPHABET,
)


def generate_random_string(length: int = 32, alphabet: str = ID_ALPHABET) -> str:
    """Draw ``length`` characters uniformly from ``alphabet`` using a CSPRNG."""
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_client_id() -> str:
    return generate_random_string(CLIENT_ID_LENGTH)


def generate_client_secret() -> str:
    return generate_random_string(CLIENT_SECRET_LENGTH)


def generate_auth_code() -> str:
    return generate_random_string(AUTH_CODE_LENGTH)


def generate_access_token() -> str:
    return generate_random_string(ACCESS_TOKEN_LENGTH)
