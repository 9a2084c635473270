"""PKCE (RFC 7636) code verifier checks."""

import base64
import hashlib
import hmac

SUPPORTED_METHODS = ("S256", "plain")


def compute_s256_challenge(code_verifier: str) -> str:
    """BASE64URL(SHA256(verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def verify_code_verifier(
    code_verifier: str,
    code_challenge: str,
    code_challenge_method: str | None = None,
) -> bool:
    """
    Check a verifier against the challenge stored with the authorization code.

    An empty method means ``plain``. Unknown methods never verify.
    """
    method = code_challenge_method or "plain"
    if method == "S256":
        try:
            expected = compute_s256_challenge(code_verifier)
        except UnicodeEncodeError:
            return False
    elif method == "plain":
        expected = code_verifier
    else:
        return False
    return hmac.compare_digest(expected.encode(), code_challenge.encode())
