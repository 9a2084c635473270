"""
Tests for the OAuth code and bridge-token issuer.
"""

import string
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from luxbridge.auth.ids import (
    generate_access_token,
    generate_auth_code,
    generate_client_id,
    generate_client_secret,
    generate_random_string,
)
from luxbridge.auth.models import OAuthClient, UserData
from luxbridge.core.exceptions import InvalidToken
from luxbridge.storage import keys


class TestIdentifierGeneration:
    """Test random identifier generators."""

    def test_lengths(self):
        """Each identifier kind has its fixed length."""
        assert len(generate_client_id()) == 16
        assert len(generate_client_secret()) == 64
        assert len(generate_auth_code()) == 32
        assert len(generate_access_token()) == 64

    def test_alphabet_is_alphanumeric(self):
        """Identifiers only use [A-Za-z0-9]."""
        allowed = set(string.ascii_letters + string.digits)
        assert set(generate_random_string(500)) <= allowed

    def test_non_positive_length_rejected(self):
        """A zero length is refused."""
        with pytest.raises(ValueError):
            generate_random_string(0)

    def test_identifiers_do_not_repeat(self):
        """Tokens drawn from a CSPRNG are unique in practice."""
        assert len({generate_access_token() for _ in range(200)}) == 200


class TestOAuthIssuer:
    """Test code and token lifecycles."""

    @pytest.mark.asyncio
    async def test_client_round_trip(self, issuer):
        """A registered client can be read back."""
        client = OAuthClient(
            id="cid", client_id="cid", client_secret="sec", name="App",
            redirect_uris=["https://app.test/cb"],
        )
        await issuer.issue_client(client)

        loaded = await issuer.get_client("cid")

        assert loaded.redirect_uris == ["https://app.test/cb"]
        assert await issuer.get_client("unknown") is None

    @pytest.mark.asyncio
    async def test_auth_code_written_with_configured_ttl(self, issuer, store, settings):
        """Codes are stored with exactly the auth code TTL."""
        store.put = AsyncMock(wraps=store.put)
        code = issuer.new_auth_code("cid", "https://app.test/cb")

        await issuer.issue_auth_code(code)

        store.put.assert_awaited_once()
        key, _, ttl = store.put.await_args.args
        assert key == keys.auth_code_key(code.code)
        assert ttl == settings.auth_code_ttl == 600

    @pytest.mark.asyncio
    async def test_access_token_written_with_configured_ttl(self, issuer, store, settings):
        """Bridge tokens are stored with exactly the bridge token TTL."""
        store.put = AsyncMock(wraps=store.put)
        token = issuer.new_access_token("cid", "lux_1", session_id="lux_session_1_x")

        await issuer.issue_access_token(token)

        _, _, ttl = store.put.await_args.args
        assert ttl == settings.bridge_token_ttl == 2_592_000
        assert token.expires_at - datetime.now(UTC) > timedelta(days=29)

    @pytest.mark.asyncio
    async def test_redeem_does_not_delete(self, issuer):
        """Reading a code leaves it in place until explicitly deleted."""
        code = issuer.new_auth_code("cid", "https://app.test/cb")
        await issuer.issue_auth_code(code)

        assert await issuer.redeem_auth_code(code.code) is not None
        assert await issuer.redeem_auth_code(code.code) is not None

        await issuer.delete_auth_code(code.code)
        assert await issuer.redeem_auth_code(code.code) is None

    @pytest.mark.asyncio
    async def test_redeem_unknown_code_returns_none(self, issuer):
        """Unknown codes read as None."""
        assert await issuer.redeem_auth_code("nope") is None

    @pytest.mark.asyncio
    async def test_attach_user_keeps_remaining_ttl(self, issuer, store):
        """Binding a user rewrites the code without extending its deadline."""
        code = issuer.new_auth_code("cid", "https://app.test/cb")
        code.expires_at = datetime.now(UTC) + timedelta(seconds=120)
        await issuer.issue_auth_code(code)
        store.put = AsyncMock(wraps=store.put)

        updated = await issuer.attach_user_to_auth_code(
            code.code, "lux_did", UserData(privy_user_id="did", email="a@b.c")
        )

        assert updated.user_id == "lux_did"
        _, _, ttl = store.put.await_args.args
        assert 0 < ttl <= 120

    @pytest.mark.asyncio
    async def test_attach_user_to_expired_code(self, issuer, store):
        """An expired code is deleted instead of being bound."""
        code = issuer.new_auth_code("cid", "https://app.test/cb")
        code.expires_at = datetime.now(UTC) - timedelta(seconds=1)
        await store.put(keys.auth_code_key(code.code), code.to_fields())

        assert await issuer.attach_user_to_auth_code(code.code, "lux_did") is None
        assert await store.get_all(keys.auth_code_key(code.code)) == {}

    @pytest.mark.asyncio
    async def test_authenticate_bearer(self, issuer):
        """A stored token authenticates; unknown and expired ones do not."""
        token = issuer.new_access_token("cid", "lux_1")
        await issuer.issue_access_token(token)

        assert (await issuer.authenticate_bearer(token.token)).user_id == "lux_1"

        with pytest.raises(InvalidToken):
            await issuer.authenticate_bearer("unknown")
        with pytest.raises(InvalidToken):
            await issuer.authenticate_bearer("")

    @pytest.mark.asyncio
    async def test_expired_token_rejected_before_store_eviction(self, issuer, store):
        """A token past expires_at is refused even if the record still exists."""
        token = issuer.new_access_token("cid", "lux_1")
        token.expires_at = datetime.now(UTC) - timedelta(seconds=1)
        await store.put(keys.access_token_key(token.token), token.to_fields())

        with pytest.raises(InvalidToken, match="expired"):
            await issuer.authenticate_bearer(token.token)

    @pytest.mark.asyncio
    async def test_delete_access_token(self, issuer):
        """Revoked tokens stop authenticating."""
        token = issuer.new_access_token("cid", "lux_1")
        await issuer.issue_access_token(token)
        await issuer.delete_access_token(token.token)

        assert await issuer.get_access_token(token.token) is None
