"""
Tests for verified identities and their resolution to bridge users.
"""

import asyncio

import pytest

from luxbridge.core.exceptions import StoreError
from luxbridge.users.models import LuxBridgeUser


class TestIdentityRecords:
    """Test identity record storage."""

    @pytest.mark.asyncio
    async def test_store_and_get_user(self, identities):
        """Identity records round-trip by privy id."""
        await identities.store_user(
            LuxBridgeUser(user_id="lux_p1", privy_id="p1", email="a@b.c", name="A")
        )

        user = await identities.get_user("p1")

        assert user.user_id == "lux_p1"
        assert user.wallet_address is None
        assert await identities.get_user("unknown") is None

    @pytest.mark.asyncio
    async def test_update_activity(self, identities):
        """Activity stamps move last_active_at forward."""
        await identities.store_user(LuxBridgeUser(user_id="lux_p1", privy_id="p1"))
        before = await identities.get_user("p1")

        assert await identities.update_activity("p1") is True

        assert (await identities.get_user("p1")).last_active_at >= before.last_active_at
        assert await identities.update_activity("unknown") is False

    @pytest.mark.asyncio
    async def test_update_activity_swallows_store_errors(self, identities, store):
        """Activity bookkeeping never raises."""
        async def broken(key):
            raise StoreError("down")

        store.get_all = broken

        assert await identities.update_activity("p1") is False


class TestResolveIdentity:
    """Test identity to bridge user resolution."""

    @pytest.mark.asyncio
    async def test_creates_user_and_mapping(self, identities, accounts):
        """A new identity with an email gets a bridge user and a mapping."""
        user_id = await identities.resolve_identity("p1", "alice@example.com")

        account = await accounts.get_user_by_email("alice@example.com")
        mapping = await identities.get_mapping("p1")
        assert account.user_id == user_id
        assert account.name == "alice"
        assert mapping.user_id == user_id

    @pytest.mark.asyncio
    async def test_resolution_is_idempotent(self, identities):
        """Repeated logins resolve to the same user."""
        first = await identities.resolve_identity("p1", "alice@example.com", "Alice")
        second = await identities.resolve_identity("p1", "alice@example.com", "Alice")

        assert first == second

    @pytest.mark.asyncio
    async def test_reuses_existing_account_by_email(self, identities, accounts):
        """An existing bridge user with the same email is adopted."""
        existing = await accounts.create_user("alice@example.com", "pw", "Alice")

        assert await identities.resolve_identity("p1", "alice@example.com") == existing.user_id

    @pytest.mark.asyncio
    async def test_without_mapping_or_email(self, identities):
        """Nothing to resolve against yields None."""
        assert await identities.resolve_identity("p1") is None

    @pytest.mark.asyncio
    async def test_mapping_wins_over_email(self, identities, accounts):
        """Once mapped, the identity keeps its user even if the email changes."""
        user_id = await identities.resolve_identity("p1", "alice@example.com")

        assert await identities.resolve_identity("p1", "new@example.com") == user_id
        assert await accounts.get_user_by_email("new@example.com") is None

    @pytest.mark.asyncio
    async def test_concurrent_resolution_converges(self, identities):
        """Racing first logins all end up on one user."""
        results = await asyncio.gather(
            *(identities.resolve_identity("p1", "alice@example.com") for _ in range(5))
        )

        assert len(set(results)) == 1

    @pytest.mark.asyncio
    async def test_first_mapping_wins(self, identities):
        """create_mapping returns the existing mapping instead of overwriting it."""
        first = await identities.create_mapping("p1", "user_a", "a@b.c")
        second = await identities.create_mapping("p1", "user_b", "b@b.c")

        assert second.user_id == first.user_id == "user_a"

    @pytest.mark.asyncio
    async def test_delete_mapping(self, identities):
        """Deleted mappings are gone."""
        await identities.create_mapping("p1", "user_a", "a@b.c")

        await identities.delete_mapping("p1")

        assert await identities.get_mapping("p1") is None
