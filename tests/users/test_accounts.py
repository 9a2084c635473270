"""
Tests for password accounts in the bridge and platform-native namespaces.
"""

import re

import pytest

from luxbridge.core.constants import Platform
from luxbridge.core.exceptions import IdentityConflict
from luxbridge.storage import keys
from luxbridge.users.models import BridgeUserRef, PlatformUserRef


class TestBridgeUsers:
    """Test bridge user accounts."""

    @pytest.mark.asyncio
    async def test_create_user(self, accounts, store):
        """Users are keyed by lower-cased email with a reverse id key."""
        user = await accounts.create_user("Alice@Example.com", "s3cret", "Alice")

        assert re.match(r"^user_\d{13}_[a-z0-9]{13}$", user.user_id)
        assert user.email == "alice@example.com"
        assert user.password_hash != "s3cret"
        assert await store.get_all(keys.user_id_key(user.user_id)) == {
            "email": "alice@example.com"
        }

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, accounts):
        """A second user with the same email is refused."""
        await accounts.create_user("alice@example.com", "pw", "Alice")

        with pytest.raises(IdentityConflict):
            await accounts.create_user("ALICE@example.com", "pw", "Other")

    @pytest.mark.asyncio
    async def test_validate_credentials(self, accounts):
        """Only the right password validates."""
        await accounts.create_user("alice@example.com", "pw", "Alice")

        assert await accounts.validate_credentials("alice@example.com", "pw") is not None
        assert await accounts.validate_credentials("alice@example.com", "nope") is None
        assert await accounts.validate_credentials("nobody@example.com", "pw") is None


class TestPlatformUsers:
    """Test platform-native accounts."""

    @pytest.mark.asyncio
    async def test_same_email_in_both_namespaces(self, accounts):
        """Bridge and platform namespaces never collide."""
        bridge = await accounts.create_user("alice@example.com", "pw", "Alice")
        native = await accounts.create_platform_user(
            Platform.REALT, "alice@example.com", "pw2", "Alice R"
        )

        assert native.user_id.startswith("realt_user_")
        assert native.platform == Platform.REALT
        assert bridge.user_id != native.user_id

    @pytest.mark.asyncio
    async def test_platform_scoped_uniqueness(self, accounts):
        """An email is unique per platform, not across platforms."""
        await accounts.create_platform_user(Platform.REALT, "a@b.c", "pw", "A")
        await accounts.create_platform_user(Platform.MASTERWORKS, "a@b.c", "pw", "A")

        with pytest.raises(IdentityConflict):
            await accounts.create_platform_user(Platform.REALT, "A@B.C", "pw", "A")

    @pytest.mark.asyncio
    async def test_validate_platform_credentials(self, accounts):
        """Platform credentials are checked in the platform namespace."""
        await accounts.create_platform_user(Platform.MASTERWORKS, "a@b.c", "pw", "A")

        assert await accounts.validate_platform_credentials(Platform.MASTERWORKS, "a@b.c", "pw")
        assert await accounts.validate_platform_credentials(Platform.REALT, "a@b.c", "pw") is None
        assert await accounts.validate_credentials("a@b.c", "pw") is None


class TestResolveUserRef:
    """Test id lookups across namespaces."""

    @pytest.mark.asyncio
    async def test_resolves_each_namespace(self, accounts):
        """Ids resolve to a tagged reference of their namespace."""
        bridge = await accounts.create_user("alice@example.com", "pw", "Alice")
        native = await accounts.create_platform_user(Platform.REALT, "bob@example.com", "pw", "Bob")

        assert await accounts.resolve_user_ref(bridge.user_id) == BridgeUserRef(
            user_id=bridge.user_id, email="alice@example.com"
        )
        assert await accounts.resolve_user_ref(native.user_id) == PlatformUserRef(
            user_id=native.user_id, platform=Platform.REALT, email="bob@example.com"
        )
        assert await accounts.resolve_user_ref("user_0_unknown") is None

    @pytest.mark.asyncio
    async def test_get_user_by_id_hides_password(self, accounts):
        """The id lookup returns a view without the password hash."""
        native = await accounts.create_platform_user(Platform.REALT, "bob@example.com", "pw", "Bob")

        view = await accounts.get_user_by_id(native.user_id)

        assert view.namespace == "platform"
        assert view.platform == Platform.REALT
        assert "password_hash" not in view.model_dump()

    @pytest.mark.asyncio
    async def test_delete_user(self, accounts, store):
        """Deleting removes both the record and the reverse key."""
        user = await accounts.create_user("alice@example.com", "pw", "Alice")

        assert await accounts.delete_user(user.user_id) is True

        assert await accounts.get_user_by_email("alice@example.com") is None
        assert await store.get_all(keys.user_id_key(user.user_id)) == {}
        assert await accounts.delete_user(user.user_id) is False
