"""
Tests for the in-memory credential store.

Covers replace semantics, TTL expiry, create-if-absent and prefix scans.
"""

import pytest

from luxbridge.storage import CredentialStore, InMemoryCredentialStore


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return InMemoryCredentialStore(clock=clock)


class TestInMemoryCredentialStore:
    """Test the dictionary-backed store."""

    def test_satisfies_protocol(self, memory_store):
        """The in-memory backend implements the CredentialStore protocol."""
        assert isinstance(memory_store, CredentialStore)

    @pytest.mark.asyncio
    async def test_put_replaces_whole_record(self, memory_store):
        """put() drops fields that are not in the new mapping."""
        await memory_store.put("k", {"a": "1", "b": "2"})
        await memory_store.put("k", {"a": "3"})

        assert await memory_store.get_all("k") == {"a": "3"}

    @pytest.mark.asyncio
    async def test_get_all_unknown_key_is_empty(self, memory_store):
        """Missing keys read as an empty mapping."""
        assert await memory_store.get_all("missing") == {}

    @pytest.mark.asyncio
    async def test_record_expires_after_ttl(self, memory_store, clock):
        """A record is gone once its TTL has elapsed."""
        await memory_store.put("k", {"a": "1"}, ttl_seconds=10)

        clock.advance(9)
        assert await memory_store.get_all("k") == {"a": "1"}

        clock.advance(1)
        assert await memory_store.get_all("k") == {}

    @pytest.mark.asyncio
    async def test_ttl_reports_remaining_seconds(self, memory_store, clock):
        """ttl() counts down and is None for records without expiry."""
        await memory_store.put("with_ttl", {"a": "1"}, ttl_seconds=60)
        await memory_store.put("without_ttl", {"a": "1"})

        clock.advance(15)

        assert await memory_store.ttl("with_ttl") == 45
        assert await memory_store.ttl("without_ttl") is None
        assert await memory_store.ttl("missing") is None

    @pytest.mark.asyncio
    async def test_put_without_ttl_clears_previous_ttl(self, memory_store, clock):
        """Rewriting without a TTL leaves a record with no expiry."""
        await memory_store.put("k", {"a": "1"}, ttl_seconds=5)
        await memory_store.put("k", {"a": "2"})

        clock.advance(100)

        assert await memory_store.get_all("k") == {"a": "2"}

    @pytest.mark.asyncio
    async def test_put_with_empty_fields_deletes(self, memory_store):
        """An empty mapping removes the record."""
        await memory_store.put("k", {"a": "1"})
        await memory_store.put("k", {})

        assert await memory_store.get_all("k") == {}

    @pytest.mark.asyncio
    async def test_put_if_absent_only_creates_once(self, memory_store):
        """The second create for the same key loses and leaves the first record."""
        assert await memory_store.put_if_absent("k", {"owner": "first"}) is True
        assert await memory_store.put_if_absent("k", {"owner": "second"}) is False

        assert await memory_store.get_all("k") == {"owner": "first"}

    @pytest.mark.asyncio
    async def test_put_if_absent_succeeds_after_expiry(self, memory_store, clock):
        """An expired record no longer blocks creation."""
        await memory_store.put_if_absent("k", {"owner": "first"}, ttl_seconds=1)
        clock.advance(2)

        assert await memory_store.put_if_absent("k", {"owner": "second"}) is True

    @pytest.mark.asyncio
    async def test_put_if_absent_rejects_empty_fields(self, memory_store):
        """Creating an empty record is a programming error."""
        with pytest.raises(ValueError):
            await memory_store.put_if_absent("k", {})

    @pytest.mark.asyncio
    async def test_scan_keys_matches_prefix_and_skips_expired(self, memory_store, clock):
        """scan_keys() only returns live keys with the prefix."""
        await memory_store.put("session:a", {"x": "1"})
        await memory_store.put("session:b", {"x": "1"}, ttl_seconds=1)
        await memory_store.put("other:c", {"x": "1"})

        clock.advance(5)

        assert await memory_store.scan_keys("session:") == ["session:a"]

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, memory_store):
        """Deleting twice is harmless."""
        await memory_store.put("k", {"a": "1"})
        await memory_store.delete("k")
        await memory_store.delete("k")

        assert await memory_store.get_all("k") == {}

    @pytest.mark.asyncio
    async def test_ready_flag_follows_lifecycle(self, memory_store):
        """ensure_ready() and close() toggle readiness."""
        await memory_store.ensure_ready()
        assert memory_store.ready is True

        await memory_store.close()
        assert memory_store.ready is False
