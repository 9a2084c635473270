"""
Tests for application context lifecycle, store selection and request tracking.
"""

import asyncio
import contextlib
import logging

import pytest

from luxbridge.config import reset_settings
from luxbridge.core import context as context_module
from luxbridge.core import track_request
from luxbridge.core.context import (
    _sweep_expired_sessions,
    cleanup_global_context,
    get_app_context,
    initialize_global_context,
    require_app_context,
)
from luxbridge.core.exceptions import ConfigurationError, MCPToolError, StoreError
from luxbridge.core.logging import (
    RequestIdFilter,
    bind_request_id,
    configure_logging,
    mask_secret,
    request_id_ctx,
)
from luxbridge.storage import InMemoryCredentialStore
from luxbridge.storage.factory import create_credential_store
from luxbridge.storage.redis_store import RedisCredentialStore


@pytest.fixture
def memory_env(monkeypatch):
    """Environment selecting the in-memory store, with a clean global context."""
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("SESSION_CLEANUP_INTERVAL", "0")
    monkeypatch.setattr(context_module, "_app_context", None)
    monkeypatch.setattr(context_module, "_context_lock", None)
    reset_settings()
    yield
    reset_settings()


class TestStoreFactory:
    """Test backend selection."""

    def test_backends(self, settings):
        """memory and redis map to their stores; anything else is refused."""
        assert isinstance(create_credential_store(settings), InMemoryCredentialStore)
        assert isinstance(
            create_credential_store(settings.model_copy(update={"store_backend": "redis"})),
            RedisCredentialStore,
        )
        with pytest.raises(ConfigurationError):
            create_credential_store(settings.model_copy(update={"store_backend": "sqlite"}))


class TestGlobalContext:
    """Test initialization and cleanup of the singleton context."""

    @pytest.mark.asyncio
    async def test_initialize_and_cleanup(self, memory_env):
        """The context is created once and torn down at shutdown."""
        context = await initialize_global_context()

        assert await initialize_global_context() is context
        assert get_app_context() is context
        assert require_app_context() is context
        assert context.store.ready is True
        assert context.cleanup_task is None

        await cleanup_global_context()

        assert get_app_context() is None
        assert context.store.ready is False

    @pytest.mark.asyncio
    async def test_cleanup_task_cancelled(self, memory_env, monkeypatch):
        """A scheduled sweep is cancelled on cleanup."""
        monkeypatch.setenv("SESSION_CLEANUP_INTERVAL", "3600")
        reset_settings()

        context = await initialize_global_context()
        task = context.cleanup_task

        await cleanup_global_context()

        assert task.cancelled()

    def test_require_without_context(self, memory_env):
        """Tools fail cleanly before startup."""
        with pytest.raises(MCPToolError):
            require_app_context()

    @pytest.mark.asyncio
    async def test_cleanup_without_context(self, memory_env):
        """Cleaning up twice is harmless."""
        await cleanup_global_context()


class TestSessionSweep:
    """Test the periodic expired-session sweep."""

    @pytest.mark.asyncio
    async def test_sweep_survives_store_errors(self, sessions, monkeypatch):
        """A failing sweep is logged and the loop keeps going."""
        calls = 0

        async def flaky_cleanup():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise StoreError("down")
            return 0

        monkeypatch.setattr(sessions, "cleanup_expired_sessions", flaky_cleanup)
        task = asyncio.create_task(_sweep_expired_sessions(sessions, 0))
        while calls < 2:
            await asyncio.sleep(0)
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

        assert calls >= 2


class TestTrackRequest:
    """Test tool request tracking."""

    @pytest.mark.asyncio
    async def test_sets_request_id_during_call(self):
        """A request id is visible while the tool runs and cleared afterwards."""
        seen = []

        @track_request("demo")
        async def tool():
            seen.append(request_id_ctx.get())
            return "ok"

        assert await tool() == "ok"
        assert len(seen[0]) == 8
        assert request_id_ctx.get() is None

    @pytest.mark.asyncio
    async def test_reraises_errors(self):
        """Tool errors propagate unchanged."""

        @track_request("demo")
        async def tool():
            raise MCPToolError("nope")

        with pytest.raises(MCPToolError):
            await tool()
        assert request_id_ctx.get() is None


class TestLoggingHelpers:
    """Test logging helpers."""

    def test_request_id_filter(self):
        """Records carry the current request id prefix."""
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        token = request_id_ctx.set("abc12345")
        try:
            RequestIdFilter().filter(record)
        finally:
            request_id_ctx.reset(token)

        assert record.request_id == "[abc12345] "

    def test_mask_secret(self):
        """Secrets are shortened for logs."""
        assert mask_secret("abcdefghijklmnop") == "abcdefgh..."
        assert mask_secret(None) == "<empty>"

    def test_bind_request_id(self):
        """An explicit id is bound for the block and restored afterwards."""
        with bind_request_id("feedbeef") as request_id:
            assert request_id == "feedbeef"
            assert request_id_ctx.get() == "feedbeef"

        assert request_id_ctx.get() is None

    def test_configure_logging_is_idempotent(self):
        """Reconfiguring never stacks request id filters on a handler."""
        configure_logging(debug=False)
        configure_logging(debug=False)

        for handler in logging.root.handlers:
            filters = [f for f in handler.filters if isinstance(f, RequestIdFilter)]
            assert len(filters) <= 1
        assert logging.getLogger("httpx").level == logging.WARNING
