"""Application context and lifecycle management for the LuxBridge MCP server."""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastmcp import FastMCP

from luxbridge.auth.identity import PrivyIdentityVerifier
from luxbridge.auth.issuer import OAuthIssuer
from luxbridge.auth.oauth2_server import OAuth2Server
from luxbridge.config import Settings, get_settings
from luxbridge.platforms.client import PlatformClient
from luxbridge.platforms.links import PlatformLinkStore
from luxbridge.platforms.proxy import AuthenticatedCallProxy
from luxbridge.sessions.manager import SessionManager
from luxbridge.storage.base import CredentialStore
from luxbridge.storage.factory import create_and_initialize_store
from luxbridge.users.accounts import AccountStore
from luxbridge.users.identities import IdentityStore

from .exceptions import LuxBridgeError, MCPToolError
from .logging import logger

# Global context storage
_app_context: Optional["LuxBridgeContext"] = None
_context_lock: asyncio.Lock | None = None  # Created in async context


@dataclass
class LuxBridgeContext:
    """Context for the LuxBridge MCP server."""

    settings: Settings
    store: CredentialStore
    issuer: OAuthIssuer
    oauth2_server: OAuth2Server
    sessions: SessionManager
    links: PlatformLinkStore
    proxy: AuthenticatedCallProxy
    identities: IdentityStore
    accounts: AccountStore
    platform_client: PlatformClient
    identity_verifier: PrivyIdentityVerifier
    # Periodic expired-session sweep, when enabled
    cleanup_task: asyncio.Task | None = None


def build_context(
    store: CredentialStore,
    settings: Settings,
    platform_client: PlatformClient | None = None,
    identity_verifier: PrivyIdentityVerifier | None = None,
) -> LuxBridgeContext:
    """Wire every component around an already connected store."""
    platform_client = platform_client or PlatformClient(settings)
    identity_verifier = identity_verifier or PrivyIdentityVerifier(settings)

    issuer = OAuthIssuer(store, settings)
    sessions = SessionManager(store, settings)
    accounts = AccountStore(store)
    identities = IdentityStore(store, accounts)
    links = PlatformLinkStore(store, sessions, platform_client, settings)

    return LuxBridgeContext(
        settings=settings,
        store=store,
        issuer=issuer,
        oauth2_server=OAuth2Server(issuer, sessions, identities, settings),
        sessions=sessions,
        links=links,
        proxy=AuthenticatedCallProxy(sessions, links, platform_client),
        identities=identities,
        accounts=accounts,
        platform_client=platform_client,
        identity_verifier=identity_verifier,
    )


def set_app_context(context: Optional["LuxBridgeContext"]) -> None:
    """Store the application context globally."""
    global _app_context
    _app_context = context


def get_app_context() -> Optional["LuxBridgeContext"]:
    """Get the stored application context."""
    return _app_context


def require_app_context() -> LuxBridgeContext:
    """Get the application context or fail the tool call."""
    if _app_context is None:
        raise MCPToolError("Application context not available")
    return _app_context


async def _sweep_expired_sessions(sessions: SessionManager, interval: int) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await sessions.cleanup_expired_sessions()
        except LuxBridgeError as e:
            logger.error(f"Session cleanup failed: {e}")


async def initialize_global_context() -> LuxBridgeContext:
    """Initialize the global application context once.

    This should be called at application startup, not per-request.

    Returns:
        LuxBridgeContext: The initialized context
    """
    global _app_context, _context_lock

    if _context_lock is None:
        _context_lock = asyncio.Lock()

    async with _context_lock:
        if _app_context is not None:
            logger.info("Using existing application context (singleton)")
            return _app_context

        logger.info("Initializing global application context (first time)...")
        settings = get_settings()

        store = await create_and_initialize_store(settings)
        logger.info(f"✓ Credential store ready (backend={settings.store_backend})")

        context = build_context(store, settings)
        if not settings.has_privy_config():
            logger.warning("⚠ Privy is not configured - identity tokens cannot be verified")

        if settings.session_cleanup_interval > 0:
            context.cleanup_task = asyncio.create_task(
                _sweep_expired_sessions(context.sessions, settings.session_cleanup_interval),
            )
            logger.info(
                f"✓ Session cleanup scheduled every {settings.session_cleanup_interval}s",
            )

        _app_context = context
        logger.info("✓ Global application context initialized successfully")
        return context


async def cleanup_global_context() -> None:
    """Clean up the global application context.

    This should be called at application shutdown.
    """
    global _app_context

    if _app_context is None:
        logger.info("No global context to clean up")
        return

    logger.info("Starting cleanup of global application context...")
    context = _app_context

    if context.cleanup_task is not None:
        context.cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await context.cleanup_task
        logger.info("✓ Session cleanup stopped")

    await context.platform_client.close()
    await context.identity_verifier.close()
    logger.info("✓ HTTP clients closed")

    try:
        await context.store.close()
        logger.info("✓ Credential store closed")
    except LuxBridgeError as e:
        logger.error(f"Error closing credential store: {e}", exc_info=True)

    _app_context = None
    logger.info("✓ Global application context cleanup completed")


@asynccontextmanager
async def luxbridge_lifespan(_server: FastMCP) -> AsyncIterator[LuxBridgeContext]:
    """
    Lifespan context manager for FastMCP.

    NOTE: FastMCP HTTP mode may enter this per session, not once at startup,
    so it only hands out the singleton context.

    Args:
        _server: The FastMCP server instance (required by FastMCP interface)

    Yields:
        LuxBridgeContext: The singleton context
    """
    context = await initialize_global_context()
    try:
        yield context
    finally:
        # Cleanup happens at application shutdown via cleanup_global_context()
        pass
