"""Factory for creating credential store backends."""

import logging

from luxbridge.config import Settings
from luxbridge.core.exceptions import ConfigurationError

from .base import CredentialStore
from .memory_store import InMemoryCredentialStore
from .redis_store import RedisCredentialStore

logger = logging.getLogger(__name__)


def create_credential_store(settings: Settings) -> CredentialStore:
    """
    Create the credential store selected by ``settings.store_backend``.

    Args:
        settings: Application settings

    Returns:
        An unconnected store; call ``ensure_ready()`` before first use

    Raises:
        ConfigurationError: If the backend name is not recognised
    """
    backend = settings.store_backend
    if backend == "redis":
        logger.info("Using Redis credential store")
        return RedisCredentialStore(settings.redis_url)
    if backend == "memory":
        logger.warning("Using in-memory credential store; data is lost on restart")
        return InMemoryCredentialStore()
    raise ConfigurationError(
        f"Unknown store backend: {backend}. Supported: redis, memory",
    )


async def create_and_initialize_store(settings: Settings) -> CredentialStore:
    """Create the configured store and establish its connection."""
    store = create_credential_store(settings)
    await store.ensure_ready()
    return store
