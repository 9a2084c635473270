"""Credential store backends and record serialization."""

from .base import CredentialStore
from .factory import create_and_initialize_store, create_credential_store
from .memory_store import InMemoryCredentialStore
from .records import HashRecord
from .redis_store import RedisCredentialStore

__all__ = [
    "CredentialStore",
    "HashRecord",
    "InMemoryCredentialStore",
    "RedisCredentialStore",
    "create_and_initialize_store",
    "create_credential_store",
]
