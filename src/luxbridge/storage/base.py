"""
Base protocol/interface for credential store implementations.
All store backends must implement this protocol.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CredentialStore(Protocol):
    """
    Protocol defining a durable hash store with per-record TTLs.

    Records are flat ``dict[str, str]`` hashes addressed by string keys. The
    store has no domain knowledge; every higher component is written against
    this interface so the Redis and in-memory backends are interchangeable.
    """

    async def ensure_ready(self) -> None:
        """
        Establish the connection if it does not exist yet.
        Safe to call any number of times, including concurrently.
        """
        ...

    async def put(
        self,
        key: str,
        fields: dict[str, str],
        ttl_seconds: int | None = None,
    ) -> None:
        """
        Replace the record stored under ``key``.

        A TTL sets an absolute expiry at write time. A write without a TTL
        leaves the record without any expiry, so callers rewriting an
        expiring record must recompute and pass the remaining TTL.

        Args:
            key: Record key
            fields: Complete field mapping of the new record
            ttl_seconds: Lifetime in seconds, or None for no expiry
        """
        ...

    async def put_if_absent(
        self,
        key: str,
        fields: dict[str, str],
        ttl_seconds: int | None = None,
    ) -> bool:
        """
        Create the record only when no record exists under ``key``.

        Returns:
            True if the record was created, False if one already existed
        """
        ...

    async def get_all(self, key: str) -> dict[str, str]:
        """
        Read every field of a record.

        Returns:
            The field mapping, or an empty dict for a missing or expired record
        """
        ...

    async def delete(self, key: str) -> None:
        """Remove a record. Deleting a missing key is not an error."""
        ...

    async def scan_keys(self, prefix: str) -> list[str]:
        """List every live key starting with ``prefix``."""
        ...

    async def ttl(self, key: str) -> int | None:
        """
        Remaining lifetime of a record in seconds.

        Returns:
            Seconds left, or None if the record has no expiry or does not exist
        """
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...
