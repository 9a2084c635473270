"""In-process credential store for local development and tests."""

import math
import time
from collections.abc import Callable


class InMemoryCredentialStore:
    """Dictionary-backed store with Redis-like TTL semantics.

    Expired records are evicted lazily when touched. ``clock`` returns
    monotonic seconds and can be replaced to simulate the passage of time.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._records: dict[str, tuple[dict[str, str], float | None]] = {}
        self.ready = False

    def _live(self, key: str) -> dict[str, str] | None:
        entry = self._records.get(key)
        if entry is None:
            return None
        fields, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._records[key]
            return None
        return fields

    async def ensure_ready(self) -> None:
        self.ready = True

    async def put(
        self,
        key: str,
        fields: dict[str, str],
        ttl_seconds: int | None = None,
    ) -> None:
        if not fields:
            self._records.pop(key, None)
            return
        expires_at = None
        if ttl_seconds is not None:
            expires_at = self._clock() + max(int(ttl_seconds), 1)
        self._records[key] = (dict(fields), expires_at)

    async def put_if_absent(
        self,
        key: str,
        fields: dict[str, str],
        ttl_seconds: int | None = None,
    ) -> bool:
        if not fields:
            raise ValueError("put_if_absent requires at least one field")
        if self._live(key) is not None:
            return False
        await self.put(key, fields, ttl_seconds)
        return True

    async def get_all(self, key: str) -> dict[str, str]:
        fields = self._live(key)
        return dict(fields) if fields else {}

    async def delete(self, key: str) -> None:
        self._records.pop(key, None)

    async def scan_keys(self, prefix: str) -> list[str]:
        return [
            key
            for key in list(self._records)
            if key.startswith(prefix) and self._live(key) is not None
        ]

    async def ttl(self, key: str) -> int | None:
        if self._live(key) is None:
            return None
        _, expires_at = self._records[key]
        if expires_at is None:
            return None
        return math.ceil(expires_at - self._clock())

    async def close(self) -> None:
        self.ready = False
