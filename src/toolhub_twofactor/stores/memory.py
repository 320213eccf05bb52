"""In-memory record repository and ephemeral code store.

Both are dict-backed fakes for unit tests and single-process development.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..methods import TwoFactorMethod

if TYPE_CHECKING:
    from ..keys import EphemeralKey
    from ..record import SecurityRecord


class InMemorySecurityRecordRepository:
    """Dict-backed ``ISecurityRecordRepository``.

    Records are deep-copied on the way in and out so callers never share
    mutable state with the store, the same as a real database round trip.
    """

    def __init__(self) -> None:
        self._store: dict[tuple[str, TwoFactorMethod], SecurityRecord] = {}

    async def get(
        self, user_id: str, method: TwoFactorMethod
    ) -> SecurityRecord | None:
        record = self._store.get((user_id, method))
        return record.model_copy(deep=True) if record is not None else None

    async def list_for_user(self, user_id: str) -> list[SecurityRecord]:
        return [
            self._store[(user_id, method)].model_copy(deep=True)
            for method in TwoFactorMethod
            if (user_id, method) in self._store
        ]

    async def save(self, record: SecurityRecord) -> None:
        self._store[record.key] = record.model_copy(deep=True)

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class InMemoryEphemeralCodeStore:
    """Dict-backed ``IEphemeralCodeStore`` with lazy expiry.

    Args:
        clock: Monotonic seconds source; inject a fake to move time in tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def _live(self, key: EphemeralKey) -> tuple[str, float] | None:
        entry = self._entries.get(str(key))
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._entries[str(key)]
            return None
        return entry

    async def get(self, key: EphemeralKey) -> str | None:
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key: EphemeralKey, value: str, ttl: int) -> None:
        self._entries[str(key)] = (value, self._clock() + ttl)

    async def add(self, key: EphemeralKey, value: str, ttl: int) -> bool:
        if self._live(key) is not None:
            return False
        self._entries[str(key)] = (value, self._clock() + ttl)
        return True

    async def delete(self, key: EphemeralKey) -> None:
        self._entries.pop(str(key), None)

    def expires_at(self, key: EphemeralKey) -> float | None:
        """Clock value at which ``key`` expires, for test assertions."""
        entry = self._live(key)
        return entry[1] if entry else None

    def clear(self) -> None:
        self._entries.clear()


__all__: list[str] = ["InMemorySecurityRecordRepository", "InMemoryEphemeralCodeStore"]
