"""Single-slot-per-account cache for computed series."""

from __future__ import annotations

from typing import Any, Hashable, NamedTuple, Optional

from ..domain.timeline import Window
from ..logging_config import get_logger

logger = get_logger("cache")


class CacheKey(NamedTuple):
    """Everything a cached value depends on."""

    account_id: Hashable
    window: Window
    generation: int


class SeriesCache:
    """Holds at most one entry per account, compared on the full key.

    A ``put`` replaces the account's previous entry. ``latest`` returns that
    entry regardless of key, which is what callers show while a refetch fails.
    """

    def __init__(self) -> None:
        self._slots: dict[Hashable, tuple[CacheKey, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: CacheKey) -> Optional[Any]:
        slot = self._slots.get(key.account_id)
        if slot is not None and slot[0] == key:
            self.hits += 1
            return slot[1]
        self.misses += 1
        logger.debug(
            "Series cache miss",
            extra={
                "account_id": str(key.account_id),
                "window": (key.window.start_offset, key.window.end_offset),
                "generation": key.generation,
                "cached_key": slot[0] if slot else None,
            },
        )
        return None

    def put(self, key: CacheKey, value: Any) -> None:
        self._slots[key.account_id] = (key, value)

    def latest(self, account_id: Hashable) -> Optional[Any]:
        slot = self._slots.get(account_id)
        return slot[1] if slot else None

    def invalidate(self, account_id: Hashable | None = None) -> None:
        """Drop one account's slot, or every slot when ``account_id`` is None."""

        if account_id is None:
            self._slots.clear()
        else:
            self._slots.pop(account_id, None)

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._slots
