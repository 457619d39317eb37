"""Day-window state over one account's transaction snapshot."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Callable, Optional

from ..domain.timeline import (
    DailyPoint,
    TransactionSnapshot,
    Window,
    day_of,
    days_between,
)
from ..logging_config import get_logger
from ..models.transaction import Transaction
from .cache import CacheKey, SeriesCache
from .series import build_series

logger = get_logger("window")

SeriesBuilder = Callable[..., list[DailyPoint]]


class WindowController:
    """Tracks the selected ``[start, end]`` offsets and the dataset's natural bounds.

    Offsets count days from the snapshot's first settlement day. The series
    and the window-filtered transaction list are both cached under
    ``(account_id, window, generation)``, so they are rebuilt exactly when one
    of those changes.
    """

    def __init__(self, *, cache: SeriesCache, builder: SeriesBuilder = build_series) -> None:
        self.cache = cache
        self.builder = builder
        self.snapshot: Optional[TransactionSnapshot] = None
        self.min_day: Optional[date] = None
        self.max_day: Optional[date] = None
        self.max_offset = 0
        self.window: Optional[Window] = None
        self._filtered_key: Optional[CacheKey] = None
        self._filtered: tuple[Transaction, ...] = ()

    @property
    def account_id(self):
        return self.snapshot.account_id if self.snapshot is not None else None

    def clear(self) -> None:
        self.snapshot = None
        self.min_day = self.max_day = None
        self.max_offset = 0
        self.window = None
        self._filtered_key = None
        self._filtered = ()

    def load(self, snapshot: TransactionSnapshot) -> None:
        """Adopt a fresh snapshot, keeping the current window clamped to its bounds."""

        self.snapshot = snapshot
        self._filtered_key = None
        self._filtered = ()
        if snapshot.is_empty:
            self.min_day = self.max_day = None
            self.max_offset = 0
            self.window = None
            return
        self.set_bounds(snapshot.min_day, snapshot.max_day)

    def set_bounds(self, min_day: date, max_day: date) -> None:
        """Recompute ``max_offset`` and pull the window back inside it."""

        max_offset = days_between(min_day, max_day)
        if max_offset < 0:
            raise ValueError(f"min_day {min_day} is after max_day {max_day}")
        self.min_day, self.max_day, self.max_offset = min_day, max_day, max_offset
        if self.window is None:
            self.window = Window.full(max_offset)
            return
        clamped = self.window.clamped(max_offset)
        if clamped != self.window:
            logger.debug(
                "Window clamped to new bounds",
                extra={
                    "before": (self.window.start_offset, self.window.end_offset),
                    "after": (clamped.start_offset, clamped.end_offset),
                    "max_offset": max_offset,
                },
            )
        self.window = clamped

    def set_window(self, start: int, end: int) -> Optional[Window]:
        """Validate and clamp a requested window.

        Raises ``InvalidWindow`` (leaving the current window untouched) when
        ``start > end`` or an offset is negative. Without data there are no
        bounds to clamp to, so the request is only validated.
        """

        requested = Window(start, end)
        if self.window is None:
            return None
        self.window = requested.clamped(self.max_offset)
        return self.window

    def day_at(self, offset: int) -> date:
        if self.min_day is None:
            raise LookupError("No bounds loaded")
        return self.min_day + timedelta(days=offset)

    def _key(self) -> Optional[CacheKey]:
        if self.snapshot is None or self.window is None:
            return None
        return CacheKey(self.snapshot.account_id, self.window, self.snapshot.generation)

    def current_series(self) -> tuple[DailyPoint, ...]:
        """The cached series for the current key, building it on a miss."""

        key = self._key()
        if key is None:
            return ()
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        series = tuple(self._build(self.snapshot, key.window))
        self.cache.put(key, series)
        logger.debug(
            "Series rebuilt",
            extra={
                "account_id": str(key.account_id),
                "window": (key.window.start_offset, key.window.end_offset),
                "generation": key.generation,
                "points": len(series),
            },
        )
        return series

    def _build(self, snapshot: TransactionSnapshot, window: Window) -> list[DailyPoint]:
        base_day = self.day_at(window.start_offset)
        # Snapshot is in settlement order, so everything before base_day is a prefix.
        earlier = 0
        for tx in snapshot.transactions:
            if day_of(tx.settled_at) >= base_day:
                break
            earlier += 1
        opening = snapshot.opening.carried_through(snapshot.transactions[:earlier])
        return self.builder(
            transactions=snapshot.transactions[earlier:],
            opening=opening,
            window=window,
            min_day=self.min_day,
        )

    def window_transactions(self) -> tuple[Transaction, ...]:
        """Transactions settling on any day of the current window."""

        key = self._key()
        if key is None:
            return ()
        if key != self._filtered_key:
            first = self.day_at(key.window.start_offset)
            last = self.day_at(key.window.end_offset)
            self._filtered = tuple(
                tx for tx in self.snapshot.transactions if first <= day_of(tx.settled_at) <= last
            )
            self._filtered_key = key
        return self._filtered
