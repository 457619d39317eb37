"""Treasury timeline engine: the surface presentation code talks to.

One engine serves one account at a time. It pulls an immutable snapshot from
its ``TransactionSource``, hands windows of it to the series builder through a
single-slot cache, and layers day selection on top without rebuilding. All
state changes happen under one re-entrant lock, which the debounced selection
callbacks share. Source queries run outside that lock; their results are only
adopted if the account they were made for is still the active one.
"""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from ..domain.repositories.transaction import TransactionSource
from ..domain.timeline import (
    BalanceSummary,
    DailyPoint,
    OpeningBalances,
    TransactionSnapshot,
    Window,
)
from ..errors import SourceError
from ..logging_config import get_logger
from ..models.transaction import Transaction
from .cache import SeriesCache
from .debounce import Debouncer, JobScheduler
from .selection import SelectionController
from .series import build_series, settlement_order, summarize
from .window import SeriesBuilder, WindowController

if TYPE_CHECKING:  # pragma: no cover
    from datetime import date

    from ..config import BaseConfig

logger = get_logger("timeline")


class TimelineEngine:
    """Running-balance timeline for the active account."""

    def __init__(
        self,
        source: TransactionSource,
        *,
        scheduler: Optional[JobScheduler] = None,
        selection_delay: float = 0.35,
        deselection_delay: float = 0.2,
        builder: SeriesBuilder = build_series,
    ) -> None:
        self.source = source
        self._lock = threading.RLock()
        self._owns_scheduler = scheduler is None
        if scheduler is None:
            scheduler = BackgroundScheduler(daemon=True)
            scheduler.start()
        self.scheduler = scheduler
        self.cache = SeriesCache()
        self._window = WindowController(cache=self.cache, builder=builder)
        self._selection = SelectionController(
            self._window,
            Debouncer(scheduler, job_id=f"timeline-selection-{id(self):x}", lock=self._lock),
            select_delay=selection_delay,
            deselect_delay=deselection_delay,
        )
        self._account_id: Any = None
        self._stale = False
        # Counts on_mutation calls, so a fetch started before one cannot clear it.
        self._mutations = 0
        self._closed = False

    @classmethod
    def from_config(
        cls,
        source: TransactionSource,
        config: "BaseConfig",
        *,
        scheduler: Optional[JobScheduler] = None,
    ) -> "TimelineEngine":
        return cls(
            source,
            scheduler=scheduler,
            selection_delay=config.SELECTION_DEBOUNCE,
            deselection_delay=config.DESELECTION_DEBOUNCE,
        )

    # -- read-only state -----------------------------------------------------

    @property
    def account_id(self) -> Any:
        return self._account_id

    @property
    def window(self) -> Optional[Window]:
        return self._window.window

    @property
    def bounds(self) -> tuple[Optional["date"], Optional["date"], int]:
        """``(min_day, max_day, max_offset)`` of the loaded snapshot."""
        return self._window.min_day, self._window.max_day, self._window.max_offset

    @property
    def selected_offset(self) -> Optional[int]:
        """Selected day as an offset from the window start."""
        return self._selection.selected_offset

    @property
    def selected_day(self) -> Optional["date"]:
        return self._selection.selected_day

    # -- engine surface ------------------------------------------------------

    def set_account(self, account_id: Any) -> None:
        """Switch accounts, dropping every cached series and any selection.

        The window is reset to the new account's full range. If the snapshot
        cannot be fetched the engine stays on the new account with no data and
        retries on the next read.
        """
        with self._lock:
            self._selection.reset()
            self.cache.invalidate()
            self._window.clear()
            self._account_id = account_id
            self._stale = account_id is not None
            logger.info("Account switched", extra={"account_id": str(account_id)})
        self._sync()

    def set_window(self, start_offset: int, end_offset: int) -> None:
        """Select a new day window; raises ``InvalidWindow`` and keeps the old one."""
        with self._lock:
            previous = self._window.window
            window = self._window.set_window(start_offset, end_offset)
            if window != previous:
                self._selection.reset()

    def series(self) -> list[DailyPoint]:
        """Series for the current window, rebuilt only when its key changed.

        The source generation is checked on every call, with or without a
        selected day; a change nobody reported through ``on_mutation`` clears
        the selection just as that call would. Selecting a day never changes
        the key, so it never causes a rebuild. A ``SourceError`` propagates and
        leaves the cached series in place.
        """
        self._sync()
        with self._lock:
            if self._account_id is None:
                return []
            return list(self._window.current_series())

    def last_series(self) -> list[DailyPoint]:
        """Most recent series of the active account, without touching the source."""
        with self._lock:
            return list(self.cache.latest(self._account_id) or ())

    def select_day(self, offset: int) -> None:
        """Pin the day ``offset`` days after the window start, once it settles."""
        with self._lock:
            self._selection.select(offset)

    def clear_selection(self) -> None:
        with self._lock:
            self._selection.deselect()

    def visible_transactions(self) -> list[Transaction]:
        """Window-filtered transactions, or the selected day's.

        A source failure keeps the previous list visible; it is logged and
        surfaced again by the next ``series()`` call.
        """
        try:
            self._sync()
        except SourceError:
            logger.warning(
                "Keeping previous transaction list after source failure",
                extra={"account_id": str(self._account_id)},
            )
        with self._lock:
            return list(self._selection.visible_transactions())

    def summary(self) -> BalanceSummary:
        """Executed/committed/planned totals of the visible list plus opening balances."""
        visible = self.visible_transactions()
        with self._lock:
            snapshot = self._window.snapshot
            opening = snapshot.opening if snapshot is not None else OpeningBalances()
        return summarize(visible, opening)

    def on_mutation(self, account_id: Any) -> None:
        """Invalidation entry point called by the persistence layer after a write."""
        with self._lock:
            if account_id != self._account_id:
                self.cache.invalidate(account_id)
                return
            self._stale = True
            self._mutations += 1
            self._selection.reset()
            logger.debug("Marked stale after mutation", extra={"account_id": str(account_id)})

    async def refresh(self) -> Optional[list[DailyPoint]]:
        """Refetch off the calling thread and rebuild.

        Returns ``None`` when the account changed (or the engine closed) while
        the fetch was in flight; the result is then discarded.
        """
        with self._lock:
            account_id = self._account_id
            mutations = self._mutations
        if account_id is None:
            return []
        snapshot = await asyncio.to_thread(self._fetch_snapshot, account_id)
        with self._lock:
            if self._closed or account_id != self._account_id:
                logger.info(
                    "Discarding refresh for superseded account",
                    extra={"account_id": str(account_id), "active": str(self._account_id)},
                )
                return None
            self._adopt(snapshot, mutations)
            return list(self._window.current_series())

    def close(self) -> None:
        """Cancel pending selection work and stop an engine-owned scheduler."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._selection.reset()
        if self._owns_scheduler:
            self.scheduler.shutdown(wait=False)

    # -- internals -----------------------------------------------------------

    def _sync(self) -> None:
        """Bring the snapshot in line with the source; queries run unlocked."""
        with self._lock:
            account_id = self._account_id
            snapshot = self._window.snapshot
            stale = self._stale
            mutations = self._mutations
        if account_id is None:
            return
        if not stale and snapshot is not None:
            if self._generation(account_id) == snapshot.generation:
                return
        fresh = self._fetch_snapshot(account_id)
        with self._lock:
            if account_id != self._account_id:
                logger.debug(
                    "Discarding snapshot for superseded account",
                    extra={"account_id": str(account_id)},
                )
                return
            self._adopt(fresh, mutations)

    def _generation(self, account_id: Any) -> int:
        try:
            return self.source.generation(account_id)
        except SourceError:
            logger.warning(
                "Transaction source unavailable",
                extra={"account_id": str(account_id)},
                exc_info=True,
            )
            raise

    def _fetch_snapshot(self, account_id: Any) -> TransactionSnapshot:
        # Generation first: a write landing mid-fetch leaves the snapshot
        # looking older than the store, so the next read fetches again.
        generation = self._generation(account_id)
        try:
            transactions = self.source.get_transactions(account_id)
            opening = self.source.opening_balances(account_id)
        except SourceError:
            logger.warning(
                "Transaction source unavailable",
                extra={"account_id": str(account_id)},
                exc_info=True,
            )
            raise
        return TransactionSnapshot(
            account_id=account_id,
            generation=generation,
            transactions=tuple(settlement_order(transactions)),
            opening=opening,
        )

    def _adopt(self, snapshot: TransactionSnapshot, mutations: int) -> None:
        """Install ``snapshot`` if it is newer than what is loaded; caller holds the lock."""
        current = self._window.snapshot
        if not (self._stale or current is None or snapshot.generation > current.generation):
            return
        if self._selection.is_active:
            logger.info(
                "Selection cleared after data change",
                extra={"account_id": str(snapshot.account_id), "generation": snapshot.generation},
            )
        self._selection.reset()
        self._install(snapshot, mutations)

    def _install(self, snapshot: TransactionSnapshot, mutations: int) -> None:
        previous = self._window.snapshot
        if self._stale and previous is not None and previous.generation == snapshot.generation:
            # Marked stale by on_mutation but the source did not bump its generation.
            self.cache.invalidate(snapshot.account_id)
        self._window.load(snapshot)
        if mutations == self._mutations:
            self._stale = False
        logger.debug(
            "Snapshot loaded",
            extra={
                "account_id": str(snapshot.account_id),
                "generation": snapshot.generation,
                "transactions": len(snapshot.transactions),
            },
        )
