"""Single-day drill-down over the window-filtered transaction list."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from ..domain.timeline import Window, day_of
from ..logging_config import get_logger
from ..models.transaction import Transaction
from .debounce import Debouncer
from .window import WindowController

logger = get_logger("selection")


class SelectionController:
    """Two-state machine: unselected, or one day offset pinned.

    Selection and deselection both go through the same debouncer, so a drag
    across several days only applies the day the pointer rests on, and any
    new event cancels the pending one. Applying a selection filters data the
    window controller already holds; it never builds a series.
    """

    def __init__(
        self,
        window: WindowController,
        debouncer: Debouncer,
        *,
        select_delay: float = 0.35,
        deselect_delay: float = 0.2,
    ) -> None:
        self.window = window
        self.debouncer = debouncer
        self.select_delay = select_delay
        self.deselect_delay = deselect_delay
        self._selected: Optional[int] = None
        self._selected_day: Optional[date] = None
        # Last requested offset, applied or still pending.
        self._target: Optional[int] = None
        self._day_transactions: tuple[Transaction, ...] = ()

    @property
    def selected_offset(self) -> Optional[int]:
        """Selected day as an offset from the window start."""
        return self._selected

    @property
    def selected_day(self) -> Optional[date]:
        return self._selected_day

    @property
    def is_active(self) -> bool:
        return self._selected is not None

    def select(self, offset: int) -> None:
        """Pin the day ``offset`` days after the window start."""

        window = self.window.window
        if window is None or not 0 <= offset < window.length:
            logger.debug("Selected day outside window", extra={"offset": offset})
            self.deselect()
            return
        if offset == self._target:
            return
        self._target = offset
        self.debouncer.submit(
            self.select_delay, self._apply_select, offset, self.window.account_id, window
        )

    def deselect(self) -> None:
        if self._target is None and self._selected is None:
            return
        self._target = None
        self.debouncer.submit(self.deselect_delay, self._apply_deselect, self.window.account_id)

    def reset(self) -> None:
        """Return to unselected immediately, dropping any pending event."""

        self.debouncer.cancel()
        self._selected = None
        self._selected_day = None
        self._target = None
        self._day_transactions = ()

    def visible_transactions(self) -> tuple[Transaction, ...]:
        if self._selected is not None:
            return self._day_transactions
        return self.window.window_transactions()

    def _apply_select(self, offset: int, account_id: Any, window: Window) -> None:
        if account_id != self.window.account_id or window != self.window.window:
            logger.debug(
                "Discarding selection made for another account or window",
                extra={"offset": offset},
            )
            return
        if offset == self._selected:
            return
        day = self.window.day_at(window.start_offset + offset)
        self._day_transactions = tuple(
            tx for tx in self.window.window_transactions() if day_of(tx.settled_at) == day
        )
        self._selected = offset
        self._selected_day = day
        logger.debug(
            "Day selected",
            extra={"offset": offset, "day": day, "transactions": len(self._day_transactions)},
        )

    def _apply_deselect(self, account_id: Any) -> None:
        if account_id != self.window.account_id:
            return
        self._selected = None
        self._selected_day = None
        self._day_transactions = ()
