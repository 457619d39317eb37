"""Running-balance series across the three settlement states."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Sequence

from ..domain.timeline import (
    BalanceSummary,
    DailyPoint,
    OpeningBalances,
    Window,
    day_of,
    totals_by_state,
)
from ..models.transaction import Transaction


def settlement_order(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Sort by settlement day, then operation date, then timestamp."""

    return sorted(
        transactions,
        key=lambda tx: (
            day_of(tx.settled_at),
            tx.operated_on or date.min,
            tx.settled_at,
        ),
    )


def group_by_day(transactions: Iterable[Transaction]) -> dict[date, list[Transaction]]:
    """Bucket transactions by calendar day, keeping their relative order."""

    grouped: dict[date, list[Transaction]] = defaultdict(list)
    for tx in transactions:
        grouped[day_of(tx.settled_at)].append(tx)
    return dict(grouped)


def build_series(
    *,
    transactions: Iterable[Transaction],
    opening: OpeningBalances,
    window: Window,
    min_day: date,
) -> list[DailyPoint]:
    """Build one gap-filled ``DailyPoint`` per offset of ``window``.

    ``min_day`` is the dataset's first settlement day and anchors offset 0; it
    is supplied by the caller because ``transactions`` may already be a
    subset. ``opening`` is the state before ``min_day + window.start_offset``.
    Transactions settling outside the window are ignored.

    Committed and planned balances are rebuilt from the three running totals
    at every offset:

        committed = executed + in_progress
        planned   = committed + planned
    """

    ordered = settlement_order(transactions)
    if not ordered:
        return []

    by_day = group_by_day(ordered)
    running = opening
    series: list[DailyPoint] = []
    for offset in range(window.start_offset, window.end_offset + 1):
        day = min_day + timedelta(days=offset)
        same_day = by_day.get(day)
        if same_day:
            running = running + totals_by_state(same_day)
        executed = running.executed
        committed = executed + running.in_progress
        series.append(
            DailyPoint(
                day_offset=offset,
                day=day,
                executed_balance=executed,
                committed_balance=committed,
                planned_balance=committed + running.planned,
            )
        )
    return series


def summarize(
    transactions: Sequence[Transaction], opening: OpeningBalances | None = None
) -> BalanceSummary:
    """Layered executed/committed/planned totals for a transaction list."""

    totals = (opening or OpeningBalances()).carried_through(transactions)
    committed = totals.executed + totals.in_progress
    return BalanceSummary(
        executed=totals.executed,
        committed=committed,
        planned=committed + totals.planned,
    )
