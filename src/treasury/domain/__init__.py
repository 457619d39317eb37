"""Domain value types and repository protocols."""

from .timeline import (
    BalanceSummary,
    DailyPoint,
    OpeningBalances,
    TransactionSnapshot,
    Window,
    day_of,
    days_between,
    to_decimal,
    totals_by_state,
)

__all__ = [
    "BalanceSummary",
    "DailyPoint",
    "OpeningBalances",
    "TransactionSnapshot",
    "Window",
    "day_of",
    "days_between",
    "to_decimal",
    "totals_by_state",
]
