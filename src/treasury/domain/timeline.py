"""Value types shared by the series builder, controllers and sources.

Everything here is immutable so a snapshot can be handed to a worker thread
without copying. Money is always ``Decimal``; floats coming from callers are
converted through their string form so ``0.1`` stays ``Decimal("0.1")``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from ..errors import InvalidWindow
from ..models.settlement import SettlementState
from ..models.transaction import Transaction

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Return ``value`` as a Decimal without going through binary floats."""

    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if value is None:
        return ZERO
    return Decimal(value)


def day_of(value: date | datetime) -> date:
    """Normalize a timestamp to its calendar day."""

    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: date | datetime, end: date | datetime) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative if reversed)."""

    return (day_of(end) - day_of(start)).days


@dataclass(frozen=True, slots=True)
class OpeningBalances:
    """Per-state balances before the first day of a series."""

    executed: Decimal = ZERO
    in_progress: Decimal = ZERO
    planned: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "executed", to_decimal(self.executed))
        object.__setattr__(self, "in_progress", to_decimal(self.in_progress))
        object.__setattr__(self, "planned", to_decimal(self.planned))

    def __add__(self, other: "OpeningBalances") -> "OpeningBalances":
        if not isinstance(other, OpeningBalances):
            return NotImplemented
        return OpeningBalances(
            executed=self.executed + other.executed,
            in_progress=self.in_progress + other.in_progress,
            planned=self.planned + other.planned,
        )

    def carried_through(self, transactions: Iterable[Transaction]) -> "OpeningBalances":
        """Return these balances with every amount in ``transactions`` folded in."""

        return self + totals_by_state(transactions)


def totals_by_state(transactions: Iterable[Transaction]) -> OpeningBalances:
    """Sum amounts per settlement state; each amount lands in exactly one total."""

    executed = in_progress = planned = ZERO
    for tx in transactions:
        amount = to_decimal(tx.amount)
        state = SettlementState(tx.settlement_state)
        if state is SettlementState.EXECUTED:
            executed += amount
        elif state is SettlementState.IN_PROGRESS:
            in_progress += amount
        elif state is SettlementState.PLANNED:
            planned += amount
    return OpeningBalances(executed=executed, in_progress=in_progress, planned=planned)


@dataclass(frozen=True, slots=True)
class Window:
    """Inclusive range of day offsets from the dataset's first settlement day."""

    start_offset: int
    end_offset: int

    def __post_init__(self) -> None:
        if self.start_offset < 0 or self.end_offset < 0:
            raise InvalidWindow(
                self.start_offset, self.end_offset, reason="window offsets must not be negative"
            )
        if self.start_offset > self.end_offset:
            raise InvalidWindow(
                self.start_offset,
                self.end_offset,
                reason=f"window start {self.start_offset} is after end {self.end_offset}",
            )

    @classmethod
    def full(cls, max_offset: int) -> "Window":
        return cls(0, max(0, max_offset))

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset + 1

    def clamped(self, max_offset: int) -> "Window":
        """Pull the window into ``[0, max_offset]``, end first."""

        end = min(self.end_offset, max(0, max_offset))
        start = min(self.start_offset, end)
        return Window(start, end)


@dataclass(frozen=True, slots=True)
class DailyPoint:
    """Balances at the end of one day of a series."""

    day_offset: int
    day: date
    executed_balance: Decimal
    committed_balance: Decimal
    planned_balance: Decimal


@dataclass(frozen=True, slots=True)
class BalanceSummary:
    """Layered totals shown next to a transaction list."""

    executed: Decimal
    committed: Decimal
    planned: Decimal


@dataclass(frozen=True, slots=True)
class TransactionSnapshot:
    """Immutable, settlement-ordered copy of one account's transactions."""

    account_id: Any
    generation: int
    transactions: tuple[Transaction, ...]
    opening: OpeningBalances

    @property
    def is_empty(self) -> bool:
        return not self.transactions

    @property
    def min_day(self) -> Optional[date]:
        return day_of(self.transactions[0].settled_at) if self.transactions else None

    @property
    def max_day(self) -> Optional[date]:
        return day_of(self.transactions[-1].settled_at) if self.transactions else None
