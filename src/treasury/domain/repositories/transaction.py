"""Transaction source and repository protocols."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Iterable, Mapping, Optional, Protocol

from ...models.transaction import Transaction
from ..timeline import OpeningBalances


class TransactionSource(Protocol):
    """Read side consumed by the timeline engine.

    Implementations raise ``SourceError`` when a query cannot be answered.
    """

    def get_transactions(
        self,
        account_id: Any,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Transaction]:
        """All transactions of an account, optionally bounded by settlement day (inclusive)."""
        ...

    def generation(self, account_id: Any) -> int:
        """Monotonic counter bumped by every persisted mutation of the account."""
        ...

    def opening_balances(self, account_id: Any) -> OpeningBalances:
        """Per-state balances before the account's first transaction."""
        ...


class TransactionRepository(TransactionSource, Protocol):
    """Full repository used by the ledger service."""

    def get_by_id(self, transaction_id: uuid.UUID) -> Optional[Transaction]:
        """Retrieve a transaction by ID."""
        ...

    def create(self, transaction: Transaction) -> Transaction:
        """Create a new transaction."""
        ...

    def create_many(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        """Create several transactions of one account with a single generation bump."""
        ...

    def update(self, transaction: Transaction) -> Transaction:
        """Update an existing transaction."""
        ...

    def delete(self, transaction_id: uuid.UUID) -> None:
        """Delete a transaction by ID."""
        ...

    def apply_states(
        self, states: Iterable[tuple[uuid.UUID, Optional[Mapping[str, Any]]]]
    ) -> set[uuid.UUID]:
        """Write full row states (``None`` deletes) in one unit of work.

        Returns the ids of every account whose generation was bumped.
        """
        ...
