"""Ledger mutations with an undo/redo journal and change notifications."""

from __future__ import annotations

import uuid
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping, Optional

from ..domain.repositories.transaction import TransactionRepository
from ..domain.timeline import day_of, to_decimal
from ..errors import NothingToUndo
from ..logging_config import get_logger
from ..models.settlement import SettlementState
from ..models.transaction import Transaction

logger = get_logger("ledger")

MutationListener = Callable[[uuid.UUID], None]
RowState = Optional[dict[str, Any]]


@dataclass
class LedgerFilters:
    """Filters applied to ledger listings."""

    account_id: uuid.UUID
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    state: Optional[SettlementState] = None
    text: Optional[str] = None
    txn_type: str = "all"  # income | expense | all


def filtered_transactions(
    repo: TransactionRepository, filters: LedgerFilters
) -> list[Transaction]:
    """Fetch one account's transactions for a date range, newest first."""

    txs = repo.get_transactions(filters.account_id, filters.start_date, filters.end_date)
    if filters.state is not None:
        txs = [t for t in txs if SettlementState(t.settlement_state) is filters.state]
    if filters.text:
        needle = filters.text.lower()
        txs = [t for t in txs if needle in (t.memo or "").lower()]
    if filters.txn_type == "income":
        txs = [t for t in txs if to_decimal(t.amount) >= 0]
    elif filters.txn_type == "expense":
        txs = [t for t in txs if to_decimal(t.amount) < 0]
    return sorted(txs, key=lambda t: t.settled_at, reverse=True)


def _row_state(transaction: Transaction) -> dict[str, Any]:
    return transaction.model_dump()


@dataclass(frozen=True)
class JournalEntry:
    """One undoable operation: ``(transaction_id, before, after)`` per row."""

    label: str
    changes: tuple[tuple[uuid.UUID, RowState, RowState], ...]

    @property
    def account_ids(self) -> set[uuid.UUID]:
        ids = set()
        for _, before, after in self.changes:
            for state in (before, after):
                if state is not None:
                    ids.add(state["account_id"])
        return ids


class LedgerService:
    """Single entry point for writes that the timeline engine must hear about.

    Every operation bumps the affected accounts' generation in the repository,
    records a journal entry and then calls each subscribed listener with each
    affected account id.
    """

    def __init__(self, repository: TransactionRepository, *, history_limit: int = 100) -> None:
        self.repository = repository
        self._listeners: list[MutationListener] = []
        self._undo: deque[JournalEntry] = deque(maxlen=history_limit)
        self._redo: list[JournalEntry] = []

    def subscribe(self, listener: MutationListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def _notify(self, account_ids: Iterable[uuid.UUID]) -> None:
        for account_id in sorted(set(account_ids), key=str):
            for listener in list(self._listeners):
                listener(account_id)

    def _record(self, entry: JournalEntry) -> None:
        if not entry.changes:
            return
        self._undo.append(entry)
        self._redo.clear()
        logger.info(
            "Ledger change recorded",
            extra={"operation": entry.label, "rows": len(entry.changes)},
        )
        self._notify(entry.account_ids)

    def save_transaction(
        self,
        *,
        existing: Transaction | None = None,
        account_id: uuid.UUID,
        amount: Decimal | float | int | str,
        settled_at: datetime,
        settlement_state: SettlementState,
        memo: str = "",
        operated_on: Optional[date] = None,
    ) -> Transaction:
        """Centralize transaction creation/update."""

        before: RowState = None
        if existing is not None and existing.id is not None:
            stored = self.repository.get_by_id(existing.id)
            before = _row_state(stored) if stored is not None else None

        # Edits go onto a fresh row so a failed write leaves ``existing`` untouched.
        txn = Transaction(id=existing.id) if existing is not None and existing.id else Transaction()
        txn.account_id = account_id
        txn.amount = to_decimal(amount)
        txn.settled_at = settled_at
        txn.operated_on = operated_on or day_of(settled_at)
        txn.settlement_state = SettlementState(settlement_state)
        txn.memo = memo

        saved = self.repository.update(txn) if before is not None else self.repository.create(txn)
        self._record(
            JournalEntry(
                label="update" if before is not None else "create",
                changes=((saved.id, before, _row_state(saved)),),
            )
        )
        return saved

    def delete_transaction(self, transaction_id: uuid.UUID) -> None:
        stored = self.repository.get_by_id(transaction_id)
        if stored is None:
            return
        self.repository.delete(transaction_id)
        self._record(JournalEntry("delete", ((transaction_id, _row_state(stored), None),)))

    def delete_transactions(self, transaction_ids: Iterable[uuid.UUID]) -> int:
        """Batch delete as a single undoable operation; returns rows removed."""

        changes = self._batch(transaction_ids, lambda state: None)
        if changes:
            self.repository.apply_states((tx_id, after) for tx_id, _, after in changes)
        self._record(JournalEntry("delete batch", changes))
        return len(changes)

    def set_settlement_state(
        self, transaction_ids: Iterable[uuid.UUID], state: SettlementState
    ) -> int:
        """Batch edit of the settlement state; returns rows changed."""

        target = SettlementState(state)
        changes = tuple(
            change
            for change in self._batch(
                transaction_ids, lambda before: {**before, "settlement_state": target}
            )
            if SettlementState(change[1]["settlement_state"]) is not target
        )
        if changes:
            self.repository.apply_states((tx_id, after) for tx_id, _, after in changes)
        self._record(JournalEntry("set state", changes))
        return len(changes)

    def import_transactions(
        self, account_id: uuid.UUID, rows: Iterable[Mapping[str, Any]]
    ) -> list[Transaction]:
        """Persist an import batch; the whole batch undoes as one step."""

        pending = []
        for row in rows:
            settled_at = row["settled_at"]
            pending.append(
                Transaction(
                    account_id=account_id,
                    settled_at=settled_at,
                    operated_on=row.get("operated_on") or day_of(settled_at),
                    amount=to_decimal(row["amount"]),
                    settlement_state=SettlementState(
                        row.get("settlement_state", SettlementState.EXECUTED)
                    ),
                    memo=row.get("memo", ""),
                )
            )
        created = self.repository.create_many(pending)
        self._record(
            JournalEntry("import", tuple((tx.id, None, _row_state(tx)) for tx in created))
        )
        return created

    def undo(self) -> JournalEntry:
        if not self._undo:
            raise NothingToUndo("Nothing to undo")
        entry = self._undo.pop()
        bumped = self.repository.apply_states(
            (tx_id, before) for tx_id, before, _ in reversed(entry.changes)
        )
        self._redo.append(entry)
        logger.info("Undo", extra={"operation": entry.label, "rows": len(entry.changes)})
        self._notify(bumped)
        return entry

    def redo(self) -> JournalEntry:
        if not self._redo:
            raise NothingToUndo("Nothing to redo")
        entry = self._redo.pop()
        bumped = self.repository.apply_states(
            (tx_id, after) for tx_id, _, after in entry.changes
        )
        self._undo.append(entry)
        logger.info("Redo", extra={"operation": entry.label, "rows": len(entry.changes)})
        self._notify(bumped)
        return entry

    def _batch(
        self,
        transaction_ids: Iterable[uuid.UUID],
        transform: Callable[[dict[str, Any]], RowState],
    ) -> tuple[tuple[uuid.UUID, RowState, RowState], ...]:
        changes = []
        for tx_id in dict.fromkeys(transaction_ids):
            stored = self.repository.get_by_id(tx_id)
            if stored is None:
                continue
            before = _row_state(stored)
            changes.append((tx_id, before, transform(dict(before))))
        return tuple(changes)
