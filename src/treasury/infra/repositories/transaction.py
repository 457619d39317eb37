"""SQLModel implementation of the Transaction repository.

Also serves as the engine's transaction source: every write bumps the owning
account's ``generation`` inside the same unit of work, and every read failure
surfaces as ``SourceError``.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Iterator, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ...domain.timeline import OpeningBalances
from ...errors import SourceError
from ...logging_config import get_logger
from ...models.account import Account
from ...models.transaction import Transaction
from ..database import SessionFactory

logger = get_logger("infra.transactions")


class SQLModelTransactionRepository:
    """SQLModel-based transaction repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    @contextmanager
    def _source_query(self, account_id: Any, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error(
                "Transaction source query failed",
                extra={"account_id": str(account_id), "action": action},
                exc_info=True,
            )
            raise SourceError(
                f"Could not {action} for account {account_id}", account_id=account_id
            ) from exc

    # -- read side -----------------------------------------------------------

    def get_by_id(self, transaction_id: uuid.UUID) -> Optional[Transaction]:
        """Retrieve a transaction by ID."""
        with self.session_factory() as session:
            obj = session.get(Transaction, transaction_id)
            if obj:
                session.expunge(obj)
            return obj

    def get_transactions(
        self,
        account_id: uuid.UUID,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Transaction]:
        """Transactions of an account in settlement order.

        ``start`` and ``end`` are calendar days, both included in full.
        """
        with self._source_query(account_id, "load transactions"):
            with self.session_factory() as session:
                statement = select(Transaction).where(Transaction.account_id == account_id)
                if start is not None:
                    statement = statement.where(
                        Transaction.settled_at >= datetime.combine(start, time.min)
                    )
                if end is not None:
                    statement = statement.where(
                        Transaction.settled_at < datetime.combine(end + timedelta(days=1), time.min)
                    )
                statement = statement.order_by(
                    Transaction.settled_at, Transaction.operated_on  # type: ignore
                )
                rows = list(session.exec(statement).all())
                session.expunge_all()
                return rows

    def generation(self, account_id: uuid.UUID) -> int:
        """Current mutation generation of an account."""
        with self._source_query(account_id, "read generation"):
            with self.session_factory() as session:
                value = session.exec(
                    select(Account.generation).where(Account.id == account_id)
                ).first()
        if value is None:
            raise SourceError(f"Unknown account {account_id}", account_id=account_id)
        return value

    def opening_balances(self, account_id: uuid.UUID) -> OpeningBalances:
        """Opening balances stored on the account."""
        with self._source_query(account_id, "read opening balances"):
            with self.session_factory() as session:
                account = session.get(Account, account_id)
                if account is None:
                    raise SourceError(f"Unknown account {account_id}", account_id=account_id)
                return OpeningBalances(
                    executed=account.opening_executed,
                    in_progress=account.opening_in_progress,
                    planned=account.opening_planned,
                )

    # -- write side ----------------------------------------------------------

    @staticmethod
    def _bump(session: Session, account_ids: Iterable[uuid.UUID]) -> set[uuid.UUID]:
        bumped: set[uuid.UUID] = set()
        for account_id in account_ids:
            if account_id is None or account_id in bumped:
                continue
            account = session.get(Account, account_id)
            if account is None:
                raise ValueError(f"Account {account_id} does not exist")
            account.generation += 1
            session.add(account)
            bumped.add(account_id)
        return bumped

    def create(self, transaction: Transaction) -> Transaction:
        """Create a new transaction."""
        with self.session_factory() as session:
            self._bump(session, [transaction.account_id])
            session.add(transaction)
            session.commit()
            session.refresh(transaction)
            session.expunge(transaction)
            return transaction

    def create_many(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        """Create a batch of transactions, bumping each account once."""
        rows = list(transactions)
        if not rows:
            return []
        with self.session_factory() as session:
            self._bump(session, [row.account_id for row in rows])
            session.add_all(rows)
            session.commit()
            for row in rows:
                session.refresh(row)
            session.expunge_all()
            return rows

    def update(self, transaction: Transaction) -> Transaction:
        """Update an existing transaction.

        Moving a transaction to another account bumps both accounts.
        """
        with self.session_factory() as session:
            existing = session.get(Transaction, transaction.id)
            if existing is None:
                raise ValueError(f"Transaction {transaction.id} does not exist")
            previous_account = existing.account_id
            merged = session.merge(transaction)
            self._bump(session, [previous_account, merged.account_id])
            session.commit()
            session.refresh(merged)
            session.expunge(merged)
            return merged

    def delete(self, transaction_id: uuid.UUID) -> None:
        """Delete a transaction by ID."""
        with self.session_factory() as session:
            transaction = session.get(Transaction, transaction_id)
            if transaction:
                self._bump(session, [transaction.account_id])
                session.delete(transaction)
                session.commit()

    def apply_states(
        self, states: Iterable[tuple[uuid.UUID, Optional[Mapping[str, Any]]]]
    ) -> set[uuid.UUID]:
        """Write full row states in one unit of work; ``None`` deletes the row.

        Used for undo/redo and batch edits. Returns the bumped account ids.
        """
        touched: list[uuid.UUID] = []
        with self.session_factory() as session:
            for transaction_id, values in states:
                existing = session.get(Transaction, transaction_id)
                if existing is not None:
                    touched.append(existing.account_id)
                if values is None:
                    if existing is not None:
                        session.delete(existing)
                    continue
                row = Transaction(**dict(values))
                row.id = transaction_id
                touched.append(row.account_id)
                session.merge(row)
            bumped = self._bump(session, touched)
            session.commit()
        return bumped
