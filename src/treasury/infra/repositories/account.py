"""SQLModel implementation of Account repository."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlmodel import select

from ...logging_config import get_logger
from ...models.account import Account
from ...models.transaction import Transaction
from ..database import SessionFactory

logger = get_logger("infra.accounts")


class SQLModelAccountRepository:
    """SQLModel-based account repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, account_id: uuid.UUID) -> Optional[Account]:
        """Retrieve an account by ID."""
        with self.session_factory() as session:
            obj = session.get(Account, account_id)
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self) -> list[Account]:
        """List all accounts."""
        with self.session_factory() as session:
            statement = select(Account).order_by(Account.name)  # type: ignore
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def create(self, account: Account) -> Account:
        """Create a new account."""
        with self.session_factory() as session:
            account.generation = 0
            session.add(account)
            session.commit()
            session.refresh(account)
            session.expunge(account)
            return account

    def update(self, account: Account) -> Account:
        """Update an existing account.

        The stored generation always wins over the caller's copy; it is bumped
        when any opening balance changes, since those shift every balance of
        the account's series.
        """
        with self.session_factory() as session:
            existing = session.get(Account, account.id)
            if existing is None:
                raise ValueError(f"Account {account.id} does not exist")
            before = (
                existing.opening_executed,
                existing.opening_in_progress,
                existing.opening_planned,
            )
            generation = existing.generation
            merged = session.merge(account)
            after = (merged.opening_executed, merged.opening_in_progress, merged.opening_planned)
            merged.generation = generation + 1 if before != after else generation
            session.commit()
            session.refresh(merged)
            session.expunge(merged)
            if before != after:
                logger.info(
                    "Opening balances changed",
                    extra={"account_id": str(merged.id), "generation": merged.generation},
                )
            return merged

    def delete(self, account_id: uuid.UUID) -> None:
        """Delete an account and its transactions."""
        with self.session_factory() as session:
            account = session.get(Account, account_id)
            if account is None:
                return
            rows = session.exec(
                select(Transaction).where(Transaction.account_id == account_id)
            ).all()
            for row in rows:
                session.delete(row)
            session.delete(account)
            session.commit()
