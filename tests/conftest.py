"""Pytest configuration and shared fixtures for treasury tests.

This module provides database fixtures, data factories, an in-memory
transaction source and a manually driven scheduler, so engine tests never
depend on wall-clock timing or the real application database.
"""

from __future__ import annotations

import tempfile
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
from apscheduler.jobstores.base import JobLookupError
from sqlmodel import SQLModel, create_engine

from treasury.config import BaseConfig
from treasury.domain.timeline import OpeningBalances, day_of
from treasury.errors import SourceError
from treasury.infra.database import create_session_factory
from treasury.infra.repositories import SQLModelAccountRepository, SQLModelTransactionRepository
# Import all models to ensure they're registered with SQLModel metadata
from treasury.models import Account, SettlementState, Transaction
from treasury.services.series import build_series
from treasury.services.timeline import TimelineEngine

BASE = datetime(2025, 3, 1, 9, 30)
BASE_DAY = BASE.date()


def at(days: int, hour: int = 12, minute: int = 0) -> datetime:
    """Timestamp ``days`` after the base day at the given time of day."""

    return datetime.combine(BASE_DAY + timedelta(days=days), datetime.min.time()).replace(
        hour=hour, minute=minute
    )


def txn(
    days: int,
    amount: Any,
    state: SettlementState = SettlementState.EXECUTED,
    *,
    account_id: Optional[uuid.UUID] = None,
    memo: str = "",
    hour: int = 12,
) -> Transaction:
    """Unpersisted transaction settling ``days`` after the base day."""

    return Transaction(
        id=uuid.uuid4(),
        account_id=account_id or uuid.uuid4(),
        settled_at=at(days, hour=hour),
        amount=amount if isinstance(amount, Decimal) else Decimal(str(amount)),
        settlement_state=state,
        memo=memo,
    )


# =============================================================================
# Test doubles
# =============================================================================


class FakeSource:
    """In-memory TransactionSource that counts fetches and can be made to fail."""

    def __init__(self) -> None:
        self.transactions: dict[Any, list[Transaction]] = defaultdict(list)
        self.generations: dict[Any, int] = defaultdict(int)
        self.openings: dict[Any, OpeningBalances] = {}
        self.fail = False
        self.fetches = 0
        self.on_fetch: Optional[Callable[[Any], None]] = None

    def add(self, account_id: Any, *transactions: Transaction) -> None:
        for tx in transactions:
            tx.account_id = account_id
            self.transactions[account_id].append(tx)
        self.generations[account_id] += 1

    def remove(self, account_id: Any, transaction: Transaction) -> None:
        self.transactions[account_id].remove(transaction)
        self.generations[account_id] += 1

    def _check(self, account_id: Any) -> None:
        if self.fail:
            raise SourceError("store unavailable", account_id=account_id)

    def get_transactions(
        self, account_id: Any, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[Transaction]:
        self._check(account_id)
        self.fetches += 1
        hook, self.on_fetch = self.on_fetch, None
        if hook is not None:
            hook(account_id)
        rows = list(self.transactions[account_id])
        if start is not None:
            rows = [tx for tx in rows if day_of(tx.settled_at) >= start]
        if end is not None:
            rows = [tx for tx in rows if day_of(tx.settled_at) <= end]
        return rows

    def generation(self, account_id: Any) -> int:
        self._check(account_id)
        return self.generations[account_id]

    def opening_balances(self, account_id: Any) -> OpeningBalances:
        self._check(account_id)
        return self.openings.get(account_id, OpeningBalances())


class ManualScheduler:
    """Stands in for APScheduler; jobs run only when the test says so."""

    def __init__(self) -> None:
        self.jobs: dict[str, tuple[Callable[..., Any], list[Any], Any]] = {}
        self.options: dict[str, dict[str, Any]] = {}
        self.added = 0
        self.runs = 0

    def add_job(self, func, trigger=None, *, args=None, id=None, replace_existing=False, run_date=None, **kwargs):
        if id in self.jobs and not replace_existing:
            raise ValueError(f"job {id} already scheduled")
        self.jobs[id] = (func, list(args or []), run_date)
        self.options[id] = kwargs
        self.added += 1

    def remove_job(self, job_id, jobstore=None):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    @property
    def pending(self) -> bool:
        return bool(self.jobs)

    def run_pending(self) -> None:
        jobs = list(self.jobs.values())
        self.jobs.clear()
        for func, args, _ in jobs:
            self.runs += 1
            func(*args)


class CountingBuilder:
    """Wraps build_series and records each invocation."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, **kwargs):
        self.calls += 1
        return build_series(**kwargs)


# =============================================================================
# Engine fixtures
# =============================================================================


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def counting_builder() -> CountingBuilder:
    return CountingBuilder()


@pytest.fixture
def engine(fake_source, manual_scheduler, counting_builder):
    """Timeline engine over the fake source with manual timers."""

    timeline = TimelineEngine(
        fake_source,
        scheduler=manual_scheduler,
        builder=counting_builder,
        selection_delay=0.35,
        deselection_delay=0.2,
    )
    yield timeline
    timeline.close()


@pytest.fixture
def example_account(fake_source):
    """Three transactions on days 0, 0 and 2, opening balances zero."""

    account_id = uuid.uuid4()
    fake_source.add(
        account_id,
        txn(0, 100, SettlementState.EXECUTED, memo="salary"),
        txn(0, -30, SettlementState.IN_PROGRESS, memo="card"),
        txn(2, 50, SettlementState.PLANNED, memo="refund"),
    )
    return account_id


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(
        f"sqlite:///{db_path}", echo=False, connect_args={"check_same_thread": False}
    )
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching the one the application builds."""

    return create_session_factory(db_engine)


@pytest.fixture
def transaction_repo(session_factory) -> SQLModelTransactionRepository:
    return SQLModelTransactionRepository(session_factory)


@pytest.fixture
def account_repo(session_factory) -> SQLModelAccountRepository:
    return SQLModelAccountRepository(session_factory)


@pytest.fixture
def account_factory(account_repo):
    """Factory for creating persisted accounts.

    Returns:
        Callable: Function that creates and persists Account instances
    """

    def _create_account(
        name: str = "Checking",
        *,
        executed: Any = "0",
        in_progress: Any = "0",
        planned: Any = "0",
        currency: str = "EUR",
    ) -> Account:
        return account_repo.create(
            Account(
                name=name,
                currency=currency,
                opening_executed=Decimal(str(executed)),
                opening_in_progress=Decimal(str(in_progress)),
                opening_planned=Decimal(str(planned)),
            )
        )

    return _create_account


@pytest.fixture
def transaction_factory(transaction_repo):
    """Factory for creating persisted transactions.

    Returns:
        Callable: Function that creates and persists Transaction instances
    """

    def _create_transaction(
        account: Account,
        amount: Any,
        days: int = 0,
        state: SettlementState = SettlementState.EXECUTED,
        *,
        memo: str = "Test transaction",
        hour: int = 12,
    ) -> Transaction:
        return transaction_repo.create(
            Transaction(
                account_id=account.id,
                settled_at=at(days, hour=hour),
                amount=Decimal(str(amount)),
                settlement_state=state,
                memo=memo,
            )
        )

    return _create_transaction


@pytest.fixture
def config(tmp_path, monkeypatch):
    """Configuration rooted in a temporary data directory."""

    monkeypatch.setenv("TREASURY_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("TREASURY_DATABASE_URL", raising=False)
    monkeypatch.delenv("TREASURY_SELECTION_DEBOUNCE_MS", raising=False)
    monkeypatch.delenv("TREASURY_DESELECTION_DEBOUNCE_MS", raising=False)
    return BaseConfig()
