"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.engine import Engine

from .config import BaseConfig
from .infra.database import SessionFactory, create_db_engine, create_session_factory, init_database
from .infra.repositories import SQLModelAccountRepository, SQLModelTransactionRepository
from .logging_config import get_logger, setup_logging
from .services.ledger_service import LedgerService
from .services.timeline import TimelineEngine

logger = get_logger("context")


@dataclass
class AppContext:
    """Everything one open ledger session needs, passed explicitly."""

    config: BaseConfig
    db_engine: Engine
    session_factory: SessionFactory

    transaction_repo: SQLModelTransactionRepository
    account_repo: SQLModelAccountRepository

    scheduler: BackgroundScheduler
    ledger: LedgerService
    timeline: TimelineEngine

    _unsubscribe: Optional[Callable[[], None]] = field(default=None, repr=False)

    def close(self) -> None:
        """Stop background work and release database connections."""

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.timeline.close()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.db_engine.dispose()
        logger.info("Application context closed")


def create_app_context(config: Optional[BaseConfig] = None) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()
    setup_logging(config)

    db_engine = create_db_engine(config)
    init_database(db_engine)
    session_factory = create_session_factory(db_engine)

    transaction_repo = SQLModelTransactionRepository(session_factory)
    account_repo = SQLModelAccountRepository(session_factory)

    scheduler = BackgroundScheduler(daemon=True)
    scheduler.start()

    timeline = TimelineEngine.from_config(transaction_repo, config, scheduler=scheduler)
    ledger = LedgerService(transaction_repo)
    unsubscribe = ledger.subscribe(timeline.on_mutation)

    return AppContext(
        config=config,
        db_engine=db_engine,
        session_factory=session_factory,
        transaction_repo=transaction_repo,
        account_repo=account_repo,
        scheduler=scheduler,
        ledger=ledger,
        timeline=timeline,
        _unsubscribe=unsubscribe,
    )
