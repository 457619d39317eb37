"""Treasury timeline: running balances over an account's ledger."""

from __future__ import annotations

from .config import BaseConfig, DevConfig
from .context import AppContext, create_app_context
from .domain.timeline import BalanceSummary, DailyPoint, OpeningBalances, Window
from .errors import InvalidWindow, NothingToUndo, SourceError, TimelineError
from .models import Account, SettlementState, Transaction
from .services.ledger_service import LedgerService
from .services.series import build_series, summarize
from .services.timeline import TimelineEngine

__all__ = [
    "Account",
    "AppContext",
    "BalanceSummary",
    "BaseConfig",
    "DailyPoint",
    "DevConfig",
    "InvalidWindow",
    "LedgerService",
    "NothingToUndo",
    "OpeningBalances",
    "SettlementState",
    "SourceError",
    "TimelineEngine",
    "TimelineError",
    "Transaction",
    "Window",
    "build_series",
    "create_app_context",
    "summarize",
]
