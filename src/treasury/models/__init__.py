"""SQLModel table exports."""

from .account import Account
from .settlement import SettlementState
from .transaction import Transaction

__all__ = [
    "Account",
    "SettlementState",
    "Transaction",
]
