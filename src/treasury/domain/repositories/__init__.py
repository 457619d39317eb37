"""Repository protocol definitions for domain layer."""

from .account import AccountRepository
from .transaction import TransactionRepository, TransactionSource

__all__ = [
    "AccountRepository",
    "TransactionRepository",
    "TransactionSource",
]
