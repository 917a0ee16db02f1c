"""Repository protocol definitions for domain layer."""

from .account import AccountRepository
from .asset import AssetRepository
from .scheduled import ScheduledTransactionRepository
from .transaction import TransactionRepository

__all__ = [
    "AccountRepository",
    "AssetRepository",
    "ScheduledTransactionRepository",
    "TransactionRepository",
]
