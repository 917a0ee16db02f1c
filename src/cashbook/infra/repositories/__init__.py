"""Concrete repository implementations using SQLModel."""

from .account import SQLModelAccountRepository
from .asset import SQLModelAssetRepository
from .scheduled import SQLModelScheduledTransactionRepository
from .transaction import SQLModelTransactionRepository

__all__ = [
    "SQLModelAccountRepository",
    "SQLModelAssetRepository",
    "SQLModelScheduledTransactionRepository",
    "SQLModelTransactionRepository",
]
