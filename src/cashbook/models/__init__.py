"""SQLModel table exports."""

from .account import Account, AccountType
from .asset import Asset, AssetType
from .scheduled import RecurrencePattern, ScheduledTransaction
from .transaction import (
    MOVEMENT_FIELDS,
    PaymentMethod,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from .user import User

__all__ = [
    "MOVEMENT_FIELDS",
    "Account",
    "AccountType",
    "Asset",
    "AssetType",
    "PaymentMethod",
    "RecurrencePattern",
    "ScheduledTransaction",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
]
