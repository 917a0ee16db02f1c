"""SQLModel definitions for ledger transactions."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class TransactionType(str, Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    TRANSFER = "TRANSFER"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PaymentMethod(str, Enum):
    NONE = "NONE"
    DEBIT_CARD = "DEBIT_CARD"
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    STANDING_ORDER = "STANDING_ORDER"
    ELECTRONIC_PAYMENT = "ELECTRONIC_PAYMENT"
    FI_FEE = "FI_FEE"
    CARD_TRANSACTION = "CARD_TRANSACTION"
    TRADE = "TRADE"
    TRANSFER = "TRANSFER"
    REWARD = "REWARD"
    INTEREST = "INTEREST"


# Fields shared by a transaction and the template of a scheduled transaction.
MOVEMENT_FIELDS: tuple[str, ...] = (
    "type",
    "from_account_id",
    "to_account_id",
    "amount",
    "asset_id",
    "units",
    "payee",
    "memo",
    "tags",
    "number",
    "payment_method",
)


class Transaction(SQLModel, table=True):
    """One money movement: an expense, an income or a transfer between accounts.

    Only ``COMPLETED`` rows count towards account balances. Asset acquisitions are
    transfers that additionally record ``asset_id`` and ``units``; the unit quantity
    never enters the balance arithmetic.
    """

    __tablename__: ClassVar[str] = "transaction"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    type: TransactionType = Field(nullable=False)
    from_account_id: Optional[int] = Field(default=None, foreign_key="account.id", index=True)
    to_account_id: Optional[int] = Field(default=None, foreign_key="account.id", index=True)
    amount: Decimal = Field(max_digits=15, decimal_places=2, description="Always positive")
    status: TransactionStatus = Field(default=TransactionStatus.COMPLETED, nullable=False)
    transaction_date: datetime = Field(default_factory=datetime.now, nullable=False, index=True)
    sort_order: Optional[int] = Field(default=None, description="Position within the day")

    asset_id: Optional[int] = Field(default=None, foreign_key="asset.id")
    units: Optional[Decimal] = Field(default=None, max_digits=19, decimal_places=8)

    payee: Optional[str] = Field(default=None, max_length=255)
    memo: Optional[str] = Field(default=None, max_length=255)
    tags: Optional[str] = Field(default=None, max_length=255)
    number: Optional[str] = Field(default=None, max_length=64)
    payment_method: PaymentMethod = Field(default=PaymentMethod.NONE, nullable=False)

    # Set when the row was materialized from a scheduled transaction.
    scheduled_id: Optional[int] = Field(
        default=None, foreign_key="scheduled_transaction.id", index=True
    )

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED

    def account_ids(self) -> set[int]:
        """Account ids referenced by this movement."""
        return {a for a in (self.from_account_id, self.to_account_id) if a is not None}
