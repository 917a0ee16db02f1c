"""Scheduled (recurring) transaction templates."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from .transaction import PaymentMethod, TransactionType


class RecurrencePattern(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BI_WEEKLY = "BI_WEEKLY"
    MONTHLY = "MONTHLY"
    MONTHLY_LAST_DAY = "MONTHLY_LAST_DAY"
    YEARLY = "YEARLY"
    EVERY_FRIDAY = "EVERY_FRIDAY"
    EVERY_SATURDAY = "EVERY_SATURDAY"
    EVERY_WEEKDAY = "EVERY_WEEKDAY"


class ScheduledTransaction(SQLModel, table=True):
    """A transaction template plus a recurrence rule and a due-date cursor.

    ``next_occurrence`` only moves forward, and only through the scheduler service.
    """

    __tablename__: ClassVar[str] = "scheduled_transaction"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)

    type: TransactionType = Field(nullable=False)
    from_account_id: Optional[int] = Field(default=None, foreign_key="account.id")
    to_account_id: Optional[int] = Field(default=None, foreign_key="account.id")
    amount: Decimal = Field(max_digits=15, decimal_places=2)
    asset_id: Optional[int] = Field(default=None, foreign_key="asset.id")
    units: Optional[Decimal] = Field(default=None, max_digits=19, decimal_places=8)
    payee: Optional[str] = Field(default=None, max_length=255)
    memo: Optional[str] = Field(default=None, max_length=255)
    tags: Optional[str] = Field(default=None, max_length=255)
    number: Optional[str] = Field(default=None, max_length=64)
    payment_method: PaymentMethod = Field(default=PaymentMethod.NONE, nullable=False)

    recurrence_pattern: RecurrencePattern = Field(nullable=False)
    recurrence_value: Optional[int] = Field(default=None, description="e.g. every 2 months")
    next_occurrence: datetime = Field(nullable=False, index=True)
    enabled: bool = Field(default=True, nullable=False, index=True)

    def account_ids(self) -> set[int]:
        return {a for a in (self.from_account_id, self.to_account_id) if a is not None}
