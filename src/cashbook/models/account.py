"""Account model whose balance is maintained by the ledger."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class AccountType(str, Enum):
    BANK = "BANK"
    CASH = "CASH"
    ASSET = "ASSET"
    CREDIT_CARD = "CREDIT_CARD"
    LIABILITY = "LIABILITY"
    CURRENT = "CURRENT"
    SAVINGS = "SAVINGS"


class Account(SQLModel, table=True):
    """A bank account or other money container.

    ``balance`` is a materialized projection over COMPLETED transactions. Only
    :class:`cashbook.services.ledger.Ledger` writes it; repositories copy metadata only.
    """

    __tablename__: ClassVar[str] = "account"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    name: str = Field(nullable=False, max_length=128)
    number: Optional[str] = Field(default=None, max_length=64)
    account_type: AccountType = Field(default=AccountType.BANK, nullable=False)
    institution: Optional[str] = Field(default=None, max_length=128)
    currency: str = Field(default="EUR", max_length=3, description="ISO-4217 currency code")
    start_balance: Decimal = Field(default=Decimal("0.00"), max_digits=15, decimal_places=2)
    balance: Decimal = Field(default=Decimal("0.00"), max_digits=15, decimal_places=2)
    sort_order: int = Field(default=0, nullable=False)
    exclude_from_summary: bool = Field(default=False, nullable=False)
    exclude_from_reports: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(default_factory=datetime.now, nullable=False)

    # Fields a collaborator may edit through the repository.
    METADATA_FIELDS: ClassVar[tuple[str, ...]] = (
        "name",
        "number",
        "account_type",
        "institution",
        "currency",
        "sort_order",
        "exclude_from_summary",
        "exclude_from_reports",
    )
