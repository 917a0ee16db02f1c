"""Tradable assets referenced by acquisition transfers."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class AssetType(str, Enum):
    STOCK = "STOCK"
    ETF = "ETF"
    CRYPTO = "CRYPTO"


class Asset(SQLModel, table=True):
    """A stock, ETF or crypto position the user records acquisitions of."""

    __tablename__: ClassVar[str] = "asset"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    symbol: str = Field(index=True, nullable=False, max_length=32)  # e.g. VWCE.DE, BTC-USD
    name: str = Field(nullable=False, max_length=128)
    asset_type: AssetType = Field(default=AssetType.STOCK, nullable=False)
    current_price: Optional[Decimal] = Field(default=None, max_digits=15, decimal_places=4)
    currency: Optional[str] = Field(default=None, max_length=3)
    last_update: Optional[datetime] = Field(default=None)
