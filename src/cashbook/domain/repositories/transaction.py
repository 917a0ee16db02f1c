"""Transaction repository protocol."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ...models.transaction import Transaction, TransactionStatus


class TransactionRepository(Protocol):
    """Read access to ledger transactions. Writes go through the ledger."""

    def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        """Retrieve a transaction by ID."""
        ...

    def list_by_account(self, account_id: int) -> list[Transaction]:
        """Transactions touching an account on either side."""
        ...

    def list_by_schedule(self, scheduled_id: int) -> list[Transaction]:
        """Transactions materialized from a scheduled transaction."""
        ...

    def search(
        self,
        *,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        account_id: Optional[int] = None,
        status: Optional[TransactionStatus] = None,
        text: Optional[str] = None,
    ) -> list[Transaction]:
        """Advanced search with multiple filters."""
        ...
