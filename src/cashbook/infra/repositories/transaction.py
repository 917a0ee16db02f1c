"""SQLModel implementation of Transaction repository."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlmodel import select

from ...models.transaction import Transaction, TransactionStatus
from ..database import SessionFactory


def _newest_first(statement):
    return statement.order_by(
        Transaction.transaction_date.desc(),  # type: ignore
        Transaction.sort_order.desc(),  # type: ignore
        Transaction.id.desc(),  # type: ignore
    )


class SQLModelTransactionRepository:
    """SQLModel-based transaction repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        """Retrieve a transaction by ID."""
        with self.session_factory() as session:
            return session.get(Transaction, transaction_id)

    def list_by_account(self, account_id: int) -> list[Transaction]:
        """Transactions touching an account on either side, newest first."""
        with self.session_factory() as session:
            statement = select(Transaction).where(
                or_(
                    Transaction.from_account_id == account_id,
                    Transaction.to_account_id == account_id,
                )
            )
            return list(session.exec(_newest_first(statement)).all())

    def list_by_schedule(self, scheduled_id: int) -> list[Transaction]:
        """Transactions materialized from a scheduled transaction."""
        with self.session_factory() as session:
            statement = select(Transaction).where(Transaction.scheduled_id == scheduled_id)
            return list(session.exec(_newest_first(statement)).all())

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
        with self.session_factory() as session:
            statement = select(Transaction)

            if start_date:
                statement = statement.where(Transaction.transaction_date >= start_date)
            if end_date:
                statement = statement.where(Transaction.transaction_date <= end_date)
            if account_id:
                statement = statement.where(
                    or_(
                        Transaction.from_account_id == account_id,
                        Transaction.to_account_id == account_id,
                    )
                )
            if status:
                statement = statement.where(Transaction.status == status)
            if text:
                statement = statement.where(
                    or_(
                        Transaction.memo.contains(text),  # type: ignore
                        Transaction.payee.contains(text),  # type: ignore
                        Transaction.tags.contains(text),  # type: ignore
                    )
                )

            return list(session.exec(_newest_first(statement)).all())
