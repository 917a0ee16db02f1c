"""SQLModel implementation of Account repository."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import or_
from sqlmodel import select

from ...errors import NotFoundError, ValidationError
from ...models.account import Account
from ...models.scheduled import ScheduledTransaction
from ...models.transaction import Transaction
from ..database import SessionFactory


class SQLModelAccountRepository:
    """SQLModel-based account repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, account_id: int) -> Optional[Account]:
        """Retrieve an account by ID."""
        with self.session_factory() as session:
            return session.get(Account, account_id)

    def list_all(self, *, user_id: int) -> list[Account]:
        """List a user's accounts in display order."""
        with self.session_factory() as session:
            statement = (
                select(Account)
                .where(Account.user_id == user_id)
                .order_by(Account.sort_order, Account.name)  # type: ignore
            )
            return list(session.exec(statement).all())

    def update_metadata(self, account: Account) -> Account:
        """Copy editable metadata onto the stored row; balances are ignored."""
        if account.id is None:
            raise ValidationError("Account must be opened through the ledger first")
        with self.session_factory() as session:
            stored = session.get(Account, account.id)
            if stored is None:
                raise NotFoundError("Account", account.id)
            for field in Account.METADATA_FIELDS:
                setattr(stored, field, getattr(account, field))
            session.add(stored)
            session.commit()
            session.refresh(stored)
            return stored

    def delete(self, account_id: int) -> None:
        """Delete an account that no transaction or schedule references."""
        with self.session_factory() as session:
            account = session.get(Account, account_id)
            if account is None:
                raise NotFoundError("Account", account_id)
            referenced = session.exec(
                select(Transaction.id).where(
                    or_(
                        Transaction.from_account_id == account_id,
                        Transaction.to_account_id == account_id,
                    )
                )
            ).first()
            scheduled = session.exec(
                select(ScheduledTransaction.id).where(
                    or_(
                        ScheduledTransaction.from_account_id == account_id,
                        ScheduledTransaction.to_account_id == account_id,
                    )
                )
            ).first()
            if referenced is not None or scheduled is not None:
                raise ValidationError(
                    f"Account {account_id} is still referenced and cannot be deleted",
                    account_id=account_id,
                )
            session.delete(account)
            session.commit()
