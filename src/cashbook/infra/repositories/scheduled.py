"""SQLModel implementation of ScheduledTransaction repository."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlmodel import select

from ...models.scheduled import ScheduledTransaction
from ..database import SessionFactory


class SQLModelScheduledTransactionRepository:
    """SQLModel-based scheduled transaction repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_by_id(self, schedule_id: int) -> Optional[ScheduledTransaction]:
        with self.session_factory() as session:
            return session.get(ScheduledTransaction, schedule_id)

    def list_all(self, *, user_id: int) -> list[ScheduledTransaction]:
        with self.session_factory() as session:
            statement = (
                select(ScheduledTransaction)
                .where(ScheduledTransaction.user_id == user_id)
                .order_by(
                    ScheduledTransaction.next_occurrence, ScheduledTransaction.id  # type: ignore
                )
            )
            return list(session.exec(statement).all())

    def due_batch(
        self,
        cutoff: datetime,
        *,
        after: Optional[tuple[datetime, int]] = None,
        limit: int = 50,
        user_id: Optional[int] = None,
    ) -> list[ScheduledTransaction]:
        """One keyset page of enabled schedules due on or before ``cutoff``.

        ``after`` is the ``(next_occurrence, id)`` of the last row of the previous
        page; rows are ordered by that pair so pages never overlap.
        """
        with self.session_factory() as session:
            statement = (
                select(ScheduledTransaction)
                .where(ScheduledTransaction.enabled == True)  # noqa: E712
                .where(ScheduledTransaction.next_occurrence <= cutoff)
            )
            if user_id is not None:
                statement = statement.where(ScheduledTransaction.user_id == user_id)
            if after is not None:
                last_at, last_id = after
                statement = statement.where(
                    or_(
                        ScheduledTransaction.next_occurrence > last_at,
                        and_(
                            ScheduledTransaction.next_occurrence == last_at,
                            ScheduledTransaction.id > last_id,  # type: ignore
                        ),
                    )
                )
            statement = statement.order_by(
                ScheduledTransaction.next_occurrence, ScheduledTransaction.id  # type: ignore
            ).limit(limit)
            return list(session.exec(statement).all())


__all__ = ["SQLModelScheduledTransactionRepository"]
