"""Scheduled transaction orchestration: post, skip, due listing and forecasts.

The scheduler never touches balances itself. Posting materializes the template as a
COMPLETED transaction through :meth:`Ledger.record` and advances the cursor in the
same unit of work, so either both happen or neither does.
"""

from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Iterator, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from ..clock import Clock, SystemClock
from ..config import PostDatePolicy
from ..domain.repositories import ScheduledTransactionRepository
from ..errors import ConflictError, DisabledScheduleError, NotFoundError, ValidationError
from ..infra.locks import account_key, schedule_key
from ..infra.unit_of_work import UnitOfWork
from ..logging_config import get_logger
from ..models.account import Account
from ..models.scheduled import ScheduledTransaction
from ..models.transaction import (
    MOVEMENT_FIELDS,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ..money import ZERO, to_money
from .ledger import Ledger, normalize_movement
from .recurrence import advance, coerce_pattern, occurrences_until, validate_rule

logger = get_logger("scheduler")

# (amount, currency) -> amount in the reporting currency
Converter = Callable[[Decimal, Optional[str]], Decimal]


@dataclass
class MonthForecast:
    income: Decimal = ZERO
    expense: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


@dataclass
class Forecast:
    """Projected scheduled income/expense per ``YYYY-MM`` for one year."""

    year: int
    months: dict[str, MonthForecast] = field(default_factory=dict)

    @property
    def total_income(self) -> Decimal:
        return sum((m.income for m in self.months.values()), ZERO)

    @property
    def total_expense(self) -> Decimal:
        return sum((m.expense for m in self.months.values()), ZERO)

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expense


class SchedulerService:
    """Turns due scheduled transactions into ledger entries on demand."""

    def __init__(
        self,
        uow: UnitOfWork,
        ledger: Ledger,
        schedules: ScheduledTransactionRepository,
        *,
        clock: Clock | None = None,
        post_date_policy: PostDatePolicy = PostDatePolicy.OCCURRENCE,
        batch_size: int = 50,
        lock_timeout: float | None = None,
    ):
        self.uow = uow
        self.ledger = ledger
        self.schedules = schedules
        self.clock = clock or SystemClock()
        self.post_date_policy = PostDatePolicy(post_date_policy)
        self.batch_size = batch_size
        self.lock_timeout = lock_timeout

    # ---------------------------------------------------------------- cursor moves

    def post(self, schedule_id: int) -> Transaction:
        """Materialize the due occurrence and advance the cursor atomically."""
        with self._locked_schedule(schedule_id) as (session, schedule):
            occurrence = schedule.next_occurrence
            tx = self._materialize(schedule)
            self.ledger.record(session, tx)
            self._advance(session, schedule)

        logger.info(
            "Scheduled transaction posted",
            extra={
                "schedule_id": schedule_id,
                "transaction_id": tx.id,
                "occurrence": occurrence.isoformat(),
                "next_occurrence": schedule.next_occurrence.isoformat(),
            },
        )
        return tx

    def skip(self, schedule_id: int) -> ScheduledTransaction:
        """Advance the cursor without creating a transaction."""
        with self._locked_schedule(schedule_id) as (session, schedule):
            skipped = schedule.next_occurrence
            self._advance(session, schedule)

        logger.info(
            "Scheduled transaction skipped",
            extra={
                "schedule_id": schedule_id,
                "skipped": skipped.isoformat(),
                "next_occurrence": schedule.next_occurrence.isoformat(),
            },
        )
        return schedule

    def due_pending(
        self,
        as_of: Optional[datetime] = None,
        horizon: timedelta = timedelta(0),
        *,
        user_id: Optional[int] = None,
    ) -> Iterator[ScheduledTransaction]:
        """Lazily yield enabled schedules due on or before ``as_of + horizon``.

        Rows are fetched page by page as the caller consumes them; every call starts
        a fresh query, so the sequence reflects the current state.
        """
        cutoff = (as_of or self.clock.now()) + horizon
        after: Optional[tuple[datetime, int]] = None
        while True:
            batch = self.schedules.due_batch(
                cutoff, after=after, limit=self.batch_size, user_id=user_id
            )
            yield from batch
            if len(batch) < self.batch_size:
                return
            last = batch[-1]
            after = (last.next_occurrence, last.id)  # type: ignore[assignment]

    # ------------------------------------------------------------ template CRUD

    def save(self, schedule: ScheduledTransaction) -> ScheduledTransaction:
        """Validate and persist a schedule.

        For an existing schedule the template and rule are replaced; the cursor may
        only stay put or move later.
        """
        normalize_movement(schedule)
        schedule.recurrence_pattern = coerce_pattern(schedule.recurrence_pattern)
        validate_rule(schedule.recurrence_pattern, schedule.recurrence_value)
        if schedule.next_occurrence is None:
            raise ValidationError("next_occurrence is required")

        keys = [account_key(a) for a in schedule.account_ids()]
        if schedule.id is not None:
            keys.append(schedule_key(schedule.id))
        with self.uow(keys, timeout=self.lock_timeout) as session:
            self._require_accounts(session, schedule.account_ids())
            self.ledger._require_asset(session, schedule.asset_id)
            if schedule.id is None:
                session.add(schedule)
                session.flush()
                saved = schedule
            else:
                saved = self._get(session, schedule.id, lock=True)
                if schedule.next_occurrence < saved.next_occurrence:
                    raise ValidationError(
                        "next_occurrence cannot move backwards",
                        current=saved.next_occurrence,
                        requested=schedule.next_occurrence,
                    )
                for name in MOVEMENT_FIELDS:
                    setattr(saved, name, getattr(schedule, name))
                saved.recurrence_pattern = schedule.recurrence_pattern
                saved.recurrence_value = schedule.recurrence_value
                saved.next_occurrence = schedule.next_occurrence
                saved.enabled = schedule.enabled
                session.add(saved)

        logger.info("Scheduled transaction saved", extra={"schedule_id": saved.id})
        return saved

    def delete(self, schedule_id: int) -> None:
        """Remove a schedule; transactions it produced stay, minus the back-reference."""
        with self.uow([schedule_key(schedule_id)], timeout=self.lock_timeout) as session:
            schedule = self._get(session, schedule_id, lock=True)
            session.exec(  # type: ignore[call-overload]
                update(Transaction)
                .where(Transaction.scheduled_id == schedule_id)
                .values(scheduled_id=None)
            )
            session.delete(schedule)
        logger.info("Scheduled transaction deleted", extra={"schedule_id": schedule_id})

    # ----------------------------------------------------------------- forecast

    def forecast(
        self,
        year: int,
        *,
        user_id: Optional[int] = None,
        convert: Optional[Converter] = None,
    ) -> Forecast:
        """Sum scheduled income and expenses per month of ``year``.

        Transfers are neutral and skipped, as are schedules whose account is
        excluded from reports. ``convert`` maps an amount in an account's currency
        into the reporting currency; without it amounts are summed as-is.
        """
        year_start = datetime(year, 1, 1)
        year_end = datetime(year, 12, 31, 23, 59, 59, 999999)
        result = Forecast(year=year)
        buckets: dict[str, MonthForecast] = defaultdict(MonthForecast)

        with self.uow.read() as session:
            accounts = {a.id: a for a in session.exec(select(Account)).all()}

        for schedule in self.due_pending(as_of=year_end, user_id=user_id):
            if schedule.type == TransactionType.TRANSFER:
                continue
            account = accounts.get(schedule.from_account_id or schedule.to_account_id)
            if account is not None and account.exclude_from_reports:
                continue
            currency = account.currency if account is not None else None
            amount = convert(schedule.amount, currency) if convert else schedule.amount
            for when in occurrences_until(
                schedule.recurrence_pattern,
                schedule.recurrence_value,
                schedule.next_occurrence,
                year_end,
            ):
                if when < year_start:
                    continue
                bucket = buckets[f"{when.year}-{when.month:02d}"]
                if schedule.type == TransactionType.INCOME:
                    bucket.income += to_money(amount)
                else:
                    bucket.expense += to_money(amount)

        result.months = dict(sorted(buckets.items()))
        return result

    # ------------------------------------------------------------------ helpers

    @contextmanager
    def _locked_schedule(
        self, schedule_id: int
    ) -> Iterator[tuple[Session, ScheduledTransaction]]:
        """Lock a schedule and its accounts; yield ``(session, schedule)``.

        Disabled schedules are refused before anything is written.
        """
        with self.uow.read() as session:
            peek = self._get(session, schedule_id)
        if not peek.enabled:
            raise DisabledScheduleError(schedule_id)
        locked_accounts = peek.account_ids()
        keys = [schedule_key(schedule_id)] + [account_key(a) for a in locked_accounts]
        with self.uow(keys, timeout=self.lock_timeout) as session:
            schedule = self._get(session, schedule_id, lock=True)
            if not schedule.enabled:
                raise DisabledScheduleError(schedule_id)
            if not schedule.account_ids() <= locked_accounts:
                raise ConflictError(
                    f"Scheduled transaction {schedule_id} changed accounts concurrently; retry",
                    schedule_id=schedule_id,
                )
            yield session, schedule

    @staticmethod
    def _get(session: Session, schedule_id: int, *, lock: bool = False) -> ScheduledTransaction:
        schedule = session.get(ScheduledTransaction, schedule_id, with_for_update=lock or None)
        if schedule is None:
            raise NotFoundError("ScheduledTransaction", schedule_id)
        return schedule

    @staticmethod
    def _require_accounts(session: Session, ids: set[int]) -> None:
        for account_id in sorted(ids):
            if session.get(Account, account_id) is None:
                raise NotFoundError("Account", account_id)

    def _materialize(self, schedule: ScheduledTransaction) -> Transaction:
        fields = {name: getattr(schedule, name) for name in MOVEMENT_FIELDS}
        if self.post_date_policy == PostDatePolicy.NOW:
            when = self.clock.now()
        else:
            when = schedule.next_occurrence
        return Transaction(
            **fields,
            status=TransactionStatus.COMPLETED,
            transaction_date=when,
            scheduled_id=schedule.id,
        )

    @staticmethod
    def _advance(session: Session, schedule: ScheduledTransaction) -> None:
        previous = schedule.next_occurrence
        following = advance(schedule.recurrence_pattern, schedule.recurrence_value, previous)
        if following <= previous:
            raise ConflictError(
                f"Recurrence did not move schedule {schedule.id} forward", schedule_id=schedule.id
            )
        schedule.next_occurrence = following
        session.add(schedule)


__all__ = ["Forecast", "MonthForecast", "SchedulerService"]
