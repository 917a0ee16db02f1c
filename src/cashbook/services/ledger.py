"""Account balance ledger.

The ledger is the only code that writes ``Account.balance``. Every mutation is
expressed as one primitive: compute the net per-account delta of
``effect(new) - effect(old)`` and apply it inside a single locked unit of work, so a
reversal and its re-application are never observable separately.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Union

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from ..errors import ConflictError, NotFoundError, ValidationError
from ..infra.locks import account_key, transaction_key
from ..infra.unit_of_work import UnitOfWork
from ..logging_config import get_logger
from ..models.account import Account
from ..models.asset import Asset
from ..models.scheduled import ScheduledTransaction
from ..models.transaction import (
    MOVEMENT_FIELDS,
    PaymentMethod,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ..money import ZERO, to_money, to_units

logger = get_logger("ledger")

Movement = Union[Transaction, ScheduledTransaction]


@dataclass(frozen=True)
class BalanceDrift:
    """A stored balance that disagrees with the balance implied by history."""

    account_id: int
    name: str
    stored: Decimal
    expected: Decimal

    @property
    def difference(self) -> Decimal:
        return self.expected - self.stored


def normalize_movement(movement: Movement) -> Movement:
    """Coerce enum/decimal fields in place and check the movement's shape.

    Raises:
        ValidationError: wrong account references for the type, non-positive
            amount, same-account transfer, or units without a positive quantity
            and an asset.
    """
    try:
        movement.type = TransactionType(movement.type)
        movement.payment_method = PaymentMethod(movement.payment_method or PaymentMethod.NONE)
        if isinstance(movement, Transaction):
            movement.status = TransactionStatus(movement.status)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    movement.amount = to_money(movement.amount)
    if movement.amount <= ZERO:
        raise ValidationError("Amount must be positive", amount=movement.amount)

    source, target = movement.from_account_id, movement.to_account_id
    if movement.type == TransactionType.EXPENSE:
        if source is None or target is not None:
            raise ValidationError("An expense needs a from-account and no to-account")
    elif movement.type == TransactionType.INCOME:
        if target is None or source is not None:
            raise ValidationError("An income needs a to-account and no from-account")
    else:
        if source is None or target is None:
            raise ValidationError("A transfer needs both a from-account and a to-account")
        if source == target:
            raise ValidationError("Cannot transfer to the same account", account_id=source)

    if movement.units is not None:
        movement.units = to_units(movement.units)
        if movement.units <= 0:
            raise ValidationError("Units must be positive", units=movement.units)
        if movement.asset_id is None:
            raise ValidationError("Units require an asset")
    return movement


def balance_effect(tx: Transaction) -> dict[int, Decimal]:
    """Per-account balance change caused by ``tx`` (empty unless COMPLETED)."""
    if tx.status != TransactionStatus.COMPLETED:
        return {}
    effect: dict[int, Decimal] = {}
    if tx.type in (TransactionType.EXPENSE, TransactionType.TRANSFER) and tx.from_account_id:
        effect[tx.from_account_id] = -tx.amount
    if tx.type in (TransactionType.INCOME, TransactionType.TRANSFER) and tx.to_account_id:
        effect[tx.to_account_id] = effect.get(tx.to_account_id, ZERO) + tx.amount
    return effect


def net_delta(new: dict[int, Decimal], old: dict[int, Decimal]) -> dict[int, Decimal]:
    """``new - old`` per account, dropping accounts whose delta is zero."""
    combined: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for account_id, amount in new.items():
        combined[account_id] += amount
    for account_id, amount in old.items():
        combined[account_id] -= amount
    return {a: d for a, d in combined.items() if d != ZERO}


def copy_for_edit(tx: Transaction, **overrides) -> Transaction:
    """Detached copy of ``tx``'s editable state with ``overrides`` applied."""
    fields = {name: getattr(tx, name) for name in MOVEMENT_FIELDS}
    fields.update(
        status=tx.status,
        transaction_date=tx.transaction_date,
        sort_order=tx.sort_order,
        scheduled_id=tx.scheduled_id,
    )
    unknown = set(overrides) - set(fields)
    if unknown:
        raise ValidationError(f"Unknown transaction fields: {', '.join(sorted(unknown))}")
    fields.update(overrides)
    return Transaction(**fields)


class Ledger:
    """Create, edit and delete transactions while keeping balances consistent."""

    def __init__(self, uow: UnitOfWork, *, lock_timeout: float | None = None):
        self.uow = uow
        self.lock_timeout = lock_timeout

    # ------------------------------------------------------------------ accounts

    def open_account(self, account: Account) -> Account:
        """Persist a new account whose balance starts at its start balance."""
        if account.id is not None:
            raise ValidationError("Account is already open", account_id=account.id)
        account.start_balance = to_money(account.start_balance, field="start_balance")
        account.balance = account.start_balance
        with self.uow([], timeout=self.lock_timeout) as session:
            session.add(account)
            session.flush()
            session.refresh(account)
        logger.info(
            "Account opened",
            extra={"account_id": account.id, "start_balance": str(account.start_balance)},
        )
        return account

    def set_start_balance(self, account_id: int, amount) -> Account:
        """Change the opening balance and shift the running balance by the same delta."""
        new_start = to_money(amount, field="start_balance")
        with self.uow([account_key(account_id)], timeout=self.lock_timeout) as session:
            account = self._lock_accounts(session, {account_id})[account_id]
            delta = new_start - account.start_balance
            account.start_balance = new_start
            account.balance = to_money(account.balance + delta, field="balance")
            session.add(account)
        return account

    def balance_of(self, account_id: int) -> Decimal:
        """Current materialized balance of an account."""
        with self.uow.read() as session:
            account = session.get(Account, account_id)
            if account is None:
                raise NotFoundError("Account", account_id)
            return to_money(account.balance)

    # -------------------------------------------------------------- transactions

    def create(self, tx: Transaction) -> Transaction:
        """Validate and persist ``tx``, applying its effect when COMPLETED."""
        if tx.id is not None:
            raise ValidationError("New transactions must not carry an id", id=tx.id)
        normalize_movement(tx)
        keys = [account_key(a) for a in tx.account_ids()]
        with self.uow(keys, timeout=self.lock_timeout) as session:
            self.record(session, tx)
        logger.info(
            "Transaction created",
            extra={
                "transaction_id": tx.id,
                "type": tx.type.value,
                "status": tx.status.value,
                "amount": str(tx.amount),
            },
        )
        return tx

    def record(self, session: Session, tx: Transaction) -> Transaction:
        """Insert ``tx`` within an open unit of work that already holds its account locks.

        Used by :meth:`create` and by the scheduler, which posts a schedule and
        advances its cursor in the same unit of work.
        """
        normalize_movement(tx)
        accounts = self._lock_accounts(session, tx.account_ids())
        self._require_asset(session, tx.asset_id)
        if tx.sort_order is None:
            tx.sort_order = self._next_sort_order(session, tx.transaction_date)
        self._shift(accounts, balance_effect(tx))
        session.add(tx)
        session.flush()
        return tx

    def update(self, transaction_id: int, changes: Transaction) -> Transaction:
        """Replace the movement of a stored transaction in one atomic step.

        ``changes`` carries the full new state (movement fields, status, date); see
        :func:`copy_for_edit`. The old effect is reversed and the new one applied as
        a single net delta. Moving the transaction to another day without an
        explicit new ``sort_order`` places it last on that day.
        """
        normalize_movement(changes)
        current = self._peek(transaction_id)
        locked_accounts = current.account_ids() | changes.account_ids()
        keys = [transaction_key(transaction_id)] + [account_key(a) for a in locked_accounts]

        with self.uow(keys, timeout=self.lock_timeout) as session:
            stored = self._reload(session, transaction_id, locked_accounts)
            accounts = self._lock_accounts(session, stored.account_ids() | changes.account_ids())
            self._require_asset(session, changes.asset_id)
            old_effect = balance_effect(stored)

            sort_order = changes.sort_order
            moved_day = changes.transaction_date.date() != stored.transaction_date.date()
            if moved_day and sort_order in (None, stored.sort_order):
                # The old day's position means nothing on the new day.
                sort_order = self._next_sort_order(session, changes.transaction_date)

            for field in MOVEMENT_FIELDS:
                setattr(stored, field, getattr(changes, field))
            stored.status = changes.status
            stored.transaction_date = changes.transaction_date
            if sort_order is not None:
                stored.sort_order = sort_order

            self._shift(accounts, net_delta(balance_effect(stored), old_effect))
            session.add(stored)

        logger.info(
            "Transaction updated",
            extra={"transaction_id": transaction_id, "status": stored.status.value},
        )
        return stored

    def delete(self, transaction_id: int) -> None:
        """Reverse the transaction's effect (when COMPLETED) and remove it."""
        current = self._peek(transaction_id)
        locked_accounts = current.account_ids()
        keys = [transaction_key(transaction_id)] + [account_key(a) for a in locked_accounts]

        with self.uow(keys, timeout=self.lock_timeout) as session:
            stored = self._reload(session, transaction_id, locked_accounts)
            accounts = self._lock_accounts(session, stored.account_ids())
            self._shift(accounts, net_delta({}, balance_effect(stored)))
            session.delete(stored)

        logger.info("Transaction deleted", extra={"transaction_id": transaction_id})

    # ------------------------------------------------------------------- repair

    def recalculate(
        self, account_id: Optional[int] = None, *, dry_run: bool = False
    ) -> list[BalanceDrift]:
        """Recompute balances from history and report (and fix) any drift.

        expected = start_balance + Σ incoming − Σ outgoing over COMPLETED rows.
        """
        with self.uow.read() as session:
            if account_id is None:
                ids = set(session.exec(select(Account.id)).all())
            else:
                if session.get(Account, account_id) is None:
                    raise NotFoundError("Account", account_id)
                ids = {account_id}

        drifts: list[BalanceDrift] = []
        keys = [account_key(a) for a in ids]
        with self.uow(keys, timeout=self.lock_timeout) as session:
            accounts = self._lock_accounts(session, ids)
            expected = self._expected_balances(session, accounts.values())
            for acc_id in sorted(accounts):
                account = accounts[acc_id]
                if expected[acc_id] == to_money(account.balance):
                    continue
                drifts.append(
                    BalanceDrift(
                        account_id=acc_id,
                        name=account.name,
                        stored=to_money(account.balance),
                        expected=expected[acc_id],
                    )
                )
                if not dry_run:
                    account.balance = expected[acc_id]
                    session.add(account)

        for drift in drifts:
            logger.warning(
                "Balance drift %s",
                "detected" if dry_run else "corrected",
                extra={
                    "account_id": drift.account_id,
                    "stored": str(drift.stored),
                    "expected": str(drift.expected),
                },
            )
        return drifts

    # ----------------------------------------------------------------- helpers

    def _peek(self, transaction_id: int) -> Transaction:
        """Unlocked read used to work out which locks a mutation needs."""
        with self.uow.read() as session:
            tx = session.get(Transaction, transaction_id)
            if tx is None:
                raise NotFoundError("Transaction", transaction_id)
            return tx

    def _reload(
        self, session: Session, transaction_id: int, locked_accounts: set[int]
    ) -> Transaction:
        stored = session.get(Transaction, transaction_id, with_for_update=True)
        if stored is None:
            raise NotFoundError("Transaction", transaction_id)
        if not stored.account_ids() <= locked_accounts:
            raise ConflictError(
                f"Transaction {transaction_id} changed accounts concurrently; retry",
                transaction_id=transaction_id,
            )
        return stored

    def _lock_accounts(self, session: Session, ids: Iterable[int]) -> dict[int, Account]:
        wanted = set(ids)
        if not wanted:
            return {}
        statement = (
            select(Account)
            .where(col(Account.id).in_(sorted(wanted)))
            .with_for_update()
        )
        found = {account.id: account for account in session.exec(statement).all()}
        for account_id in sorted(wanted):
            if account_id not in found:
                raise NotFoundError("Account", account_id)
        return found  # type: ignore[return-value]

    @staticmethod
    def _require_asset(session: Session, asset_id: Optional[int]) -> None:
        if asset_id is not None and session.get(Asset, asset_id) is None:
            raise NotFoundError("Asset", asset_id)

    @staticmethod
    def _shift(accounts: dict[int, Account], deltas: dict[int, Decimal]) -> None:
        for account_id, delta in deltas.items():
            account = accounts[account_id]
            account.balance = to_money(to_money(account.balance) + delta, field="balance")

    @staticmethod
    def _next_sort_order(session: Session, when: datetime) -> int:
        day_start = datetime(when.year, when.month, when.day)
        statement = select(func.max(Transaction.sort_order)).where(
            Transaction.transaction_date >= day_start,
            Transaction.transaction_date < day_start + timedelta(days=1),
        )
        current = session.exec(statement).one()
        return 0 if current is None else current + 1

    @staticmethod
    def _expected_balances(
        session: Session, accounts: Iterable[Account]
    ) -> dict[int, Decimal]:
        expected = {a.id: to_money(a.start_balance) for a in accounts}
        if not expected:
            return {}
        ids = list(expected)
        statement = select(Transaction).where(
            Transaction.status == TransactionStatus.COMPLETED,
            or_(
                col(Transaction.from_account_id).in_(ids),
                col(Transaction.to_account_id).in_(ids),
            ),
        )
        for tx in session.exec(statement).all():
            for acc_id, delta in balance_effect(tx).items():
                if acc_id in expected:
                    expected[acc_id] += delta
        return {a: to_money(v) for a, v in expected.items()}  # type: ignore[misc]


__all__ = [
    "BalanceDrift",
    "Ledger",
    "balance_effect",
    "copy_for_edit",
    "net_delta",
    "normalize_movement",
]
