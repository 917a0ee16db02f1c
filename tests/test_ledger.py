"""Tests for the balance ledger."""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlmodel import select

from cashbook.errors import NotFoundError, ValidationError
from cashbook.models import Account, Transaction, TransactionStatus, TransactionType
from cashbook.services.ledger import balance_effect, copy_for_edit, net_delta


def test_transfer_moves_money_between_accounts(ledger, account_factory, tx_factory):
    """5000.00 in A, transfer 500.00 to B."""
    a = account_factory("A", start_balance="5000.00")
    b = account_factory("B")

    tx_factory(TransactionType.TRANSFER, "500.00", from_account_id=a.id, to_account_id=b.id)

    assert ledger.balance_of(a.id) == Decimal("4500.00")
    assert ledger.balance_of(b.id) == Decimal("500.00")


def test_expense_and_income(ledger, account_factory, tx_factory):
    acc = account_factory(start_balance="100.00")

    tx_factory(TransactionType.EXPENSE, "30.25", from_account_id=acc.id)
    tx_factory(TransactionType.INCOME, "10.10", to_account_id=acc.id)

    assert ledger.balance_of(acc.id) == Decimal("79.85")


def test_amount_is_rounded_half_up_to_cents(ledger, account_factory, tx_factory):
    acc = account_factory()
    tx = tx_factory(TransactionType.INCOME, "10.005", to_account_id=acc.id)

    assert tx.amount == Decimal("10.01")
    assert ledger.balance_of(acc.id) == Decimal("10.01")


def test_float_amounts_do_not_leak_binary_noise(ledger, account_factory):
    acc = account_factory()
    for _ in range(10):
        ledger.create(Transaction(type="INCOME", amount=0.1, to_account_id=acc.id))  # type: ignore[arg-type]

    assert ledger.balance_of(acc.id) == Decimal("1.00")


@pytest.mark.parametrize("status", [TransactionStatus.PENDING, TransactionStatus.FAILED])
def test_non_completed_transactions_do_not_touch_balances(
    ledger, account_factory, tx_factory, status
):
    acc = account_factory(start_balance="50.00")
    tx_factory(TransactionType.EXPENSE, "20.00", from_account_id=acc.id, status=status)

    assert ledger.balance_of(acc.id) == Decimal("50.00")


def test_status_transitions_apply_and_reverse_effect(ledger, account_factory, tx_factory):
    acc = account_factory(start_balance="50.00")
    tx = tx_factory(
        TransactionType.EXPENSE, "20.00", from_account_id=acc.id, status=TransactionStatus.PENDING
    )

    ledger.update(tx.id, copy_for_edit(tx, status=TransactionStatus.COMPLETED))
    assert ledger.balance_of(acc.id) == Decimal("30.00")

    stored = ledger.update(tx.id, copy_for_edit(tx, status=TransactionStatus.FAILED))
    assert stored.status == TransactionStatus.FAILED
    assert ledger.balance_of(acc.id) == Decimal("50.00")


def test_update_amount_applies_only_the_difference(ledger, account_factory, tx_factory):
    acc = account_factory(start_balance="1000.00")
    tx = tx_factory(TransactionType.EXPENSE, "100.00", from_account_id=acc.id)

    ledger.update(tx.id, copy_for_edit(tx, amount=Decimal("150.00")))

    assert ledger.balance_of(acc.id) == Decimal("850.00")


def test_update_moves_expense_to_another_account(ledger, account_factory, tx_factory):
    a = account_factory("A", start_balance="100.00")
    b = account_factory("B", start_balance="100.00")
    tx = tx_factory(TransactionType.EXPENSE, "40.00", from_account_id=a.id)

    ledger.update(tx.id, copy_for_edit(tx, from_account_id=b.id))

    assert ledger.balance_of(a.id) == Decimal("100.00")
    assert ledger.balance_of(b.id) == Decimal("60.00")


def test_update_changes_type(ledger, account_factory, tx_factory):
    acc = account_factory()
    tx = tx_factory(TransactionType.EXPENSE, "100.00", from_account_id=acc.id)

    ledger.update(
        tx.id,
        copy_for_edit(tx, type=TransactionType.INCOME, from_account_id=None, to_account_id=acc.id),
    )

    assert ledger.balance_of(acc.id) == Decimal("100.00")


def test_update_transfer_to_expense(ledger, account_factory, tx_factory):
    a = account_factory("A", start_balance="500.00")
    b = account_factory("B")
    tx = tx_factory(TransactionType.TRANSFER, "200.00", from_account_id=a.id, to_account_id=b.id)

    ledger.update(tx.id, copy_for_edit(tx, type=TransactionType.EXPENSE, to_account_id=None))

    assert ledger.balance_of(a.id) == Decimal("300.00")
    assert ledger.balance_of(b.id) == Decimal("0.00")


def test_invalid_update_leaves_everything_unchanged(
    ledger, account_factory, tx_factory, transaction_repo
):
    acc = account_factory(start_balance="100.00")
    tx = tx_factory(TransactionType.EXPENSE, "10.00", from_account_id=acc.id)

    with pytest.raises(NotFoundError):
        ledger.update(tx.id, copy_for_edit(tx, from_account_id=9999, amount=Decimal("99")))

    assert ledger.balance_of(acc.id) == Decimal("90.00")
    assert transaction_repo.get_by_id(tx.id).amount == Decimal("10.00")


def test_update_unknown_transaction(ledger, account_factory):
    acc = account_factory()
    changes = Transaction(type=TransactionType.INCOME, amount=Decimal("1"), to_account_id=acc.id)
    with pytest.raises(NotFoundError):
        ledger.update(12345, changes)


def test_delete_reverses_effect(ledger, account_factory, tx_factory, transaction_repo):
    a = account_factory("A", start_balance="5000.00")
    b = account_factory("B")
    tx = tx_factory(TransactionType.TRANSFER, "500.00", from_account_id=a.id, to_account_id=b.id)

    ledger.delete(tx.id)

    assert ledger.balance_of(a.id) == Decimal("5000.00")
    assert ledger.balance_of(b.id) == Decimal("0.00")
    assert transaction_repo.get_by_id(tx.id) is None


def test_delete_twice_raises_not_found(ledger, account_factory, tx_factory):
    acc = account_factory()
    tx = tx_factory(TransactionType.EXPENSE, "1.00", from_account_id=acc.id)
    ledger.delete(tx.id)

    with pytest.raises(NotFoundError):
        ledger.delete(tx.id)
    assert ledger.balance_of(acc.id) == Decimal("0.00")


def test_delete_then_recreate_is_balance_neutral(ledger, account_factory, tx_factory):
    acc = account_factory(start_balance="250.00")
    tx = tx_factory(TransactionType.EXPENSE, "75.50", from_account_id=acc.id)
    after_create = ledger.balance_of(acc.id)

    ledger.delete(tx.id)
    tx_factory(TransactionType.EXPENSE, "75.50", from_account_id=acc.id)

    assert ledger.balance_of(acc.id) == after_create


@pytest.mark.parametrize(
    "fields",
    [
        {"type": TransactionType.EXPENSE, "amount": Decimal("0")},
        {"type": TransactionType.EXPENSE, "amount": Decimal("-5")},
        {"type": TransactionType.EXPENSE, "amount": Decimal("5"), "to_account_id": "A"},
        {"type": TransactionType.INCOME, "amount": Decimal("5"), "from_account_id": "A"},
        {"type": TransactionType.TRANSFER, "amount": Decimal("5"), "to_account_id": None},
        {"type": TransactionType.TRANSFER, "amount": Decimal("5"), "to_account_id": "A"},
        {"type": "REFUND", "amount": Decimal("5")},
    ],
)
def test_invalid_shapes_are_rejected(ledger, account_factory, fields):
    acc = account_factory(start_balance="10.00")
    resolved = {k: (acc.id if v == "A" else v) for k, v in fields.items()}
    if resolved["type"] != TransactionType.INCOME:
        resolved.setdefault("from_account_id", acc.id)
    else:
        resolved.setdefault("to_account_id", acc.id)

    with pytest.raises(ValidationError):
        ledger.create(Transaction(**resolved))
    assert ledger.balance_of(acc.id) == Decimal("10.00")


def test_unknown_account_is_not_found(ledger, account_factory, session_factory):
    acc = account_factory(start_balance="10.00")
    with pytest.raises(NotFoundError):
        ledger.create(
            Transaction(
                type=TransactionType.TRANSFER,
                amount=Decimal("5"),
                from_account_id=acc.id,
                to_account_id=424242,
            )
        )

    assert ledger.balance_of(acc.id) == Decimal("10.00")
    with session_factory() as session:
        assert session.exec(select(Transaction)).all() == []


def test_create_rejects_existing_id(ledger, account_factory):
    acc = account_factory()
    with pytest.raises(ValidationError):
        ledger.create(
            Transaction(id=7, type=TransactionType.INCOME, amount=Decimal("1"), to_account_id=acc.id)
        )


def test_asset_acquisition_records_units_without_affecting_math(
    ledger, account_factory, asset_factory, tx_factory
):
    cash = account_factory("Cash", start_balance="1000.00")
    depot = account_factory("Depot")
    etf = asset_factory()

    tx = tx_factory(
        TransactionType.TRANSFER,
        "250.00",
        from_account_id=cash.id,
        to_account_id=depot.id,
        asset_id=etf.id,
        units=Decimal("2.123456789"),
    )

    assert tx.units == Decimal("2.12345679")
    assert ledger.balance_of(cash.id) == Decimal("750.00")
    assert ledger.balance_of(depot.id) == Decimal("250.00")


def test_units_require_an_asset(ledger, account_factory):
    cash = account_factory("Cash")
    depot = account_factory("Depot")
    with pytest.raises(ValidationError):
        ledger.create(
            Transaction(
                type=TransactionType.TRANSFER,
                amount=Decimal("1"),
                from_account_id=cash.id,
                to_account_id=depot.id,
                units=Decimal("1"),
            )
        )


def test_unknown_asset_is_not_found(ledger, account_factory):
    cash = account_factory("Cash")
    depot = account_factory("Depot")
    with pytest.raises(NotFoundError):
        ledger.create(
            Transaction(
                type=TransactionType.TRANSFER,
                amount=Decimal("1"),
                from_account_id=cash.id,
                to_account_id=depot.id,
                asset_id=77,
                units=Decimal("1"),
            )
        )
    assert ledger.balance_of(cash.id) == Decimal("0.00")


def test_sort_order_counts_up_within_a_day(account_factory, tx_factory):
    acc = account_factory()
    day = datetime(2024, 3, 1, 8)
    first = tx_factory(TransactionType.INCOME, "1", to_account_id=acc.id, transaction_date=day)
    second = tx_factory(
        TransactionType.INCOME, "1", to_account_id=acc.id, transaction_date=day + timedelta(hours=5)
    )
    next_day = tx_factory(
        TransactionType.INCOME, "1", to_account_id=acc.id, transaction_date=day + timedelta(days=1)
    )

    assert (first.sort_order, second.sort_order) == (0, 1)
    assert next_day.sort_order == 0


def test_set_start_balance_shifts_balance(ledger, account_factory, tx_factory):
    acc = account_factory(start_balance="100.00")
    tx_factory(TransactionType.EXPENSE, "40.00", from_account_id=acc.id)

    updated = ledger.set_start_balance(acc.id, "150.00")

    assert updated.start_balance == Decimal("150.00")
    assert ledger.balance_of(acc.id) == Decimal("110.00")


@pytest.mark.parametrize("amount", ["12345678901234567.89", "1e30", "10000000000000.00"])
def test_amounts_beyond_the_money_column_are_rejected(ledger, account_factory, amount):
    acc = account_factory(start_balance="1.00")

    with pytest.raises(ValidationError):
        ledger.create(Transaction(type=TransactionType.INCOME, amount=amount, to_account_id=acc.id))

    assert ledger.balance_of(acc.id) == Decimal("1.00")
    assert ledger.recalculate(dry_run=True) == []


def test_balance_cannot_grow_past_the_money_column(ledger, account_factory, tx_factory):
    acc = account_factory(start_balance="9999999999999.00")

    with pytest.raises(ValidationError):
        tx_factory(TransactionType.INCOME, "1.00", to_account_id=acc.id)

    assert ledger.balance_of(acc.id) == Decimal("9999999999999.00")
    tx_factory(TransactionType.INCOME, "0.99", to_account_id=acc.id)
    assert ledger.balance_of(acc.id) == Decimal("9999999999999.99")


def test_set_start_balance_cannot_push_balance_out_of_range(ledger, account_factory, tx_factory):
    acc = account_factory(start_balance="0.00")
    tx_factory(TransactionType.INCOME, "5000000000000.00", to_account_id=acc.id)

    with pytest.raises(ValidationError):
        ledger.set_start_balance(acc.id, "5000000000000.00")

    assert ledger.balance_of(acc.id) == Decimal("5000000000000.00")


def test_update_to_another_day_takes_the_next_slot_there(ledger, account_factory, tx_factory):
    acc = account_factory()
    day = datetime(2024, 3, 1, 8)
    next_day = day + timedelta(days=1)
    tx_factory(TransactionType.INCOME, "1", to_account_id=acc.id, transaction_date=day)
    moved = tx_factory(TransactionType.INCOME, "1", to_account_id=acc.id, transaction_date=day)
    for _ in range(2):
        tx_factory(TransactionType.INCOME, "1", to_account_id=acc.id, transaction_date=next_day)
    assert moved.sort_order == 1

    updated = ledger.update(moved.id, copy_for_edit(moved, transaction_date=next_day))
    assert updated.sort_order == 2

    pinned = ledger.update(moved.id, copy_for_edit(updated, transaction_date=day, sort_order=7))
    assert pinned.sort_order == 7

    later = day + timedelta(hours=3)
    same_day = ledger.update(moved.id, copy_for_edit(pinned, transaction_date=later))
    assert same_day.sort_order == 7


def test_deleted_ids_are_never_reused(ledger, account_factory, tx_factory, transaction_repo):
    acc = account_factory()
    stale = tx_factory(TransactionType.INCOME, "1", to_account_id=acc.id)
    ledger.delete(stale.id)

    fresh = tx_factory(TransactionType.INCOME, "2", to_account_id=acc.id)

    assert fresh.id > stale.id
    with pytest.raises(NotFoundError):
        ledger.update(stale.id, copy_for_edit(fresh, amount=Decimal("9")))
    assert transaction_repo.get_by_id(fresh.id).amount == Decimal("2.00")


def test_balance_of_unknown_account(ledger):
    with pytest.raises(NotFoundError):
        ledger.balance_of(999)


def test_copy_for_edit_rejects_unknown_fields(account_factory, tx_factory):
    acc = account_factory()
    tx = tx_factory(TransactionType.INCOME, "1", to_account_id=acc.id)
    with pytest.raises(ValidationError):
        copy_for_edit(tx, balance=Decimal("1"))


def test_net_delta_drops_zero_entries():
    assert net_delta({1: Decimal("-5"), 2: Decimal("5")}, {1: Decimal("-5")}) == {2: Decimal("5")}


def test_balance_effect_of_transfer():
    tx = Transaction(
        type=TransactionType.TRANSFER,
        amount=Decimal("12.00"),
        from_account_id=1,
        to_account_id=2,
        status=TransactionStatus.COMPLETED,
    )
    assert balance_effect(tx) == {1: Decimal("-12.00"), 2: Decimal("12.00")}


def test_balance_invariant_over_random_operations(
    ledger, account_factory, transaction_repo, session_factory
):
    rng = random.Random(1234)
    accounts = [account_factory(f"Acc {i}", start_balance=f"{100 * i}.00") for i in range(4)]
    ids = [a.id for a in accounts]
    live: list[Transaction] = []

    def random_movement() -> dict:
        kind = rng.choice(list(TransactionType))
        amount = Decimal(rng.randint(1, 50000)) / 100
        status = rng.choice(
            [TransactionStatus.COMPLETED] * 3 + [TransactionStatus.PENDING, TransactionStatus.FAILED]
        )
        fields = {"type": kind, "amount": amount, "status": status}
        if kind == TransactionType.EXPENSE:
            fields["from_account_id"] = rng.choice(ids)
        elif kind == TransactionType.INCOME:
            fields["to_account_id"] = rng.choice(ids)
        else:
            src, dst = rng.sample(ids, 2)
            fields.update(from_account_id=src, to_account_id=dst)
        return fields

    for _ in range(60):
        op = rng.random()
        if op < 0.5 or not live:
            live.append(ledger.create(Transaction(**random_movement())))
        elif op < 0.8:
            target = rng.choice(live)
            fields = random_movement()
            fields.setdefault("from_account_id", None)
            fields.setdefault("to_account_id", None)
            updated = ledger.update(target.id, copy_for_edit(target, **fields))
            live[live.index(target)] = updated
        else:
            target = live.pop(rng.randrange(len(live)))
            ledger.delete(target.id)

    with session_factory() as session:
        stored = session.exec(select(Transaction)).all()
        starts = {a.id: a.start_balance for a in session.exec(select(Account)).all()}
    assert len(stored) == len(live)

    for account_id in ids:
        expected = starts[account_id]
        for tx in stored:
            expected += balance_effect(tx).get(account_id, Decimal("0"))
        assert ledger.balance_of(account_id) == expected

    assert ledger.recalculate(dry_run=True) == []


def test_recalculate_reports_and_repairs_drift(ledger, account_factory, tx_factory, session_factory):
    acc = account_factory("Drifty", start_balance="100.00")
    other = account_factory("Fine", start_balance="5.00")
    tx_factory(TransactionType.EXPENSE, "25.00", from_account_id=acc.id)

    with session_factory() as session:
        row = session.get(Account, acc.id)
        row.balance = Decimal("1.00")
        session.add(row)

    drifts = ledger.recalculate(dry_run=True)
    assert [(d.account_id, d.stored, d.expected) for d in drifts] == [
        (acc.id, Decimal("1.00"), Decimal("75.00"))
    ]
    assert drifts[0].difference == Decimal("74.00")
    assert ledger.balance_of(acc.id) == Decimal("1.00")

    assert len(ledger.recalculate(acc.id)) == 1
    assert ledger.balance_of(acc.id) == Decimal("75.00")
    assert ledger.balance_of(other.id) == Decimal("5.00")
    assert ledger.recalculate() == []


def test_recalculate_unknown_account(ledger):
    with pytest.raises(NotFoundError):
        ledger.recalculate(31337)


def test_mutations_are_logged(ledger, account_factory, tx_factory, caplog):
    caplog.set_level("INFO", logger="cashbook")
    acc = account_factory()
    tx = tx_factory(TransactionType.INCOME, "3.00", to_account_id=acc.id)
    ledger.delete(tx.id)

    messages = [r.getMessage() for r in caplog.records if r.name == "cashbook.ledger"]
    assert "Transaction created" in messages
    assert "Transaction deleted" in messages
