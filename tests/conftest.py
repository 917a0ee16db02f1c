"""Pytest configuration and shared fixtures for Cashbook tests.

This module provides database fixtures, test data factories, and service wiring
for testing the ledger, recurrence and scheduler without touching a real data dir.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from cashbook.clock import FixedClock
from cashbook.config import TestConfig
from cashbook.infra.database import create_db_engine, create_session_factory, init_database
from cashbook.infra.locks import LockRegistry
from cashbook.infra.repositories import (
    SQLModelAccountRepository,
    SQLModelAssetRepository,
    SQLModelScheduledTransactionRepository,
    SQLModelTransactionRepository,
)
from cashbook.infra.unit_of_work import UnitOfWork
from cashbook.models import (
    Account,
    Asset,
    RecurrencePattern,
    ScheduledTransaction,
    Transaction,
    TransactionType,
    User,
)
from cashbook.services.ledger import Ledger
from cashbook.services.scheduler import SchedulerService

# Wednesday
NOW = datetime(2024, 1, 17, 9, 30)


# =============================================================================
# Configuration & Database Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path, monkeypatch):
    """TestConfig rooted in a temporary data dir with its own SQLite file."""
    monkeypatch.setenv("CASHBOOK_DATA_DIR", str(tmp_path / "instance"))
    monkeypatch.setenv("CASHBOOK_DATABASE_URL", f"sqlite:///{tmp_path / 'cashbook-test.db'}")
    monkeypatch.setenv("CASHBOOK_LOCK_TIMEOUT", "2")
    monkeypatch.delenv("CASHBOOK_POST_DATE_POLICY", raising=False)
    monkeypatch.delenv("CASHBOOK_DUE_BATCH_SIZE", raising=False)
    monkeypatch.delenv("CASHBOOK_DEV_MODE", raising=False)
    return TestConfig()


@pytest.fixture
def db_engine(config):
    """Engine on a fresh SQLite file with all tables created.

    A file (not ``:memory:``) so that threads in the concurrency tests share one
    database through separate connections.
    """
    engine = create_db_engine(config)
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def locks() -> LockRegistry:
    return LockRegistry(default_timeout=2.0)


@pytest.fixture
def uow(session_factory, locks) -> UnitOfWork:
    return UnitOfWork(session_factory, locks)


@pytest.fixture
def ledger(uow) -> Ledger:
    return Ledger(uow)


@pytest.fixture
def schedule_repo(session_factory) -> SQLModelScheduledTransactionRepository:
    return SQLModelScheduledTransactionRepository(session_factory)


@pytest.fixture
def transaction_repo(session_factory) -> SQLModelTransactionRepository:
    return SQLModelTransactionRepository(session_factory)


@pytest.fixture
def account_repo(session_factory) -> SQLModelAccountRepository:
    return SQLModelAccountRepository(session_factory)


@pytest.fixture
def asset_repo(session_factory) -> SQLModelAssetRepository:
    return SQLModelAssetRepository(session_factory)


@pytest.fixture
def scheduler(uow, ledger, schedule_repo, clock) -> SchedulerService:
    return SchedulerService(uow, ledger, schedule_repo, clock=clock, batch_size=2)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def user(session_factory) -> User:
    """Create a default user for scoping data."""
    with session_factory() as session:
        row = User(username="tester")
        session.add(row)
        session.flush()
        session.refresh(row)
    return row


@pytest.fixture
def account_factory(ledger, user):
    """Factory for opening test accounts through the ledger."""

    def _create_account(
        name: str = "Checking",
        start_balance: str | Decimal = "0.00",
        currency: str = "EUR",
        **extra,
    ) -> Account:
        account = Account(
            user_id=user.id,
            name=name,
            currency=currency,
            start_balance=Decimal(str(start_balance)),
            **extra,
        )
        return ledger.open_account(account)

    return _create_account


@pytest.fixture
def asset_factory(asset_repo, user):
    def _create_asset(symbol: str = "VWCE.DE", name: str = "FTSE All-World") -> Asset:
        return asset_repo.create(Asset(user_id=user.id, symbol=symbol, name=name))

    return _create_asset


@pytest.fixture
def tx_factory(ledger):
    """Factory for creating ledger transactions with sensible defaults."""

    def _create_tx(
        type: TransactionType | str = TransactionType.EXPENSE,
        amount: str | Decimal = "10.00",
        **fields,
    ) -> Transaction:
        fields.setdefault("transaction_date", NOW)
        return ledger.create(Transaction(type=type, amount=Decimal(str(amount)), **fields))

    return _create_tx


@pytest.fixture
def schedule_factory(scheduler, user):
    """Factory for saving scheduled transactions through the scheduler."""

    def _create_schedule(
        type: TransactionType | str = TransactionType.EXPENSE,
        amount: str | Decimal = "25.00",
        pattern: RecurrencePattern | str = RecurrencePattern.MONTHLY,
        value: int | None = 1,
        next_occurrence: datetime = NOW,
        **fields,
    ) -> ScheduledTransaction:
        schedule = ScheduledTransaction(
            user_id=user.id,
            type=type,
            amount=Decimal(str(amount)),
            recurrence_pattern=pattern,
            recurrence_value=value,
            next_occurrence=next_occurrence,
            **fields,
        )
        return scheduler.save(schedule)

    return _create_schedule


# =============================================================================
# Flask Fixtures
# =============================================================================


@pytest.fixture
def app(config, clock):
    from cashbook import create_app

    app = create_app(config=config, clock=clock)
    yield app
    app.extensions["cashbook"].engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def cli_runner(app):
    return app.test_cli_runner()


@pytest.fixture
def services(app):
    """The application's service context (ledger, scheduler, repositories)."""
    return app.extensions["cashbook"]


@pytest.fixture
def app_user(services) -> User:
    with services.session_factory() as session:
        row = User(username="api-user")
        session.add(row)
        session.flush()
        session.refresh(row)
    return row
