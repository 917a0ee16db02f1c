"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from .clock import Clock, SystemClock
from .config import BaseConfig
from .domain.repositories import (
    AccountRepository,
    AssetRepository,
    ScheduledTransactionRepository,
    TransactionRepository,
)
from .infra.database import SessionFactory, bootstrap_database
from .infra.locks import LockRegistry
from .infra.repositories import (
    SQLModelAccountRepository,
    SQLModelAssetRepository,
    SQLModelScheduledTransactionRepository,
    SQLModelTransactionRepository,
)
from .infra.unit_of_work import UnitOfWork
from .services.ledger import Ledger
from .services.scheduler import SchedulerService


@dataclass
class AppContext:
    """Centralized application context with services and repositories."""

    # Configuration
    config: BaseConfig
    clock: Clock

    # Persistence
    engine: Engine
    session_factory: SessionFactory
    locks: LockRegistry
    uow: UnitOfWork

    # Repositories
    account_repo: AccountRepository
    asset_repo: AssetRepository
    transaction_repo: TransactionRepository
    schedule_repo: ScheduledTransactionRepository

    # Services
    ledger: Ledger
    scheduler: SchedulerService


def create_app_context(
    config: Optional[BaseConfig] = None, *, clock: Optional[Clock] = None
) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()
    if clock is None:
        clock = SystemClock()

    # Create database engine and schema
    engine, session_factory = bootstrap_database(config)

    locks = LockRegistry(default_timeout=config.LOCK_TIMEOUT)
    uow = UnitOfWork(session_factory, locks)

    schedule_repo = SQLModelScheduledTransactionRepository(session_factory)
    ledger = Ledger(uow, lock_timeout=config.LOCK_TIMEOUT)
    scheduler = SchedulerService(
        uow,
        ledger,
        schedule_repo,
        clock=clock,
        post_date_policy=config.POST_DATE_POLICY,
        batch_size=config.DUE_BATCH_SIZE,
        lock_timeout=config.LOCK_TIMEOUT,
    )

    return AppContext(
        config=config,
        clock=clock,
        engine=engine,
        session_factory=session_factory,
        locks=locks,
        uow=uow,
        account_repo=SQLModelAccountRepository(session_factory),
        asset_repo=SQLModelAssetRepository(session_factory),
        transaction_repo=SQLModelTransactionRepository(session_factory),
        schedule_repo=schedule_repo,
        ledger=ledger,
        scheduler=scheduler,
    )


__all__ = ["AppContext", "create_app_context"]
