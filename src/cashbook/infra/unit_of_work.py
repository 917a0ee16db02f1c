"""Locked, all-or-nothing units of work over a session factory."""

from __future__ import annotations

from contextlib import contextmanager
from typing import ContextManager, Iterable, Iterator

from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from ..errors import ConflictError
from ..logging_config import get_logger
from .database import SessionFactory
from .locks import LockRegistry

logger = get_logger("uow")


class UnitOfWork:
    """Run a block under keyed locks inside one committing session.

    The session commits when the block returns and rolls back when it raises.
    Database-level lock failures (``database is locked``, lock wait timeouts,
    serialization failures) surface as :class:`ConflictError`.
    """

    def __init__(self, session_factory: SessionFactory, locks: LockRegistry):
        self.session_factory = session_factory
        self.locks = locks

    @contextmanager
    def __call__(self, keys: Iterable[str], timeout: float | None = None) -> Iterator[Session]:
        with self.locks.hold(keys, timeout=timeout) as held:
            try:
                with self.session_factory() as session:
                    yield session
            except OperationalError as exc:
                logger.warning("Unit of work rolled back", extra={"keys": held, "error": str(exc)})
                raise ConflictError(f"Database refused the unit of work: {exc.orig}") from exc

    def read(self) -> ContextManager[Session]:
        """Return a plain session context for lock-free reads of committed state."""
        return self.session_factory()


__all__ = ["UnitOfWork"]
