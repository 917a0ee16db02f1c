"""Scheduled transaction repository protocol."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ...models.scheduled import ScheduledTransaction


class ScheduledTransactionRepository(Protocol):
    """Read access to scheduled transactions. Cursor moves go through the scheduler."""

    def get_by_id(self, schedule_id: int) -> Optional[ScheduledTransaction]:
        """Retrieve a schedule by ID."""
        ...

    def list_all(self, *, user_id: int) -> list[ScheduledTransaction]:
        """List a user's schedules ordered by next occurrence."""
        ...

    def due_batch(
        self,
        cutoff: datetime,
        *,
        after: Optional[tuple[datetime, int]] = None,
        limit: int = 50,
        user_id: Optional[int] = None,
    ) -> list[ScheduledTransaction]:
        """One keyset page of enabled schedules due on or before ``cutoff``."""
        ...
