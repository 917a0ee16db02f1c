"""Service module exports."""

from . import ledger, recurrence, scheduler

__all__ = [
    "ledger",
    "recurrence",
    "scheduler",
]
