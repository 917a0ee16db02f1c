"""Blueprint exports."""

from . import accounts, schedules, transactions

__all__ = [
    "accounts",
    "schedules",
    "transactions",
]
