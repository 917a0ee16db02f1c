"""JSON conversion for API payloads and responses.

Money and unit quantities travel as strings so no precision is lost on the way through
JSON; datetimes use ISO 8601.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from .errors import ValidationError
from .models.scheduled import ScheduledTransaction
from .models.transaction import MOVEMENT_FIELDS, Transaction
from .services.ledger import BalanceDrift

WRITABLE_FIELDS: tuple[str, ...] = MOVEMENT_FIELDS + ("status", "transaction_date", "sort_order")
_INT_FIELDS = ("from_account_id", "to_account_id", "asset_id", "sort_order")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def parse_datetime(value: Any, *, field: str) -> datetime:
    """Parse an ISO 8601 date or datetime string."""
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO 8601 datetime", **{field: value}) from exc


def parse_int(value: Any, *, field: str, default: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", **{field: value})
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", **{field: value}) from exc


def transaction_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Validate keys of a transaction payload and coerce ids and dates.

    Enum and money fields are left for the ledger to normalize.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    unknown = set(payload) - set(WRITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown transaction fields: {', '.join(sorted(unknown))}")
    fields = dict(payload)
    for name in _INT_FIELDS:
        if name in fields:
            fields[name] = parse_int(fields[name], field=name)
    if "transaction_date" in fields:
        fields["transaction_date"] = parse_datetime(
            fields["transaction_date"], field="transaction_date"
        )
    return fields


def transaction_from_payload(payload: Mapping[str, Any]) -> Transaction:
    fields = transaction_fields(payload)
    if fields.get("transaction_date") is None:
        fields.pop("transaction_date", None)
    return Transaction(**fields)


def transaction_to_dict(tx: Transaction) -> dict[str, Any]:
    names = ("id",) + WRITABLE_FIELDS + ("scheduled_id",)
    return {name: _jsonable(getattr(tx, name)) for name in names}


def schedule_to_dict(schedule: ScheduledTransaction) -> dict[str, Any]:
    names = (
        ("id", "user_id")
        + MOVEMENT_FIELDS
        + ("recurrence_pattern", "recurrence_value", "next_occurrence", "enabled")
    )
    return {name: _jsonable(getattr(schedule, name)) for name in names}


def drift_to_dict(drift: BalanceDrift) -> dict[str, Any]:
    return {
        "account_id": drift.account_id,
        "name": drift.name,
        "stored": str(drift.stored),
        "expected": str(drift.expected),
        "difference": str(drift.difference),
    }


__all__ = [
    "WRITABLE_FIELDS",
    "drift_to_dict",
    "parse_datetime",
    "parse_int",
    "schedule_to_dict",
    "transaction_fields",
    "transaction_from_payload",
    "transaction_to_dict",
]
