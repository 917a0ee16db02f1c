"""Error taxonomy for the ledger and recurrence engine."""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base class for all errors raised by the ledger core."""

    code = "ledger_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.context:
            payload["context"] = {k: str(v) for k, v in self.context.items()}
        return payload


class ValidationError(LedgerError):
    """Malformed transaction shape, non-positive amount or same-account transfer."""

    code = "validation_error"


class NotFoundError(LedgerError):
    """Unknown account, asset, transaction or schedule id."""

    code = "not_found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id} not found", entity=entity, id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class DisabledScheduleError(LedgerError):
    """Raised when posting or skipping a disabled scheduled transaction."""

    code = "schedule_disabled"

    def __init__(self, schedule_id: int) -> None:
        super().__init__(f"Scheduled transaction {schedule_id} is disabled", id=schedule_id)
        self.schedule_id = schedule_id


class InvalidRuleError(LedgerError):
    """Recurrence value is not a positive interval for a value-based pattern."""

    code = "invalid_rule"


class ConflictError(LedgerError):
    """Lock wait or database serialization timed out; nothing was committed."""

    code = "conflict"


__all__ = [
    "ConflictError",
    "DisabledScheduleError",
    "InvalidRuleError",
    "LedgerError",
    "NotFoundError",
    "ValidationError",
]
