"""Fixed-point money helpers.

All balances and amounts are :class:`decimal.Decimal`. Floats are converted via their
string representation so ``to_money(0.1)`` is ``Decimal('0.10')``, never
``Decimal('0.1000000000000000055511151231257827')``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from .errors import ValidationError

CURRENCY_PLACES = Decimal("0.01")
UNIT_PLACES = Decimal("0.00000001")

ZERO = Decimal("0.00")

# Exclusive magnitude limits matching the Numeric(15, 2) and Numeric(19, 8) columns.
MONEY_LIMIT = Decimal(10) ** 13
UNITS_LIMIT = Decimal(10) ** 11

MoneyLike = Union[Decimal, int, float, str]


def _coerce(value: MoneyLike | None, field: str) -> Decimal:
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric, got {value!r}", field=field)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValidationError(f"{field} must be numeric, got {value!r}", field=field) from exc
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    return result


def _quantize(value: Decimal, places: Decimal, limit: Decimal, field: str) -> Decimal:
    try:
        result = value.quantize(places, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValidationError(f"{field} is out of range", field=field) from exc
    if abs(result) >= limit:
        raise ValidationError(
            f"{field} must be smaller than {limit:,} in magnitude", field=field
        )
    return result


def to_money(value: MoneyLike | None, *, field: str = "amount") -> Decimal:
    """Return ``value`` as a Decimal quantized to cents (half-up).

    Values that do not fit a ``Numeric(15, 2)`` column raise :class:`ValidationError`.
    """

    return _quantize(_coerce(value, field), CURRENCY_PLACES, MONEY_LIMIT, field)


def to_units(value: MoneyLike | None, *, field: str = "units") -> Decimal:
    """Return an asset quantity quantized to eight decimal places."""

    return _quantize(_coerce(value, field), UNIT_PLACES, UNITS_LIMIT, field)


def format_money(value: Decimal) -> str:
    """Render a money value for JSON/CLI output (plain string, two places)."""

    return str(to_money(value))


__all__ = [
    "CURRENCY_PLACES",
    "MONEY_LIMIT",
    "UNITS_LIMIT",
    "UNIT_PLACES",
    "ZERO",
    "MoneyLike",
    "format_money",
    "to_money",
    "to_units",
]
