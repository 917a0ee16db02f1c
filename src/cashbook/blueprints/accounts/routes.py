"""Account balance routes."""

from __future__ import annotations

from flask import jsonify, request

from ...errors import ValidationError
from ...extensions import get_context
from ...serializers import drift_to_dict, parse_int
from . import bp


@bp.get("/<int:account_id>/balance")
def account_balance(account_id: int):
    balance = get_context().ledger.balance_of(account_id)
    return jsonify({"account_id": account_id, "balance": str(balance)})


@bp.post("/recalculate")
def recalculate():
    """Rebuild balances from history; ``dry_run`` only reports the drift."""
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    account_id = parse_int(payload.get("account_id"), field="account_id")
    dry_run = bool(payload.get("dry_run", False))
    drifts = get_context().ledger.recalculate(account_id, dry_run=dry_run)
    return jsonify(
        {
            "dry_run": dry_run,
            "drifts": [drift_to_dict(drift) for drift in drifts],
        }
    )
