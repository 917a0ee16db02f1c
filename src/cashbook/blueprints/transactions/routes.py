"""Transaction routes."""

from __future__ import annotations

from flask import jsonify, request

from ...errors import NotFoundError, ValidationError
from ...extensions import get_context
from ...serializers import (
    parse_int,
    transaction_fields,
    transaction_from_payload,
    transaction_to_dict,
)
from ...services.ledger import copy_for_edit
from . import bp


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


@bp.post("")
def create_transaction():
    """Create a transaction and apply it to the account balances."""
    tx = transaction_from_payload(_json_body())
    created = get_context().ledger.create(tx)
    return jsonify(transaction_to_dict(created)), 201


@bp.get("")
def list_transactions():
    """List transactions, newest first, optionally for one account."""
    ctx = get_context()
    account_id = parse_int(request.args.get("account_id"), field="account_id")
    if account_id is not None:
        rows = ctx.transaction_repo.list_by_account(account_id)
    else:
        rows = ctx.transaction_repo.search(text=request.args.get("q") or None)
    return jsonify([transaction_to_dict(tx) for tx in rows])


@bp.get("/<int:transaction_id>")
def get_transaction(transaction_id: int):
    tx = get_context().transaction_repo.get_by_id(transaction_id)
    if tx is None:
        raise NotFoundError("Transaction", transaction_id)
    return jsonify(transaction_to_dict(tx))


@bp.put("/<int:transaction_id>")
def update_transaction(transaction_id: int):
    """Edit a transaction; fields left out of the body keep their stored values."""
    ctx = get_context()
    changes = transaction_fields(_json_body())
    stored = ctx.transaction_repo.get_by_id(transaction_id)
    if stored is None:
        raise NotFoundError("Transaction", transaction_id)
    updated = ctx.ledger.update(transaction_id, copy_for_edit(stored, **changes))
    return jsonify(transaction_to_dict(updated))


@bp.delete("/<int:transaction_id>")
def delete_transaction(transaction_id: int):
    get_context().ledger.delete(transaction_id)
    return "", 204
