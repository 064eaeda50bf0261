from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from invtrack.exceptions import NotFoundError, ValidationError
from invtrack.extensions import db
from invtrack.models import Transaction, TransactionType
from invtrack.routes import require_database
from invtrack.services.transactions import (
    TransactionRequest,
    list_transactions,
    process_transaction,
)
from invtrack.utils.parsing import json_body, parse_int, parse_text

bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")

bp.before_request(require_database)


def _parse_transaction_request(payload) -> TransactionRequest:
    return TransactionRequest(
        type=parse_text(payload, "type", required=True),
        item_id=parse_int(payload, "item_id", required=True),
        quantity=parse_int(payload, "quantity", required=True),
        performed_by=parse_int(payload, "performed_by", required=True),
        from_location_id=parse_int(payload, "from_location_id"),
        to_location_id=parse_int(payload, "to_location_id"),
        notes=parse_text(payload, "notes"),
        project_id=parse_text(payload, "project_id", max_length=255),
        purpose=parse_text(payload, "purpose", max_length=255),
    )


@bp.get("")
def get_transactions():
    item_id = parse_int(request.args, "item_id", minimum=1)
    transaction_type = (request.args.get("type") or "").strip() or None
    if transaction_type and transaction_type not in TransactionType.ALL_TYPES:
        raise ValidationError(f"Unknown transaction type '{transaction_type}'.")
    transactions = list_transactions(item_id=item_id, transaction_type=transaction_type)
    return jsonify([txn.to_dict() for txn in transactions])


@bp.get("/<int:transaction_id>")
def get_transaction(transaction_id: int):
    txn = db.session.get(Transaction, transaction_id)
    if txn is None:
        raise NotFoundError("Transaction not found")
    return jsonify(txn.to_dict())


@bp.post("")
def create_transaction():
    transaction_request = _parse_transaction_request(json_body())
    txn = process_transaction(
        transaction_request,
        clamp_withdrawals=current_app.config.get("STOCK_CLAMP_WITHDRAWALS", False),
    )
    return jsonify(txn.to_dict()), 201
