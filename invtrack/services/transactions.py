"""Record stock transactions and apply their ledger effect in one unit of work."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.exc import IntegrityError

from invtrack.exceptions import (
    InsufficientStockError,
    StockConflictError,
    ValidationError,
)
from invtrack.extensions import db
from invtrack.models import (
    MAX_DB_INTEGER,
    Item,
    Location,
    Transaction,
    TransactionType,
    User,
)
from invtrack.services.ledger import LedgerStore, Rejected
from invtrack.services.stock_status import refresh_item_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionRequest:
    type: str
    item_id: int
    quantity: int
    performed_by: int
    from_location_id: int | None = None
    to_location_id: int | None = None
    notes: str | None = None
    project_id: str | None = None
    purpose: str | None = None


# (needs from_location, needs to_location) per type.
REQUIRED_LOCATIONS: dict[str, tuple[bool, bool]] = {
    TransactionType.RECEIVE: (False, True),
    TransactionType.WITHDRAW: (True, False),
    TransactionType.TRANSFER: (True, True),
    TransactionType.DISPOSE: (True, False),
    TransactionType.ADJUST: (False, True),
}


def _raise_if_rejected(result, *, what: str) -> None:
    if isinstance(result, Rejected):
        raise InsufficientStockError(f"{what}: {result.reason}", available=result.available)


def _apply_receive(ledger: LedgerStore, txn: Transaction, clamp: bool) -> None:
    result = ledger.increment(txn.item_id, txn.to_location_id, txn.quantity)
    if isinstance(result, Rejected):
        raise ValidationError(result.reason)


def _apply_withdraw(ledger: LedgerStore, txn: Transaction, clamp: bool) -> None:
    result = ledger.decrement(txn.item_id, txn.from_location_id, txn.quantity, clamp=clamp)
    _raise_if_rejected(result, what="Cannot withdraw")


def _apply_transfer(ledger: LedgerStore, txn: Transaction, clamp: bool) -> None:
    source = ledger.decrement(txn.item_id, txn.from_location_id, txn.quantity, clamp=clamp)
    _raise_if_rejected(source, what="Cannot transfer")
    # Under clamping only what actually left the source arrives at the destination.
    moved = source.previous_quantity - source.quantity
    if moved > 0:
        ledger.increment(txn.item_id, txn.to_location_id, moved)


def _apply_dispose(ledger: LedgerStore, txn: Transaction, clamp: bool) -> None:
    result = ledger.decrement(txn.item_id, txn.from_location_id, txn.quantity, clamp=clamp)
    _raise_if_rejected(result, what="Cannot dispose")


def _apply_adjust(ledger: LedgerStore, txn: Transaction, clamp: bool) -> None:
    result = ledger.set_quantity(txn.item_id, txn.to_location_id, txn.quantity)
    if isinstance(result, Rejected):
        raise ValidationError(result.reason)


LEDGER_EFFECTS: dict[str, Callable[[LedgerStore, Transaction, bool], None]] = {
    TransactionType.RECEIVE: _apply_receive,
    TransactionType.WITHDRAW: _apply_withdraw,
    TransactionType.TRANSFER: _apply_transfer,
    TransactionType.DISPOSE: _apply_dispose,
    TransactionType.ADJUST: _apply_adjust,
}

_unhandled = set(TransactionType.ALL_TYPES) - set(LEDGER_EFFECTS)
if _unhandled:
    raise RuntimeError(
        "Transaction types without a ledger effect: " + ", ".join(sorted(_unhandled))
    )
_unhandled = set(TransactionType.ALL_TYPES) - set(REQUIRED_LOCATIONS)
if _unhandled:
    raise RuntimeError(
        "Transaction types without location rules: " + ", ".join(sorted(_unhandled))
    )
del _unhandled


def validate_request(request: TransactionRequest) -> None:
    """Structural checks that need no database access."""

    if request.type not in LEDGER_EFFECTS:
        raise ValidationError(
            f"Unknown transaction type '{request.type}'. "
            f"Expected one of: {', '.join(TransactionType.ALL_TYPES)}."
        )

    if isinstance(request.quantity, bool) or not isinstance(request.quantity, int):
        raise ValidationError("Quantity must be a whole number.")
    if request.type == TransactionType.ADJUST:
        if request.quantity < 0:
            raise ValidationError("Adjusted quantity cannot be negative.")
    elif request.quantity <= 0:
        raise ValidationError("Quantity must be greater than zero.")
    if request.quantity > MAX_DB_INTEGER:
        raise ValidationError(f"Quantity cannot exceed {MAX_DB_INTEGER}.")

    for label, value in (
        ("Item", request.item_id),
        ("User", request.performed_by),
        ("Location", request.from_location_id),
        ("Location", request.to_location_id),
    ):
        if value is not None and not 0 < value <= MAX_DB_INTEGER:
            raise ValidationError(f"{label} {value} does not exist.")

    needs_from, needs_to = REQUIRED_LOCATIONS[request.type]
    if needs_from and request.from_location_id is None:
        raise ValidationError(f"A source location is required for {request.type}.")
    if needs_to and request.to_location_id is None:
        raise ValidationError(f"A destination location is required for {request.type}.")
    if (
        request.type == TransactionType.TRANSFER
        and request.from_location_id == request.to_location_id
    ):
        raise ValidationError("Transfer locations must be different.")


def _resolve_references(request: TransactionRequest, session) -> Item:
    item = session.get(Item, request.item_id)
    if item is None:
        raise ValidationError(f"Item {request.item_id} does not exist.")

    if session.get(User, request.performed_by) is None:
        raise ValidationError(f"User {request.performed_by} does not exist.")

    for location_id in (request.from_location_id, request.to_location_id):
        if location_id is not None and session.get(Location, location_id) is None:
            raise ValidationError(f"Location {location_id} does not exist.")
    return item


def apply_transaction(
    request: TransactionRequest, session, *, clamp_withdrawals: bool = False
) -> Transaction:
    """Insert the transaction row and apply its ledger effect without committing."""

    validate_request(request)
    item = _resolve_references(request, session)

    txn = Transaction(
        type=request.type,
        item_id=request.item_id,
        quantity=request.quantity,
        from_location_id=request.from_location_id,
        to_location_id=request.to_location_id,
        performed_by=request.performed_by,
        notes=request.notes,
        project_id=request.project_id,
        purpose=request.purpose,
    )
    session.add(txn)
    session.flush()

    LEDGER_EFFECTS[txn.type](LedgerStore(session), txn, clamp_withdrawals)
    refresh_item_status(item, session=session)
    return txn


def process_transaction(
    request: TransactionRequest, *, clamp_withdrawals: bool = False
) -> Transaction:
    """Validate, persist and apply a transaction.

    The transaction row, every ledger change and the refreshed item status are
    committed together; any failure rolls all of them back.
    """

    session = db.session

    try:
        txn = apply_transaction(request, session, clamp_withdrawals=clamp_withdrawals)
        session.commit()
    except ValidationError as exc:
        session.rollback()
        logger.warning(
            "Rejected %s of %s for item %s: %s",
            request.type,
            request.quantity,
            request.item_id,
            exc.message,
        )
        raise
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Stock entry conflict while recording %s: %s", request.type, exc)
        raise StockConflictError(
            "Stock for this item changed concurrently. Retry the transaction."
        ) from exc
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Recorded %s transaction %s: item=%s qty=%s from=%s to=%s",
        txn.type,
        txn.id,
        txn.item_id,
        txn.quantity,
        txn.from_location_id,
        txn.to_location_id,
    )
    return txn


def list_transactions(*, item_id: int | None = None, transaction_type: str | None = None):
    query = Transaction.query
    if item_id is not None:
        query = query.filter(Transaction.item_id == item_id)
    if transaction_type:
        query = query.filter(Transaction.type == transaction_type)
    return query.order_by(Transaction.performed_at.desc(), Transaction.id.desc()).all()
