from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import IntegrityError

from invtrack.exceptions import NotFoundError, StockConflictError, ValidationError
from invtrack.extensions import db
from invtrack.models import Item, ItemLocation, Location, StockEntryStatus, TransactionType
from invtrack.routes import require_database
from invtrack.services.ledger import LedgerStore
from invtrack.services.stock_status import refresh_item_status
from invtrack.services.transactions import TransactionRequest, apply_transaction
from invtrack.utils.parsing import (
    json_body,
    parse_bool,
    parse_choice,
    parse_datetime,
    parse_int,
)

bp = Blueprint("item_locations", __name__, url_prefix="/api/item-locations")

bp.before_request(require_database)

# Quantity only moves through transactions once an entry exists.
_EDITABLE_FIELDS = {"status", "purchased_date", "warranty_expiration", "is_paid"}


def _apply_entry_details(entry: ItemLocation, payload) -> None:
    if "status" in payload:
        entry.status = parse_choice(
            payload, "status", StockEntryStatus.ALL_STATUSES, required=True
        )
    if "purchased_date" in payload:
        entry.purchased_date = parse_datetime(payload, "purchased_date")
    if "warranty_expiration" in payload:
        entry.warranty_expiration = parse_datetime(payload, "warranty_expiration")
    if "is_paid" in payload:
        is_paid = parse_bool(payload, "is_paid")
        entry.is_paid = True if is_paid is None else is_paid


@bp.get("")
def list_item_locations():
    entries = LedgerStore(db.session).all_entries()
    response = jsonify([entry.to_dict() for entry in entries])
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    return response


@bp.post("")
def create_item_location():
    payload = json_body()
    item_id = parse_int(payload, "item_id", required=True, minimum=1)
    location_id = parse_int(payload, "location_id", required=True, minimum=1)
    quantity = parse_int(payload, "quantity", minimum=0) or 0
    performed_by = parse_int(payload, "performed_by", required=quantity > 0, minimum=1)

    item = db.session.get(Item, item_id)
    if item is None:
        raise ValidationError(f"Item {item_id} does not exist.")
    if db.session.get(Location, location_id) is None:
        raise ValidationError(f"Location {location_id} does not exist.")

    ledger = LedgerStore(db.session)
    if ledger.get_entry(item_id, location_id) is not None:
        raise ValidationError(
            "This item already has a stock entry at the location. "
            "Record a transaction to change its quantity."
        )

    entry = ItemLocation(item_id=item_id, location_id=location_id, quantity=0)
    _apply_entry_details(entry, payload)
    try:
        db.session.add(entry)
        db.session.flush()
        if quantity > 0:
            # The opening balance is recorded like any other stock count.
            apply_transaction(
                TransactionRequest(
                    type=TransactionType.ADJUST,
                    item_id=item_id,
                    quantity=quantity,
                    performed_by=performed_by,
                    to_location_id=location_id,
                    notes="Opening balance",
                ),
                db.session,
            )
        else:
            refresh_item_status(item)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Stock entry conflict for item %s at location %s: %s", item_id, location_id, exc
        )
        raise StockConflictError(
            "A stock entry for this item and location was created concurrently."
        ) from exc
    except Exception:
        db.session.rollback()
        raise

    return jsonify(entry.to_dict()), 201


@bp.patch("/<int:entry_id>")
def update_item_location(entry_id: int):
    entry = db.session.get(ItemLocation, entry_id)
    if entry is None:
        raise NotFoundError("Item location not found")
    payload = json_body()

    if "quantity" in payload:
        raise ValidationError(
            "Stock quantities change through transactions. "
            "Record an adjust transaction to correct a count."
        )
    unknown = set(payload) - _EDITABLE_FIELDS - {"id", "item_id", "location_id"}
    if unknown:
        raise ValidationError(f"Unsupported fields: {', '.join(sorted(unknown))}.")
    if payload.get("item_id", entry.item_id) != entry.item_id or payload.get(
        "location_id", entry.location_id
    ) != entry.location_id:
        raise ValidationError("A stock entry cannot be moved to another item or location.")

    _apply_entry_details(entry, payload)
    db.session.commit()
    return jsonify(entry.to_dict())
