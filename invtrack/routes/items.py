from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import case, func, or_

from invtrack.exceptions import NotFoundError, ValidationError
from invtrack.extensions import db
from invtrack.models import Category, Item, ItemLocation, ItemStatus, Location, Transaction
from invtrack.routes import require_database
from invtrack.services.ledger import LedgerStore
from invtrack.services.stock_status import (
    evaluate_status,
    item_totals,
    refresh_item_status,
    total_quantity,
)
from invtrack.services.transactions import list_transactions
from invtrack.utils.parsing import (
    json_body,
    parse_choice,
    parse_decimal,
    parse_int,
    parse_text,
)

bp = Blueprint("items", __name__, url_prefix="/api/items")

bp.before_request(require_database)


def _get_item_or_404(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item not found")
    return item


def _item_payload(item: Item, total: int) -> dict[str, object]:
    payload = item.to_dict()
    payload["total_quantity"] = total
    payload["stock_status"] = evaluate_status(total, item.minimum_stock, item.status)
    return payload


def _resolve_category_id(payload) -> int | None:
    category_id = parse_int(payload, "category_id")
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise ValidationError(f"Category {category_id} does not exist.")
    return category_id


def _ensure_unique_sku(sku: str, *, exclude_id: int | None = None) -> None:
    query = Item.query.filter(Item.sku == sku)
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    if query.first() is not None:
        raise ValidationError(f"An item with SKU {sku} already exists.")


def _check_stock_bounds(minimum: int | None, maximum: int | None) -> None:
    if minimum is not None and maximum is not None and maximum < minimum:
        raise ValidationError("'maximum_stock' cannot be lower than 'minimum_stock'.")


@bp.get("")
def list_items():
    items = Item.query.order_by(Item.name.asc()).all()
    totals = item_totals()
    return jsonify([_item_payload(item, totals.get(item.id, 0)) for item in items])


@bp.get("/search")
def search_items():
    query = (request.args.get("q") or "").strip()
    if not query:
        return jsonify({"error": "Query parameter 'q' is required."}), 400
    if len(query) > 80:
        return jsonify({"error": "Query must be 80 characters or fewer."}), 400

    lowered = query.lower()
    contains_pattern = f"%{lowered}%"
    prefix_pattern = f"{lowered}%"

    match_filter = or_(
        func.lower(Item.sku).like(contains_pattern),
        func.lower(Item.name).like(contains_pattern),
        func.lower(Item.description).like(contains_pattern),
    )
    ranking = case(
        (func.lower(Item.sku) == lowered, 0),
        (func.lower(Item.sku).like(prefix_pattern), 1),
        (func.lower(Item.name).like(prefix_pattern), 2),
        else_=3,
    )

    matches = (
        Item.query.filter(match_filter)
        .order_by(ranking, Item.sku)
        .limit(current_app.config.get("SEARCH_RESULT_LIMIT", 25))
        .all()
    )
    totals = item_totals(item.id for item in matches)
    return jsonify([_item_payload(item, totals.get(item.id, 0)) for item in matches])


@bp.get("/<int:item_id>")
def get_item(item_id: int):
    item = _get_item_or_404(item_id)
    return jsonify(_item_payload(item, total_quantity(item.id)))


@bp.post("")
def create_item():
    payload = json_body()
    sku = parse_text(payload, "sku", required=True, max_length=120)
    _ensure_unique_sku(sku)

    minimum_stock = parse_int(payload, "minimum_stock", minimum=0)
    maximum_stock = parse_int(payload, "maximum_stock", minimum=0)
    _check_stock_bounds(minimum_stock, maximum_stock)

    status = parse_choice(payload, "status", ItemStatus.ALL_STATUSES)
    item = Item(
        sku=sku,
        name=parse_text(payload, "name", required=True, max_length=255),
        description=parse_text(payload, "description"),
        manufacturer=parse_text(payload, "manufacturer", required=True, max_length=255),
        model=parse_text(payload, "model", max_length=255),
        serial_number=parse_text(payload, "serial_number", max_length=255),
        minimum_stock=minimum_stock if minimum_stock is not None else 0,
        maximum_stock=maximum_stock,
        unit_cost=parse_decimal(payload, "unit_cost", required=True),
        category_id=_resolve_category_id(payload),
        image_url=parse_text(payload, "image_url", max_length=1024),
        status=(
            ItemStatus.DISCONTINUED
            if status == ItemStatus.DISCONTINUED
            else ItemStatus.OUT_OF_STOCK
        ),
    )
    db.session.add(item)
    db.session.commit()
    current_app.logger.info("Created item %s (%s)", item.id, item.sku)
    return jsonify(_item_payload(item, 0)), 201


@bp.patch("/<int:item_id>")
def update_item(item_id: int):
    item = _get_item_or_404(item_id)
    payload = json_body()

    if "sku" in payload:
        sku = parse_text(payload, "sku", required=True, max_length=120)
        _ensure_unique_sku(sku, exclude_id=item.id)
        item.sku = sku
    for field in ("name", "manufacturer"):
        if field in payload:
            setattr(item, field, parse_text(payload, field, required=True, max_length=255))
    for field in ("model", "serial_number"):
        if field in payload:
            setattr(item, field, parse_text(payload, field, max_length=255))
    if "description" in payload:
        item.description = parse_text(payload, "description")
    if "image_url" in payload:
        item.image_url = parse_text(payload, "image_url", max_length=1024)
    if "unit_cost" in payload:
        item.unit_cost = parse_decimal(payload, "unit_cost", required=True)
    if "minimum_stock" in payload:
        minimum = parse_int(payload, "minimum_stock", minimum=0)
        item.minimum_stock = minimum if minimum is not None else 0
    if "maximum_stock" in payload:
        item.maximum_stock = parse_int(payload, "maximum_stock", minimum=0)
    _check_stock_bounds(item.minimum_stock, item.maximum_stock)
    if "category_id" in payload:
        item.category_id = _resolve_category_id(payload)

    if "status" in payload:
        status = parse_choice(payload, "status", ItemStatus.ALL_STATUSES, required=True)
        if status == ItemStatus.DISCONTINUED:
            item.status = ItemStatus.DISCONTINUED
        else:
            # Clearing the override hands status back to the ledger.
            item.status = ItemStatus.OUT_OF_STOCK
    refresh_item_status(item)

    db.session.commit()
    return jsonify(_item_payload(item, total_quantity(item.id)))


@bp.delete("/<int:item_id>")
def delete_item(item_id: int):
    item = _get_item_or_404(item_id)
    if Transaction.query.filter(Transaction.item_id == item_id).first() is not None:
        raise ValidationError(
            "Item has transaction history and cannot be deleted. "
            "Mark it discontinued instead."
        )
    db.session.delete(item)
    db.session.commit()
    current_app.logger.info("Deleted item %s", item_id)
    return "", 204


@bp.get("/<int:item_id>/locations")
def item_locations(item_id: int):
    _get_item_or_404(item_id)
    entries = LedgerStore(db.session).entries_for_item(item_id)
    return jsonify([entry.to_dict() for entry in entries])


@bp.get("/<int:item_id>/transactions")
def item_transactions(item_id: int):
    _get_item_or_404(item_id)
    return jsonify([txn.to_dict() for txn in list_transactions(item_id=item_id)])


@bp.get("/<int:item_id>/stock")
def item_stock(item_id: int):
    item = _get_item_or_404(item_id)
    rows = (
        db.session.query(Location, ItemLocation.quantity)
        .join(ItemLocation, ItemLocation.location_id == Location.id)
        .filter(ItemLocation.item_id == item_id)
        .order_by(Location.building, Location.room, Location.unit)
        .all()
    )
    locations = [
        {
            "location_id": location.id,
            "label": location.label,
            "quantity": int(quantity or 0),
        }
        for location, quantity in rows
    ]
    total = sum(entry["quantity"] for entry in locations)
    return jsonify(
        {
            "item_id": item.id,
            "total_quantity": total,
            "minimum_stock": item.minimum_stock or 0,
            "stock_status": evaluate_status(total, item.minimum_stock, item.status),
            "locations": locations,
        }
    )
