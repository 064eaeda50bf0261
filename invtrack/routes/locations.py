from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy import or_

from invtrack.exceptions import NotFoundError, ValidationError
from invtrack.extensions import db
from invtrack.models import ItemLocation, Location, Transaction
from invtrack.routes import require_database
from invtrack.services.stock_status import refresh_item_status
from invtrack.utils.parsing import json_body, parse_text

bp = Blueprint("locations", __name__, url_prefix="/api/locations")

bp.before_request(require_database)


def _get_location_or_404(location_id: int) -> Location:
    location = db.session.get(Location, location_id)
    if location is None:
        raise NotFoundError("Location not found")
    return location


@bp.get("")
def list_locations():
    locations = Location.query.order_by(
        Location.building.asc(), Location.room.asc(), Location.unit.asc()
    ).all()
    return jsonify([location.to_dict() for location in locations])


@bp.get("/<int:location_id>")
def get_location(location_id: int):
    return jsonify(_get_location_or_404(location_id).to_dict())


@bp.get("/<int:location_id>/stock")
def location_stock(location_id: int):
    _get_location_or_404(location_id)
    entries = (
        ItemLocation.query.filter(ItemLocation.location_id == location_id)
        .order_by(ItemLocation.item_id)
        .all()
    )
    return jsonify([entry.to_dict() for entry in entries])


@bp.post("")
def create_location():
    payload = json_body()
    location = Location(
        building=parse_text(payload, "building", max_length=255),
        room=parse_text(payload, "room", max_length=255),
        unit=parse_text(payload, "unit", required=True, max_length=255),
    )
    db.session.add(location)
    db.session.commit()
    return jsonify(location.to_dict()), 201


@bp.patch("/<int:location_id>")
def update_location(location_id: int):
    location = _get_location_or_404(location_id)
    payload = json_body()
    if "building" in payload:
        location.building = parse_text(payload, "building", max_length=255)
    if "room" in payload:
        location.room = parse_text(payload, "room", max_length=255)
    if "unit" in payload:
        location.unit = parse_text(payload, "unit", required=True, max_length=255)
    db.session.commit()
    return jsonify(location.to_dict())


@bp.delete("/<int:location_id>")
def delete_location(location_id: int):
    location = _get_location_or_404(location_id)
    referenced = Transaction.query.filter(
        or_(
            Transaction.from_location_id == location_id,
            Transaction.to_location_id == location_id,
        )
    ).first()
    if referenced is not None:
        raise ValidationError(
            "Location has transaction history and cannot be deleted."
        )
    affected_items = [entry.item for entry in location.stock_entries]
    db.session.delete(location)
    db.session.flush()
    for item in affected_items:
        refresh_item_status(item)
    db.session.commit()
    return "", 204
