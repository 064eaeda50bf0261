from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from invtrack.exceptions import NotFoundError, ValidationError
from invtrack.extensions import db
from invtrack.models import Supplier, SupplierStatus
from invtrack.routes import require_database
from invtrack.utils.parsing import json_body, parse_choice, parse_int, parse_text

bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")

bp.before_request(require_database)

_TEXT_FIELDS = {
    "contact_name": 255,
    "phone": 64,
    "address": None,
    "website": 1024,
    "notes": None,
}


def _get_supplier_or_404(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier not found")
    return supplier


def _parse_email(payload) -> str | None:
    email = parse_text(payload, "email", max_length=255)
    if email is None:
        return None
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError("'email' must be a valid email address.")
    return email.lower()


def _parse_rating(payload) -> int | None:
    return parse_int(payload, "rating", minimum=1, maximum=5)


@bp.get("")
def list_suppliers():
    suppliers = Supplier.query.order_by(Supplier.name.asc()).all()
    return jsonify([supplier.to_dict() for supplier in suppliers])


@bp.get("/<int:supplier_id>")
def get_supplier(supplier_id: int):
    return jsonify(_get_supplier_or_404(supplier_id).to_dict())


@bp.post("")
def create_supplier():
    payload = json_body()
    supplier = Supplier(
        name=parse_text(payload, "name", required=True, max_length=255),
        email=_parse_email(payload),
        status=parse_choice(payload, "status", SupplierStatus.ALL_STATUSES)
        or SupplierStatus.ACTIVE,
        rating=_parse_rating(payload),
    )
    for field, max_length in _TEXT_FIELDS.items():
        setattr(supplier, field, parse_text(payload, field, max_length=max_length))
    db.session.add(supplier)
    db.session.commit()
    current_app.logger.info("Created supplier %s (%s)", supplier.id, supplier.name)
    return jsonify(supplier.to_dict()), 201


@bp.patch("/<int:supplier_id>")
def update_supplier(supplier_id: int):
    supplier = _get_supplier_or_404(supplier_id)
    payload = json_body()

    if "name" in payload:
        supplier.name = parse_text(payload, "name", required=True, max_length=255)
    if "email" in payload:
        supplier.email = _parse_email(payload)
    if "status" in payload:
        supplier.status = parse_choice(
            payload, "status", SupplierStatus.ALL_STATUSES, required=True
        )
    if "rating" in payload:
        supplier.rating = _parse_rating(payload)
    for field, max_length in _TEXT_FIELDS.items():
        if field in payload:
            setattr(supplier, field, parse_text(payload, field, max_length=max_length))

    db.session.commit()
    return jsonify(supplier.to_dict())


@bp.delete("/<int:supplier_id>")
def delete_supplier(supplier_id: int):
    supplier = _get_supplier_or_404(supplier_id)
    db.session.delete(supplier)
    db.session.commit()
    current_app.logger.info("Deleted supplier %s", supplier_id)
    return "", 204
