from __future__ import annotations

from flask import Blueprint, jsonify

from invtrack.exceptions import NotFoundError
from invtrack.extensions import db
from invtrack.models import Category
from invtrack.routes import require_database
from invtrack.utils.parsing import json_body, parse_text

bp = Blueprint("categories", __name__, url_prefix="/api/categories")

bp.before_request(require_database)


def _get_category_or_404(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


@bp.get("")
def list_categories():
    categories = Category.query.order_by(
        Category.category.asc(), Category.subcategory.asc()
    ).all()
    return jsonify([category.to_dict() for category in categories])


@bp.post("")
def create_category():
    payload = json_body()
    category = Category(
        category=parse_text(payload, "category", required=True, max_length=255),
        subcategory=parse_text(payload, "subcategory", required=True, max_length=255),
    )
    db.session.add(category)
    db.session.commit()
    return jsonify(category.to_dict()), 201


@bp.patch("/<int:category_id>")
def update_category(category_id: int):
    category = _get_category_or_404(category_id)
    payload = json_body()
    if "category" in payload:
        category.category = parse_text(payload, "category", required=True, max_length=255)
    if "subcategory" in payload:
        category.subcategory = parse_text(
            payload, "subcategory", required=True, max_length=255
        )
    db.session.commit()
    return jsonify(category.to_dict())


@bp.delete("/<int:category_id>")
def delete_category(category_id: int):
    category = _get_category_or_404(category_id)
    # Items keep existing without a category.
    for item in list(category.items):
        item.category_id = None
    db.session.delete(category)
    db.session.commit()
    return "", 204
