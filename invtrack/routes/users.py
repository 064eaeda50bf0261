from __future__ import annotations

from flask import Blueprint, jsonify

from invtrack.exceptions import NotFoundError, ValidationError
from invtrack.extensions import db
from invtrack.models import User, UserRole
from invtrack.routes import require_database
from invtrack.utils.parsing import json_body, parse_choice, parse_text

bp = Blueprint("users", __name__, url_prefix="/api/users")

bp.before_request(require_database)


def _get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _validate_email(email: str) -> str:
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError("'email' must be a valid email address.")
    return email.lower()


def _ensure_unique_email(email: str, *, exclude_id: int | None = None) -> None:
    query = User.query.filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise ValidationError(f"A user with email {email} already exists.")


@bp.get("")
def list_users():
    users = User.query.order_by(User.name.asc()).all()
    return jsonify([user.to_dict() for user in users])


@bp.get("/<int:user_id>")
def get_user(user_id: int):
    return jsonify(_get_user_or_404(user_id).to_dict())


@bp.post("")
def create_user():
    payload = json_body()
    email = _validate_email(parse_text(payload, "email", required=True, max_length=255))
    _ensure_unique_email(email)

    user = User(
        email=email,
        name=parse_text(payload, "name", required=True, max_length=255),
        role=parse_choice(payload, "role", UserRole.ALL_ROLES, required=True),
        department=parse_text(payload, "department", max_length=255),
    )
    db.session.add(user)
    db.session.commit()
    return jsonify(user.to_dict()), 201


@bp.patch("/<int:user_id>")
def update_user(user_id: int):
    user = _get_user_or_404(user_id)
    payload = json_body()

    if "email" in payload:
        email = _validate_email(parse_text(payload, "email", required=True, max_length=255))
        _ensure_unique_email(email, exclude_id=user.id)
        user.email = email
    if "name" in payload:
        user.name = parse_text(payload, "name", required=True, max_length=255)
    if "role" in payload:
        user.role = parse_choice(payload, "role", UserRole.ALL_ROLES, required=True)
    if "department" in payload:
        user.department = parse_text(payload, "department", max_length=255)

    db.session.commit()
    return jsonify(user.to_dict())
