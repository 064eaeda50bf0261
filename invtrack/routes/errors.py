from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from invtrack.exceptions import InventoryError
from invtrack.extensions import db

bp = Blueprint("errors", __name__)


@bp.app_errorhandler(InventoryError)
def handle_inventory_error(error: InventoryError):
    if error.status_code >= 500:
        current_app.logger.error("%s %s failed: %s", request.method, request.path, error.message)
    return jsonify({"error": error.message}), error.status_code


@bp.app_errorhandler(HTTPException)
def handle_http_error(error: HTTPException):
    return jsonify({"error": error.description or error.name}), error.code or 500


@bp.app_errorhandler(Exception)
def handle_exception(error: Exception):
    db.session.rollback()
    current_app.logger.exception(
        "Unhandled exception on %s %s", request.method, request.path, exc_info=error
    )
    return jsonify({"error": "Internal server error"}), 500
