from __future__ import annotations

from flask import current_app, jsonify


def require_database():
    """Short-circuit API calls with 503 while the database is unreachable."""

    if current_app.config.get("DATABASE_AVAILABLE", True):
        return None
    message = current_app.config.get("DATABASE_ERROR") or "Database unavailable."
    return jsonify({"error": message}), 503
