"""Error taxonomy surfaced by the services and rendered by the API."""

from __future__ import annotations


class InventoryError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InventoryError, ValueError):
    """Malformed or missing input, or references that do not resolve."""

    status_code = 400


class InsufficientStockError(ValidationError):
    """A stock movement asked for more than the source location holds."""

    def __init__(self, message: str, *, available: int | None = None):
        super().__init__(message)
        self.available = available


class NotFoundError(InventoryError):
    status_code = 404


class StockConflictError(InventoryError):
    status_code = 409
