from __future__ import annotations

from typing import Iterable

from sqlalchemy import func

from invtrack.extensions import db
from invtrack.models import Item, ItemLocation, ItemStatus


def evaluate_status(
    total: int, minimum_stock: int | None, current_status: str | None = None
) -> str:
    """Classify stock for display.

    ``discontinued`` is a manual override and survives any quantity. An equal
    to minimum total counts as low stock.
    """

    if current_status == ItemStatus.DISCONTINUED:
        return ItemStatus.DISCONTINUED

    minimum = minimum_stock or 0
    if total <= 0:
        return ItemStatus.OUT_OF_STOCK
    if total <= minimum:
        return ItemStatus.LOW_STOCK
    return ItemStatus.IN_STOCK


def total_quantity(item_id: int, session=None) -> int:
    session = session or db.session
    total = (
        session.query(func.coalesce(func.sum(ItemLocation.quantity), 0))
        .filter(ItemLocation.item_id == item_id)
        .scalar()
    )
    return int(total or 0)


def item_totals(item_ids: Iterable[int] | None = None, session=None) -> dict[int, int]:
    session = session or db.session
    query = session.query(
        ItemLocation.item_id,
        func.coalesce(func.sum(ItemLocation.quantity), 0),
    )
    if item_ids is not None:
        item_ids = list(item_ids)
        if not item_ids:
            return {}
        query = query.filter(ItemLocation.item_id.in_(item_ids))
    rows = query.group_by(ItemLocation.item_id).all()
    return {item_id: int(total or 0) for item_id, total in rows}


def item_stock_status(item: Item, session=None) -> str:
    return evaluate_status(
        total_quantity(item.id, session=session), item.minimum_stock, item.status
    )


def refresh_item_status(item: Item, session=None) -> str:
    """Store the derived status on the item row; returns the new value."""

    status = item_stock_status(item, session=session)
    if item.status != status:
        item.status = status
    return status


def stock_alerts() -> list[dict[str, object]]:
    items = Item.query.order_by(Item.sku).all()
    totals = item_totals()

    alerts = []
    for item in items:
        on_hand = totals.get(item.id, 0)
        status = evaluate_status(on_hand, item.minimum_stock, item.status)
        if status not in ItemStatus.ALERT_STATES:
            continue
        minimum = item.minimum_stock or 0
        alerts.append(
            {
                "item_id": item.id,
                "sku": item.sku,
                "name": item.name,
                "total_quantity": on_hand,
                "minimum_stock": minimum,
                "shortage": max(minimum - on_hand, 0),
                "stock_status": status,
            }
        )

    alerts.sort(key=lambda entry: (-entry["shortage"], entry["sku"]))
    return alerts
