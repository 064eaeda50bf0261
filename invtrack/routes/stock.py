from __future__ import annotations

from decimal import Decimal

from flask import Blueprint, jsonify

from invtrack.models import Item, ItemStatus
from invtrack.routes import require_database
from invtrack.services.stock_status import evaluate_status, item_totals, stock_alerts

bp = Blueprint("stock", __name__, url_prefix="/api/stock")

bp.before_request(require_database)


@bp.get("/summary")
def stock_summary():
    items = Item.query.order_by(Item.sku).all()
    totals = item_totals()

    counts = {status: 0 for status in ItemStatus.ALL_STATUSES}
    rows = []
    total_value = Decimal("0.00")
    for item in items:
        total = totals.get(item.id, 0)
        status = evaluate_status(total, item.minimum_stock, item.status)
        counts[status] += 1
        total_value += Decimal(item.unit_cost or 0) * total
        rows.append(
            {
                "item_id": item.id,
                "sku": item.sku,
                "name": item.name,
                "total_quantity": total,
                "minimum_stock": item.minimum_stock or 0,
                "stock_status": status,
            }
        )

    return jsonify(
        {
            "total_items": len(items),
            "total_units": sum(totals.values()),
            "total_value": f"{total_value:.2f}",
            "status_counts": counts,
            "items": rows,
        }
    )


@bp.get("/alerts")
def alerts():
    entries = stock_alerts()
    return jsonify({"total_alerts": len(entries), "alerts": entries})
