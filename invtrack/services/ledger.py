"""Quantity ledger: the stock held per (item, location) pair.

The store only flushes. Committing or rolling back is the caller's job so a
ledger change and the transaction record that justifies it land together.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from invtrack.models import MAX_DB_INTEGER, ItemLocation, StockEntryStatus


@dataclass(frozen=True)
class Applied:
    quantity: int
    previous_quantity: int
    clamped: bool = False

    applied = True


@dataclass(frozen=True)
class Rejected:
    reason: str
    available: int | None = None

    applied = False


LedgerResult = Union[Applied, Rejected]


class LedgerStore:
    def __init__(self, session):
        self.session = session

    def get_entry(
        self, item_id: int, location_id: int, *, lock: bool = False
    ) -> ItemLocation | None:
        query = self.session.query(ItemLocation).filter(
            ItemLocation.item_id == item_id,
            ItemLocation.location_id == location_id,
        )
        if lock:
            # SELECT ... FOR UPDATE; ignored by SQLite.
            query = query.with_for_update().populate_existing()
        return query.one_or_none()

    def entries_for_item(self, item_id: int) -> list[ItemLocation]:
        return (
            self.session.query(ItemLocation)
            .filter(ItemLocation.item_id == item_id)
            .order_by(ItemLocation.location_id)
            .all()
        )

    def all_entries(self) -> list[ItemLocation]:
        return (
            self.session.query(ItemLocation)
            .order_by(ItemLocation.item_id, ItemLocation.location_id)
            .all()
        )

    def _create_entry(self, item_id: int, location_id: int, quantity: int) -> ItemLocation:
        entry = ItemLocation(
            item_id=item_id,
            location_id=location_id,
            quantity=quantity,
            status=StockEntryStatus.IN_STOCK,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def increment(self, item_id: int, location_id: int, delta: int) -> LedgerResult:
        if delta <= 0:
            return Rejected("Quantity must be greater than zero.")
        if delta > MAX_DB_INTEGER:
            return Rejected(f"Quantity cannot exceed {MAX_DB_INTEGER}.")

        entry = self.get_entry(item_id, location_id, lock=True)
        if entry is None:
            self._create_entry(item_id, location_id, delta)
            return Applied(quantity=delta, previous_quantity=0)

        previous = entry.quantity or 0
        if previous + delta > MAX_DB_INTEGER:
            return Rejected(
                f"Stock would exceed {MAX_DB_INTEGER}. Available {previous}, requested {delta}.",
                available=previous,
            )
        entry.quantity = previous + delta
        self.session.flush()
        return Applied(quantity=entry.quantity, previous_quantity=previous)

    def decrement(
        self, item_id: int, location_id: int, delta: int, *, clamp: bool = False
    ) -> LedgerResult:
        if delta <= 0:
            return Rejected("Quantity must be greater than zero.")

        entry = self.get_entry(item_id, location_id, lock=True)
        if entry is None:
            return Rejected("No stock is recorded for this item at the location.", available=0)

        previous = entry.quantity or 0
        if delta > previous and not clamp:
            return Rejected(
                f"Not enough stock. Available {previous}, requested {delta}.",
                available=previous,
            )

        entry.quantity = max(0, previous - delta)
        self.session.flush()
        return Applied(
            quantity=entry.quantity,
            previous_quantity=previous,
            clamped=delta > previous,
        )

    def set_quantity(self, item_id: int, location_id: int, quantity: int) -> LedgerResult:
        if quantity < 0:
            return Rejected("Counted quantity cannot be negative.")
        if quantity > MAX_DB_INTEGER:
            return Rejected(f"Counted quantity cannot exceed {MAX_DB_INTEGER}.")

        entry = self.get_entry(item_id, location_id, lock=True)
        if entry is None:
            self._create_entry(item_id, location_id, quantity)
            return Applied(quantity=quantity, previous_quantity=0)

        previous = entry.quantity or 0
        entry.quantity = quantity
        self.session.flush()
        return Applied(quantity=quantity, previous_quantity=previous)
