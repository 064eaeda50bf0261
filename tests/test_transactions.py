import os
import sys
from decimal import Decimal

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from invtrack import create_app
from invtrack.exceptions import InsufficientStockError, StockConflictError, ValidationError
from invtrack.extensions import db
from invtrack.models import (
    Item,
    ItemLocation,
    ItemStatus,
    Location,
    Transaction,
    TransactionType,
    User,
    UserRole,
)
from invtrack.services import transactions as transactions_service
from invtrack.services.ledger import LedgerStore
from invtrack.services.transactions import TransactionRequest, process_transaction


@pytest.fixture
def app():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def setup(app):
    user = User(email="clerk@example.com", name="Clerk", role=UserRole.WAREHOUSE_STAFF)
    item = Item(
        sku="RES-100",
        name="Resistor 100R",
        manufacturer="Yageo",
        unit_cost=Decimal("0.10"),
        minimum_stock=10,
    )
    shelf_a = Location(building="HQ", room="101", unit="Shelf A")
    shelf_b = Location(building="HQ", room="102", unit="Shelf B")
    db.session.add_all([user, item, shelf_a, shelf_b])
    db.session.commit()
    return {"user": user.id, "item": item.id, "a": shelf_a.id, "b": shelf_b.id}


def _request(setup, txn_type, quantity, **kwargs):
    return TransactionRequest(
        type=txn_type,
        item_id=kwargs.pop("item_id", setup["item"]),
        quantity=quantity,
        performed_by=kwargs.pop("performed_by", setup["user"]),
        **kwargs,
    )


def _quantity(setup, location_key):
    entry = LedgerStore(db.session).get_entry(setup["item"], setup[location_key])
    return None if entry is None else entry.quantity


def _receive(setup, quantity, location_key="a"):
    return process_transaction(
        _request(setup, TransactionType.RECEIVE, quantity, to_location_id=setup[location_key])
    )


def test_every_transaction_type_has_a_ledger_effect():
    assert set(transactions_service.LEDGER_EFFECTS) == set(TransactionType.ALL_TYPES)
    assert set(transactions_service.REQUIRED_LOCATIONS) == set(TransactionType.ALL_TYPES)


def test_receives_sum_on_fresh_pair(setup):
    for quantity in (5, 8, 2):
        _receive(setup, quantity)

    assert _quantity(setup, "a") == 15
    assert Transaction.query.count() == 3


def test_receive_persists_transaction_record(setup):
    txn = _receive(setup, 4)

    stored = db.session.get(Transaction, txn.id)
    assert stored.type == TransactionType.RECEIVE
    assert stored.quantity == 4
    assert stored.to_location_id == setup["a"]
    assert stored.from_location_id is None
    assert stored.performed_by == setup["user"]
    assert stored.performed_at is not None


def test_withdraw_within_available(setup):
    _receive(setup, 20)

    process_transaction(
        _request(setup, TransactionType.WITHDRAW, 7, from_location_id=setup["a"])
    )

    assert _quantity(setup, "a") == 13


def test_withdraw_beyond_available_is_rejected_without_side_effects(setup):
    _receive(setup, 5)

    with pytest.raises(InsufficientStockError) as excinfo:
        process_transaction(
            _request(setup, TransactionType.WITHDRAW, 9, from_location_id=setup["a"])
        )

    assert excinfo.value.available == 5
    assert _quantity(setup, "a") == 5
    assert Transaction.query.count() == 1


def test_withdraw_beyond_available_clamps_to_zero_when_enabled(setup):
    _receive(setup, 5)

    txn = process_transaction(
        _request(setup, TransactionType.WITHDRAW, 9, from_location_id=setup["a"]),
        clamp_withdrawals=True,
    )

    assert txn.quantity == 9
    assert _quantity(setup, "a") == 0


def test_withdraw_from_location_without_entry_is_rejected(setup):
    with pytest.raises(InsufficientStockError):
        process_transaction(
            _request(setup, TransactionType.WITHDRAW, 1, from_location_id=setup["b"]),
            clamp_withdrawals=True,
        )

    assert Transaction.query.count() == 0
    assert ItemLocation.query.count() == 0


def test_transfer_moves_stock_and_conserves_total(setup):
    _receive(setup, 12, "a")
    _receive(setup, 3, "b")

    process_transaction(
        _request(
            setup,
            TransactionType.TRANSFER,
            5,
            from_location_id=setup["a"],
            to_location_id=setup["b"],
        )
    )

    assert _quantity(setup, "a") == 7
    assert _quantity(setup, "b") == 8
    assert _quantity(setup, "a") + _quantity(setup, "b") == 15


def test_transfer_creates_destination_entry(setup):
    _receive(setup, 6, "a")

    process_transaction(
        _request(
            setup,
            TransactionType.TRANSFER,
            6,
            from_location_id=setup["a"],
            to_location_id=setup["b"],
        )
    )

    assert _quantity(setup, "a") == 0
    assert _quantity(setup, "b") == 6


def test_clamped_transfer_only_moves_available_stock(setup):
    _receive(setup, 4, "a")

    process_transaction(
        _request(
            setup,
            TransactionType.TRANSFER,
            10,
            from_location_id=setup["a"],
            to_location_id=setup["b"],
        ),
        clamp_withdrawals=True,
    )

    assert _quantity(setup, "a") == 0
    assert _quantity(setup, "b") == 4


def test_transfer_to_same_location_is_rejected(setup):
    _receive(setup, 4, "a")

    with pytest.raises(ValidationError, match="must be different"):
        process_transaction(
            _request(
                setup,
                TransactionType.TRANSFER,
                1,
                from_location_id=setup["a"],
                to_location_id=setup["a"],
            )
        )

    assert _quantity(setup, "a") == 4


def test_dispose_decrements_source(setup):
    _receive(setup, 9)

    process_transaction(
        _request(setup, TransactionType.DISPOSE, 2, from_location_id=setup["a"])
    )

    assert _quantity(setup, "a") == 7


def test_adjust_sets_counted_quantity(setup):
    _receive(setup, 9)

    process_transaction(_request(setup, TransactionType.ADJUST, 4, to_location_id=setup["a"]))
    assert _quantity(setup, "a") == 4

    process_transaction(_request(setup, TransactionType.ADJUST, 0, to_location_id=setup["a"]))
    assert _quantity(setup, "a") == 0


@pytest.mark.parametrize(
    "txn_type, kwargs, message",
    [
        (TransactionType.RECEIVE, {}, "destination location is required"),
        (TransactionType.WITHDRAW, {}, "source location is required"),
        (TransactionType.DISPOSE, {}, "source location is required"),
        (TransactionType.ADJUST, {}, "destination location is required"),
        (TransactionType.TRANSFER, {"to_location_id": 1}, "source location is required"),
    ],
)
def test_missing_locations_are_rejected(setup, txn_type, kwargs, message):
    with pytest.raises(ValidationError, match=message):
        process_transaction(_request(setup, txn_type, 1, **kwargs))


@pytest.mark.parametrize("quantity", [0, -3])
def test_non_positive_quantities_are_rejected(setup, quantity):
    with pytest.raises(ValidationError, match="greater than zero"):
        process_transaction(
            _request(setup, TransactionType.RECEIVE, quantity, to_location_id=setup["a"])
        )
    assert Transaction.query.count() == 0


@pytest.mark.parametrize(
    "txn_type, location_field",
    [(TransactionType.RECEIVE, "to_location_id"), (TransactionType.ADJUST, "to_location_id")],
)
def test_quantity_past_integer_column_is_rejected(setup, txn_type, location_field):
    with pytest.raises(ValidationError, match="cannot exceed"):
        process_transaction(
            _request(setup, txn_type, 2**31, **{location_field: setup["a"]})
        )
    assert Transaction.query.count() == 0


def test_out_of_range_reference_is_rejected_before_lookup(setup):
    with pytest.raises(ValidationError, match="does not exist"):
        process_transaction(
            _request(setup, TransactionType.RECEIVE, 1, to_location_id=2**63)
        )


def test_negative_adjust_is_rejected(setup):
    with pytest.raises(ValidationError, match="cannot be negative"):
        process_transaction(_request(setup, TransactionType.ADJUST, -1, to_location_id=setup["a"]))


def test_unknown_type_is_rejected(setup):
    with pytest.raises(ValidationError, match="Unknown transaction type"):
        process_transaction(_request(setup, "reserve", 1, to_location_id=setup["a"]))


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"item_id": 999}, "Item 999 does not exist"),
        ({"performed_by": 999}, "User 999 does not exist"),
        ({"to_location_id": 999}, "Location 999 does not exist"),
    ],
)
def test_unresolved_references_are_rejected(setup, overrides, message):
    kwargs = {"to_location_id": setup["a"]}
    kwargs.update(overrides)

    with pytest.raises(ValidationError, match=message):
        process_transaction(_request(setup, TransactionType.RECEIVE, 1, **kwargs))

    assert Transaction.query.count() == 0


def test_item_status_follows_ledger(setup):
    _receive(setup, 10)
    assert db.session.get(Item, setup["item"]).status == ItemStatus.LOW_STOCK

    _receive(setup, 1)
    assert db.session.get(Item, setup["item"]).status == ItemStatus.IN_STOCK

    process_transaction(
        _request(setup, TransactionType.WITHDRAW, 11, from_location_id=setup["a"])
    )
    assert db.session.get(Item, setup["item"]).status == ItemStatus.OUT_OF_STOCK


def test_discontinued_item_keeps_status(setup):
    item = db.session.get(Item, setup["item"])
    item.status = ItemStatus.DISCONTINUED
    db.session.commit()

    _receive(setup, 50)

    assert db.session.get(Item, setup["item"]).status == ItemStatus.DISCONTINUED


def test_failure_during_ledger_update_rolls_back_everything(setup, monkeypatch):
    _receive(setup, 3)

    def exploding_receive(ledger, txn, clamp):
        ledger.increment(txn.item_id, txn.to_location_id, txn.quantity)
        raise RuntimeError("disk full")

    monkeypatch.setitem(
        transactions_service.LEDGER_EFFECTS, TransactionType.RECEIVE, exploding_receive
    )

    with pytest.raises(RuntimeError):
        _receive(setup, 4)

    assert Transaction.query.count() == 1
    assert _quantity(setup, "a") == 3


def test_failed_transfer_leaves_source_untouched(setup):
    _receive(setup, 2, "a")

    with pytest.raises(InsufficientStockError):
        process_transaction(
            _request(
                setup,
                TransactionType.TRANSFER,
                3,
                from_location_id=setup["a"],
                to_location_id=setup["b"],
            )
        )

    assert _quantity(setup, "a") == 2
    assert _quantity(setup, "b") is None


def test_duplicate_entry_race_surfaces_as_conflict(setup, monkeypatch):
    _receive(setup, 3)

    # Simulate a concurrent writer that inserted the row after our read.
    monkeypatch.setattr(LedgerStore, "get_entry", lambda self, *args, **kwargs: None)

    with pytest.raises(StockConflictError):
        _receive(setup, 4)

    monkeypatch.undo()
    assert _quantity(setup, "a") == 3
    assert Transaction.query.count() == 1
