import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from invtrack import create_app
from invtrack.extensions import db
from invtrack.models import ItemStatus


@pytest.fixture
def app():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _create_item(client, **overrides):
    payload = {
        "sku": "SW-TOGGLE",
        "name": "Toggle switch",
        "manufacturer": "C&K",
        "unit_cost": 1.5,
        "minimum_stock": 4,
    }
    payload.update(overrides)
    return client.post("/api/items", json=payload)


def _receive(client, item_id, quantity, location_id):
    return client.post(
        "/api/transactions",
        json={
            "type": "receive",
            "item_id": item_id,
            "quantity": quantity,
            "to_location_id": location_id,
            "performed_by": 1,
        },
    )


def test_create_item_defaults_to_out_of_stock(client):
    response = _create_item(client)

    assert response.status_code == 201
    body = response.get_json()
    assert body["sku"] == "SW-TOGGLE"
    assert body["unit_cost"] == "1.50"
    assert body["status"] == ItemStatus.OUT_OF_STOCK
    assert body["total_quantity"] == 0
    assert body["stock_status"] == ItemStatus.OUT_OF_STOCK


def test_create_item_ignores_derived_status_in_payload(client):
    response = _create_item(client, status="in_stock")

    assert response.get_json()["status"] == ItemStatus.OUT_OF_STOCK


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"name": ""}, "'name' is required"),
        ({"manufacturer": None}, "'manufacturer' is required"),
        ({"unit_cost": "abc"}, "'unit_cost' must be a number"),
        ({"unit_cost": -1}, "cannot be negative"),
        ({"minimum_stock": -2}, "must be at least 0"),
        ({"minimum_stock": 10, "maximum_stock": 5}, "cannot be lower"),
        ({"category_id": 42}, "Category 42 does not exist"),
        ({"status": "lost"}, "'status' must be one of"),
    ],
)
def test_create_item_validation(client, overrides, message):
    response = _create_item(client, **overrides)

    assert response.status_code == 400
    assert message in response.get_json()["error"]


def test_duplicate_sku_is_rejected(client):
    _create_item(client)

    response = _create_item(client, name="Another switch")

    assert response.status_code == 400
    assert "already exists" in response.get_json()["error"]


def test_get_and_list_items(client):
    created = _create_item(client).get_json()
    _create_item(client, sku="AA-BATT", name="AA battery")

    listing = client.get("/api/items").get_json()
    assert [item["name"] for item in listing] == ["AA battery", "Toggle switch"]

    detail = client.get(f"/api/items/{created['id']}")
    assert detail.status_code == 200
    assert detail.get_json()["sku"] == "SW-TOGGLE"

    assert client.get("/api/items/999").status_code == 404


def test_search_ranks_exact_sku_first(client):
    _create_item(client, sku="CAB-USB-C", name="USB-C cable")
    _create_item(client, sku="USB-HUB", name="Powered hub")
    _create_item(client, sku="ADP-01", name="Adapter", description="usb to serial")

    results = client.get("/api/items/search?q=usb-hub").get_json()
    assert [item["sku"] for item in results] == ["USB-HUB"]

    results = client.get("/api/items/search?q=usb").get_json()
    assert [item["sku"] for item in results] == ["USB-HUB", "CAB-USB-C", "ADP-01"]


def test_search_requires_query(client):
    assert client.get("/api/items/search").status_code == 400
    assert client.get("/api/items/search?q=" + "x" * 81).status_code == 400


def test_patch_item_fields(client):
    item = _create_item(client).get_json()

    response = client.patch(
        f"/api/items/{item['id']}",
        json={"name": "Rocker switch", "unit_cost": "2", "minimum_stock": "6"},
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["name"] == "Rocker switch"
    assert body["unit_cost"] == "2.00"
    assert body["minimum_stock"] == 6


def test_patch_rejects_sku_collision(client):
    _create_item(client, sku="TAKEN")
    item = _create_item(client).get_json()

    response = client.patch(f"/api/items/{item['id']}", json={"sku": "TAKEN"})

    assert response.status_code == 400


def test_minimum_stock_change_reevaluates_status(client):
    item = _create_item(client, minimum_stock=2).get_json()
    location = client.post("/api/locations", json={"unit": "Drawer"}).get_json()
    _receive(client, item["id"], 5, location["id"])
    assert client.get(f"/api/items/{item['id']}").get_json()["status"] == ItemStatus.IN_STOCK

    response = client.patch(f"/api/items/{item['id']}", json={"minimum_stock": 5})

    assert response.get_json()["status"] == ItemStatus.LOW_STOCK


def test_discontinued_override_set_and_cleared(client):
    item = _create_item(client).get_json()
    location = client.post("/api/locations", json={"unit": "Drawer"}).get_json()
    _receive(client, item["id"], 10, location["id"])

    response = client.patch(f"/api/items/{item['id']}", json={"status": "discontinued"})
    assert response.get_json()["status"] == ItemStatus.DISCONTINUED
    assert response.get_json()["stock_status"] == ItemStatus.DISCONTINUED

    _receive(client, item["id"], 1, location["id"])
    assert client.get(f"/api/items/{item['id']}").get_json()["status"] == ItemStatus.DISCONTINUED

    response = client.patch(f"/api/items/{item['id']}", json={"status": "in_stock"})
    assert response.get_json()["status"] == ItemStatus.IN_STOCK
    assert response.get_json()["total_quantity"] == 11


def test_delete_item_without_history(client):
    item = _create_item(client).get_json()

    response = client.delete(f"/api/items/{item['id']}")

    assert response.status_code == 204
    assert client.get(f"/api/items/{item['id']}").status_code == 404


def test_delete_item_with_history_is_refused(client):
    item = _create_item(client).get_json()
    location = client.post("/api/locations", json={"unit": "Drawer"}).get_json()
    _receive(client, item["id"], 1, location["id"])

    response = client.delete(f"/api/items/{item['id']}")

    assert response.status_code == 400
    assert "discontinued" in response.get_json()["error"]
    assert client.get(f"/api/items/{item['id']}").status_code == 200


def test_item_subresources(client):
    item = _create_item(client).get_json()
    shelf = client.post("/api/locations", json={"building": "A", "unit": "Shelf"}).get_json()
    cage = client.post("/api/locations", json={"building": "B", "unit": "Cage"}).get_json()
    _receive(client, item["id"], 3, shelf["id"])
    _receive(client, item["id"], 2, cage["id"])

    entries = client.get(f"/api/items/{item['id']}/locations").get_json()
    assert sorted(entry["quantity"] for entry in entries) == [2, 3]

    history = client.get(f"/api/items/{item['id']}/transactions").get_json()
    assert [txn["quantity"] for txn in history] == [2, 3]

    stock = client.get(f"/api/items/{item['id']}/stock").get_json()
    assert stock["total_quantity"] == 5
    assert stock["minimum_stock"] == 4
    assert stock["stock_status"] == ItemStatus.IN_STOCK
    assert [entry["label"] for entry in stock["locations"]] == ["A / Shelf", "B / Cage"]


def test_stock_summary_and_alerts(client):
    stocked = _create_item(client, sku="OK", name="Stocked", unit_cost="2.50", minimum_stock=1).get_json()
    _create_item(client, sku="NONE", name="Missing", minimum_stock=3)
    location = client.post("/api/locations", json={"unit": "Drawer"}).get_json()
    _receive(client, stocked["id"], 4, location["id"])

    summary = client.get("/api/stock/summary").get_json()
    assert summary["total_items"] == 2
    assert summary["total_units"] == 4
    assert summary["total_value"] == "10.00"
    assert summary["status_counts"][ItemStatus.IN_STOCK] == 1
    assert summary["status_counts"][ItemStatus.OUT_OF_STOCK] == 1

    alerts = client.get("/api/stock/alerts").get_json()
    assert alerts["total_alerts"] == 1
    assert alerts["alerts"][0]["sku"] == "NONE"
    assert alerts["alerts"][0]["shortage"] == 3
