from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from restaurant_api.core.database import Base, get_db
from restaurant_api.core.errors import register_exception_handlers
from restaurant_api.core.timeutils import to_local, utcnow
from restaurant_api.models.business import Business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.customer import Customer
from restaurant_api.models.inventory import InventoryItem
from restaurant_api.models.order import Order
from restaurant_api.models.order_item import OrderItem
from restaurant_api.models.product import Product
from restaurant_api.routers.orders import router as orders_router
from restaurant_api.routers.tables import router as tables_router
from restaurant_api.services.auth import create_customer_token, create_owner_token
from restaurant_api.services.orders import derive_order_status
from tests.fixtures_data import (
    BUSINESS_ONE,
    BUSINESS_TWO,
    GUEST_ORDER_PAYLOAD,
    MASALA_CHAI,
    OWNER_ONE,
    OWNER_TWO,
    PANEER_TIKKA,
    STAFF_ONE,
    TWO_ITEM_ORDER_PAYLOAD,
)


def _build_client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    db.add(Business(**BUSINESS_ONE))
    db.add(Business(**BUSINESS_TWO))
    for owner in (OWNER_ONE, OWNER_TWO, STAFF_ONE):
        db.add(BusinessOwner(password_hash="not-used", **owner))
    db.add(Product(**PANEER_TIKKA))
    db.add(Product(**MASALA_CHAI))
    db.add(InventoryItem(business_id=1, name="Paneer", quantity=10, unit="kg", threshold=2))
    db.add(InventoryItem(business_id=1, name="Spice Mix", quantity=5, unit="kg", threshold=1))
    db.add(InventoryItem(business_id=1, name="Tea", quantity=3, unit="kg", threshold=1))
    # Same ingredient name in another tenant must never be touched
    db.add(InventoryItem(business_id=2, name="Paneer", quantity=10, unit="kg", threshold=2))
    db.add(
        Customer(
            id=500,
            customer_id=1,
            business_id=1,
            name="Meera",
            email="meera@example.com",
            password_hash="not-used",
            mobile="9999900000",
            total_orders=0,
            total_money_spent=0,
            points=3,
        )
    )
    db.commit()

    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(orders_router)
    app.include_router(tables_router)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app), db


def _owner_headers(user: dict) -> dict:
    token = create_owner_token(
        user_id=user["id"],
        email=user["email"],
        business_id=user["business_id"],
        role=user["role"],
    )
    return {"Authorization": f"Bearer {token}"}


def _customer_headers(customer_number: int = 1, business_id: int = 1) -> dict:
    token = create_customer_token(customer_id=customer_number, email="meera@example.com", business_id=business_id)
    return {"Authorization": f"Bearer {token}"}


def test_guest_order_scenario_from_table_to_completion():
    client, _db = _build_client()
    owner = _owner_headers(OWNER_ONE)

    first = client.post("/api/tables", json={"table_number": 4}, headers=owner)
    again = client.post("/api/tables", json={"table_number": 4}, headers=owner)
    assert first.status_code == 201
    assert again.status_code == 200
    assert again.json()["table"]["id"] == first.json()["table"]["id"]

    created = client.post("/api/orders", json=GUEST_ORDER_PAYLOAD)
    assert created.status_code == 201
    body = created.json()
    assert body["order_id"] == "ORD00001"
    assert body["status"] == "Pending"
    assert body["message"] == "Order placed successfully"
    assert body["items"][0]["status"] == "Pending"

    tables = client.get("/api/tables/1").json()["tables"]
    assert tables == [{"id": first.json()["table"]["id"], "table_number": 4, "status": "Booked"}]

    updated = client.patch(
        "/api/orders/ORD00001/items/100/status",
        json={"status": "Completed"},
        headers=owner,
    )
    assert updated.status_code == 200
    assert updated.json()["item"] == {"product_id": 100, "status": "Completed"}
    assert updated.json()["order_status"] == "Completed"

    fetched = client.get("/api/orders/ORD00001", params={"business_id": 1})
    assert fetched.json()["status"] == "Completed"

    tables = client.get("/api/tables/1").json()["tables"]
    assert tables[0]["status"] == "Available"


def test_order_items_keep_price_and_name_snapshot():
    client, db = _build_client()

    response = client.post("/api/orders", json=TWO_ITEM_ORDER_PAYLOAD)
    assert response.status_code == 201

    product = db.query(Product).filter(Product.id == 100).first()
    product.price = 999.0
    product.name = "Renamed Dish"
    db.commit()

    assert db.query(Order).count() == 1
    items = db.query(OrderItem).order_by(OrderItem.id).all()
    assert [(item.product_id, item.name, item.price, item.quantity) for item in items] == [
        (100, "Paneer Tikka", 250.0, 1),
        (101, "Masala Chai", 40.0, 3),
    ]


def test_order_creation_decrements_same_tenant_inventory_only():
    client, db = _build_client()

    response = client.post("/api/orders", json=GUEST_ORDER_PAYLOAD)
    assert response.status_code == 201
    inventory_step = [effect for effect in response.json()["side_effects"] if effect["step"] == "inventory"]
    assert inventory_step == [{"step": "inventory", "ok": True, "detail": None}]

    db.expire_all()
    stock = {
        (item.business_id, item.name): item.quantity
        for item in db.query(InventoryItem).all()
    }
    assert stock[(1, "Paneer")] == pytest.approx(9.6)
    assert stock[(1, "Spice Mix")] == pytest.approx(4.9)
    assert stock[(1, "Tea")] == pytest.approx(3)
    assert stock[(2, "Paneer")] == pytest.approx(10)


def test_non_numeric_ingredient_quantity_is_skipped():
    client, db = _build_client()
    payload = dict(GUEST_ORDER_PAYLOAD, items=[{"product_id": 101, "name": "Masala Chai", "quantity": 2, "price": 40}])

    response = client.post("/api/orders", json=payload)

    assert response.status_code == 201
    db.expire_all()
    tea = db.query(InventoryItem).filter(InventoryItem.name == "Tea").first()
    assert tea.quantity == pytest.approx(3)


def test_over_redeeming_points_keeps_balance_and_still_places_order():
    client, db = _build_client()
    payload = dict(GUEST_ORDER_PAYLOAD, points_to_redeem=10)

    response = client.post("/api/orders", json=payload, headers=_customer_headers())

    assert response.status_code == 201
    steps = {effect["step"]: effect for effect in response.json()["side_effects"]}
    assert steps["redeem_points"]["ok"] is False
    assert steps["accrue_points"]["ok"] is True

    db.expire_all()
    customer = db.query(Customer).filter(Customer.id == 500).first()
    order = db.query(Order).first()
    assert order.customer_id == 500
    # 3 existing points, nothing redeemed, floor(500 / 100) earned
    assert customer.points == 8
    assert customer.total_orders == 1
    assert customer.total_money_spent == pytest.approx(500.0)


def test_points_redeemed_when_balance_covers_request():
    client, db = _build_client()
    payload = dict(GUEST_ORDER_PAYLOAD, points_to_redeem=2)

    response = client.post("/api/orders", json=payload, headers=_customer_headers())

    assert response.status_code == 201
    db.expire_all()
    customer = db.query(Customer).filter(Customer.id == 500).first()
    assert customer.points == 3 - 2 + 5


def test_invalid_or_foreign_customer_token_falls_back_to_guest():
    client, db = _build_client()

    bad_token = client.post(
        "/api/orders",
        json=GUEST_ORDER_PAYLOAD,
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    foreign = client.post("/api/orders", json=GUEST_ORDER_PAYLOAD, headers=_customer_headers(business_id=2))

    assert bad_token.status_code == 201
    assert foreign.status_code == 201
    assert [order.customer_id for order in db.query(Order).all()] == [None, None]


@pytest.mark.parametrize(
    "override, message",
    [
        ({"table_number": None}, "Missing required fields"),
        ({"payment_method": ""}, "Missing required fields"),
        ({"estimated_time": None}, "Missing required fields"),
        ({"items": []}, "Cart items must be a non-empty array"),
        ({"items": "Paneer Tikka"}, "Cart items must be a non-empty array"),
        ({"items": [{"product_id": 100, "name": "Paneer Tikka", "quantity": 0, "price": 10}]}, "Invalid cart item"),
    ],
)
def test_create_order_validation_errors(override, message):
    client, db = _build_client()
    payload = dict(GUEST_ORDER_PAYLOAD, **override)

    response = client.post("/api/orders", json=payload)

    assert response.status_code == 400
    assert response.json() == {"error": message}
    assert db.query(Order).count() == 0


def test_create_order_for_unknown_business_returns_404():
    client, _db = _build_client()

    response = client.post("/api/orders", json=dict(GUEST_ORDER_PAYLOAD, business_id=99))

    assert response.status_code == 404


def test_complete_all_and_direct_status_updates_go_through_items():
    client, _db = _build_client()
    owner = _owner_headers(OWNER_ONE)
    client.post("/api/orders", json=TWO_ITEM_ORDER_PAYLOAD)

    completed = client.patch("/api/orders/1/complete-all", headers=owner)
    assert completed.json()["order_status"] == "Completed"
    items = client.get("/api/orders/1", params={"business_id": 1}).json()["items"]
    assert {item["status"] for item in items} == {"Completed"}

    reopened = client.patch("/api/orders/ORD00001/status", json={"status": "Pending"}, headers=owner)
    assert reopened.json()["order_status"] == "Pending"
    items = client.get("/api/orders/1", params={"business_id": 1}).json()["items"]
    assert {item["status"] for item in items} == {"Pending"}

    invalid = client.patch("/api/orders/1/status", json={"status": "Served"}, headers=owner)
    assert invalid.status_code == 400
    assert invalid.json() == {"error": "Invalid status value"}


def test_order_status_stays_pending_until_every_item_completes():
    client, _db = _build_client()
    staff = _owner_headers(STAFF_ONE)
    client.post("/api/orders", json=TWO_ITEM_ORDER_PAYLOAD)

    partial = client.patch("/api/orders/1/items/100/status", json={"status": "Completed"}, headers=staff)
    assert partial.json()["order_status"] == "Pending"

    done = client.patch("/api/orders/1/items/101/status", json={"status": "completed"}, headers=staff)
    assert done.json()["order_status"] == "Completed"

    missing = client.patch("/api/orders/1/items/555/status", json={"status": "Completed"}, headers=staff)
    assert missing.status_code == 404
    assert missing.json() == {"error": "Item not found in this order"}


def test_cross_tenant_item_update_is_forbidden():
    client, _db = _build_client()
    client.post("/api/orders", json=GUEST_ORDER_PAYLOAD)

    response = client.patch(
        "/api/orders/ORD00001/items/100/status",
        json={"status": "Completed"},
        headers=_owner_headers(OWNER_TWO),
    )

    assert response.status_code == 403
    assert response.json() == {"error": "Unauthorized access"}


def test_public_fetch_hides_other_tenant_orders_and_rejects_bad_ids():
    client, _db = _build_client()
    client.post("/api/orders", json=GUEST_ORDER_PAYLOAD)

    assert client.get("/api/orders/ORD00001", params={"business_id": 2}).status_code == 404
    bad = client.get("/api/orders/ORDXYZ", params={"business_id": 1})
    assert bad.status_code == 400
    assert bad.json() == {"error": "Invalid order ID format"}


def test_update_order_preserves_item_status_by_product():
    client, _db = _build_client()
    owner = _owner_headers(OWNER_ONE)
    client.post("/api/orders", json=TWO_ITEM_ORDER_PAYLOAD)
    client.patch("/api/orders/1/items/100/status", json={"status": "Completed"}, headers=owner)

    response = client.put(
        "/api/orders/ORD00001",
        json={
            "items": [
                {"product_id": 100, "name": "Paneer Tikka", "quantity": 2, "price": 250},
                {"product_id": 102, "name": "Lassi", "quantity": 1, "price": 80},
            ],
            "total_amount": 580,
        },
        headers=owner,
    )

    assert response.status_code == 200
    order = response.json()["order"]
    assert {item["product_id"]: item["status"] for item in order["items"]} == {100: "Completed", 102: "Pending"}
    assert order["status"] == "Pending"
    assert order["total_amount"] == 580

    only_completed = client.put(
        "/api/orders/1",
        json={"items": [{"product_id": 100, "name": "Paneer Tikka", "quantity": 2, "price": 250}]},
        headers=owner,
    )
    assert only_completed.json()["order"]["status"] == "Completed"


def test_update_order_of_other_business_is_forbidden():
    client, _db = _build_client()
    client.post("/api/orders", json=GUEST_ORDER_PAYLOAD)

    response = client.put(
        "/api/orders/1",
        json={"items": [{"product_id": 100, "name": "Paneer Tikka", "quantity": 1, "price": 250}]},
        headers=_owner_headers(OWNER_TWO),
    )

    assert response.status_code == 403


def test_caller_without_business_cannot_touch_any_order():
    client, db = _build_client()
    db.add(BusinessOwner(id=30, name="Drifter", email="drifter@example.com", password_hash="x", role="Staff", business_id=None))
    db.commit()
    client.post("/api/orders", json=GUEST_ORDER_PAYLOAD)
    unbound = _owner_headers({"id": 30, "email": "drifter@example.com", "business_id": None, "role": "Staff"})
    line = {"product_id": 100, "name": "Paneer Tikka", "quantity": 1, "price": 250}

    responses = [
        client.patch("/api/orders/ORD00001/items/100/status", json={"status": "Completed"}, headers=unbound),
        client.patch("/api/orders/1/complete-all", headers=unbound),
        client.patch("/api/orders/1/status", json={"status": "Completed"}, headers=unbound),
        client.put("/api/orders/1", json={"items": [line]}, headers=unbound),
    ]

    assert [response.status_code for response in responses] == [403, 403, 403, 403]
    db.expire_all()
    order = db.query(Order).filter(Order.id == 1).one()
    assert order.status == "Pending"
    assert [item.status for item in order.items] == ["Pending"]
    assert order.items[0].quantity == 2


def _assert_stored_status_matches_items(db, order_id: int) -> str:
    db.expire_all()
    order = db.query(Order).filter(Order.id == order_id).one()
    assert order.status == derive_order_status(order.items)
    return order.status


def test_stored_order_status_never_diverges_from_item_statuses():
    client, db = _build_client()
    owner = _owner_headers(OWNER_ONE)
    client.post("/api/orders", json=TWO_ITEM_ORDER_PAYLOAD)
    assert _assert_stored_status_matches_items(db, 1) == "Pending"

    client.patch("/api/orders/1/items/100/status", json={"status": "Completed"}, headers=owner)
    assert _assert_stored_status_matches_items(db, 1) == "Pending"

    client.patch("/api/orders/1/complete-all", headers=owner)
    assert _assert_stored_status_matches_items(db, 1) == "Completed"

    client.put(
        "/api/orders/1",
        json={
            "items": [
                {"product_id": 100, "name": "Paneer Tikka", "quantity": 1, "price": 250},
                {"product_id": 102, "name": "Lassi", "quantity": 1, "price": 80},
            ]
        },
        headers=owner,
    )
    assert _assert_stored_status_matches_items(db, 1) == "Pending"

    client.patch("/api/orders/1/status", json={"status": "Completed"}, headers=owner)
    assert _assert_stored_status_matches_items(db, 1) == "Completed"

    client.patch("/api/orders/1/status", json={"status": "Pending"}, headers=owner)
    assert _assert_stored_status_matches_items(db, 1) == "Pending"


def test_list_orders_requires_owner_and_filters_by_local_day():
    client, _db = _build_client()
    owner = _owner_headers(OWNER_ONE)
    client.post("/api/orders", json=GUEST_ORDER_PAYLOAD)
    client.post("/api/orders", json=TWO_ITEM_ORDER_PAYLOAD)

    assert client.get("/api/orders").status_code == 401

    today = to_local(utcnow()).date()
    listed = client.get("/api/orders", params={"date": today.isoformat()}, headers=owner)
    assert [order["order_id"] for order in listed.json()["orders"]] == ["ORD00002", "ORD00001"]

    other_day = client.get("/api/orders", params={"date": "2001-01-01"}, headers=owner)
    assert other_day.json()["orders"] == []

    foreign = client.get("/api/orders", headers=_owner_headers(OWNER_TWO))
    assert foreign.json()["orders"] == []
