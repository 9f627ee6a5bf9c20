import json

import httpx
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from restaurant_api.core.database import Base, get_db
from restaurant_api.core.errors import register_exception_handlers
from restaurant_api.models.business import Business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.customer import Customer
from restaurant_api.routers.whatsapp import router as whatsapp_router
from restaurant_api.services import whatsapp_promo
from restaurant_api.services.auth import create_owner_token
from tests.fixtures_data import BUSINESS_ONE, BUSINESS_TWO, OWNER_ONE, OWNER_TWO, STAFF_ONE

REAL_HTTPX_CLIENT = httpx.Client

CREDENTIALS = {
    "phone_number_id": "1122334455",
    "access_token": "EAAG-secret-token-9876",
    "waba_id": "998877",
    "whatsapp_number": "+919800000000",
}


def _build_client(customers: int = 3):
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
    for user in (OWNER_ONE, OWNER_TWO, STAFF_ONE):
        db.add(BusinessOwner(password_hash="not-used", **user))
    for number in range(1, customers + 1):
        db.add(
            Customer(
                customer_id=number,
                business_id=1,
                name=f"Customer {number}",
                email=f"c{number}@example.com",
                password_hash="not-used",
                mobile=f"91980000000{number}",
            )
        )
    db.commit()

    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(whatsapp_router)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app), db


def _headers(user: dict) -> dict:
    token = create_owner_token(
        user_id=user["id"], email=user["email"], business_id=user["business_id"], role=user["role"]
    )
    return {"Authorization": f"Bearer {token}"}


def _mock_graph_api(monkeypatch, handler):
    def _client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return REAL_HTTPX_CLIENT(*args, **kwargs)

    monkeypatch.setattr(whatsapp_promo.httpx, "Client", _client_factory)


def test_setup_is_saved_and_read_back_masked():
    client, _db = _build_client()
    owner = _headers(OWNER_ONE)

    missing = client.get("/api/businesswhatsappdata/setup", headers=owner)
    saved = client.post("/api/businesswhatsappdata/setup", json=CREDENTIALS, headers=owner)
    overwritten = client.post(
        "/api/businesswhatsappdata/setup", json={**CREDENTIALS, "waba_id": "111"}, headers=owner
    )
    read = client.get("/api/businesswhatsappdata/setup", headers=owner).json()

    assert missing.status_code == 404
    assert saved.json() == {"message": "WhatsApp credentials saved successfully."}
    assert overwritten.status_code == 200
    assert read["waba_id"] == "111"
    assert read["access_token_masked"] == "****9876"
    assert "access_token" not in read


def test_staff_cannot_manage_credentials():
    client, _db = _build_client()

    response = client.post("/api/businesswhatsappdata/setup", json=CREDENTIALS, headers=_headers(STAFF_ONE))

    assert response.status_code == 403


def test_customer_count_is_per_business():
    client, _db = _build_client(customers=4)

    assert client.get("/api/businesswhatsappdata/customer-count", headers=_headers(OWNER_ONE)).json() == {"count": 4}
    assert client.get("/api/businesswhatsappdata/customer-count", headers=_headers(OWNER_TWO)).json() == {"count": 0}


def test_send_promo_posts_one_message_per_customer(monkeypatch):
    client, _db = _build_client(customers=3)
    owner = _headers(OWNER_ONE)
    client.post("/api/businesswhatsappdata/setup", json=CREDENTIALS, headers=owner)
    requests = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = json.loads(request.content)
        if body["to"].endswith("2"):
            return httpx.Response(400, json={"error": {"message": "invalid recipient"}})
        return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

    _mock_graph_api(monkeypatch, _handler)

    response = client.post("/api/businesswhatsappdata/send-promo", json={"count": 2}, headers=owner)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Promo message sent to 2 customers"
    assert [result["status"] for result in body["results"]] == [200, 400]

    first = requests[0]
    assert str(first.url) == "https://graph.facebook.com/v19.0/1122334455/messages"
    assert first.headers["Authorization"] == "Bearer EAAG-secret-token-9876"
    payload = json.loads(first.content)
    assert payload["messaging_product"] == "whatsapp"
    assert payload["to"] == "919800000001"
    assert "Spice Garden" in payload["text"]["body"]


def test_transport_errors_are_reported_per_customer(monkeypatch):
    client, _db = _build_client(customers=1)
    owner = _headers(OWNER_ONE)
    client.post("/api/businesswhatsappdata/setup", json=CREDENTIALS, headers=owner)

    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("network down", request=request)

    _mock_graph_api(monkeypatch, _handler)

    response = client.post("/api/businesswhatsappdata/send-promo", json={"count": 5}, headers=owner)

    assert response.status_code == 200
    assert response.json()["results"] == [{"customer": "Customer 1", "status": None, "error": "network down"}]


def test_send_promo_without_customers_or_credentials():
    client, _db = _build_client(customers=0)
    owner = _headers(OWNER_ONE)

    no_credentials = client.post("/api/businesswhatsappdata/send-promo", json={"count": 1}, headers=owner)
    client.post("/api/businesswhatsappdata/setup", json=CREDENTIALS, headers=owner)
    no_customers = client.post("/api/businesswhatsappdata/send-promo", json={"count": 1}, headers=owner)
    bad_count = client.post("/api/businesswhatsappdata/send-promo", json={"count": 0}, headers=owner)

    assert no_credentials.status_code == 404
    assert no_customers.json() == {"error": "No customers found to send messages"}
    assert bad_count.status_code == 400
