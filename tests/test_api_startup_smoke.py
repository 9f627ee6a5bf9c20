import uuid

from fastapi.testclient import TestClient


REQUIRED_ROUTES = {
    "/api/auth/register",
    "/api/auth/login",
    "/api/my-business",
    "/api/business/{business_id}/add-user",
    "/api/products",
    "/api/categories",
    "/api/inventory",
    "/api/tables",
    "/api/tables/{business_id}",
    "/api/orders",
    "/api/orders/{order_ref}/items/{product_id}/status",
    "/api/orders/{order_ref}/complete-all",
    "/api/bill",
    "/api/bills/orders",
    "/api/dashboard",
    "/api/plan",
    "/api/coupons/create",
    "/api/customers/register",
    "/api/password-reset",
    "/api/businesswhatsappdata/send-promo",
    "/api/admin/all-users",
}


def test_api_startup_and_router_registration(monkeypatch):
    from restaurant_api import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/")
        health_response = client.get("/health")
        openapi_response = client.get("/openapi.json")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert health_response.json() == {"status": "healthy"}
    assert openapi_response.status_code == 200

    paths = {route.path for route in main.app.routes}
    assert REQUIRED_ROUTES.issubset(paths)


def test_request_id_is_generated_or_propagated(monkeypatch):
    from restaurant_api import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        generated = client.get("/health")
        propagated = client.get("/health", headers={"X-Request-ID": "req-123"})

    uuid.UUID(generated.headers["X-Request-ID"])
    assert propagated.headers["X-Request-ID"] == "req-123"


def test_errors_use_error_envelope(monkeypatch):
    from restaurant_api import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        unauthenticated = client.get("/api/orders")
        invalid = client.post("/api/customers/register", json={"business_id": "abc"})
        missing = client.get("/api/nope")

    assert unauthenticated.status_code == 401
    assert unauthenticated.json() == {"error": "Access denied, no token provided"}
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "Invalid request"
    assert isinstance(invalid.json()["details"], list)
    assert missing.status_code == 404
    assert missing.json() == {"error": "Not Found"}
