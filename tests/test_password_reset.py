from datetime import timedelta

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from restaurant_api.core.database import Base, get_db
from restaurant_api.core.errors import register_exception_handlers
from restaurant_api.core.rate_limiter import DatabaseRateLimiterService
from restaurant_api.core.timeutils import utcnow
from restaurant_api.models.business import Business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.password_reset import PasswordReset
from restaurant_api.routers.password_reset import router as password_reset_router
from restaurant_api.services import mailer
from restaurant_api.services.auth import hash_password, verify_password
from tests.fixtures_data import BUSINESS_ONE, OWNER_ONE, OWNER_PASSWORD


def _build_client(monkeypatch, sent: list):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    db.add(Business(**BUSINESS_ONE))
    db.add(BusinessOwner(password_hash=hash_password(OWNER_PASSWORD), **OWNER_ONE))
    db.commit()

    def _fake_send(*, to, otp, ttl_minutes):
        sent.append({"to": to, "otp": otp, "ttl_minutes": ttl_minutes})

    monkeypatch.setattr(mailer, "send_password_reset_otp", _fake_send)

    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(password_reset_router)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app), db


def test_otp_is_mailed_verified_and_used_to_change_password(monkeypatch):
    sent = []
    client, db = _build_client(monkeypatch, sent)

    requested = client.post("/api/password-reset", json={"email": " Owner1@Example.com "})
    assert requested.status_code == 200
    assert requested.json() == {"message": "OTP sent to email"}
    assert sent[0]["to"] == "owner1@example.com"
    otp = sent[0]["otp"]
    assert len(otp) == 6 and otp.isdigit()

    wrong = client.post("/api/password-reset/verify", json={"email": "owner1@example.com", "otp": "000000"})
    verified = client.post("/api/password-reset/verify", json={"email": "owner1@example.com", "otp": otp})
    assert wrong.status_code == 400
    assert wrong.json() == {"error": "Invalid or expired OTP"}
    assert verified.json() == {"message": "OTP verified"}

    changed = client.post(
        "/api/password-reset/change",
        json={"email": "owner1@example.com", "otp": otp, "new_password": "brand-new-pass"},
    )
    assert changed.json() == {"message": "Password changed successfully"}

    db.expire_all()
    user = db.query(BusinessOwner).filter(BusinessOwner.id == OWNER_ONE["id"]).first()
    assert verify_password("brand-new-pass", user.password_hash)
    assert db.query(PasswordReset).count() == 0

    reused = client.post(
        "/api/password-reset/change",
        json={"email": "owner1@example.com", "otp": otp, "new_password": "another-pass"},
    )
    assert reused.status_code == 400


def test_sixth_request_within_the_hour_is_rate_limited(monkeypatch):
    sent = []
    client, _db = _build_client(monkeypatch, sent)

    statuses = [client.post("/api/password-reset", json={"email": "owner1@example.com"}).status_code for _ in range(5)]
    limited = client.post("/api/password-reset", json={"email": "OWNER1@example.com"})

    assert statuses == [200] * 5
    assert limited.status_code == 429
    assert limited.json() == {"error": "Too many OTP requests. Please try again later."}
    assert int(limited.headers["Retry-After"]) > 0
    assert len(sent) == 5


def test_failed_delivery_does_not_count_against_quota(monkeypatch):
    sent = []
    client, db = _build_client(monkeypatch, sent)

    def _broken_send(**kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(mailer, "send_password_reset_otp", _broken_send)
    response = client.post("/api/password-reset", json={"email": "owner1@example.com"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to send OTP"}
    assert DatabaseRateLimiterService(db, limit=5, window_seconds=3600).check("owner1@example.com").remaining == 5


def test_limiter_forgets_attempts_outside_window(monkeypatch):
    _client, db = _build_client(monkeypatch, [])
    limiter = DatabaseRateLimiterService(db, limit=2, window_seconds=60)
    start = utcnow()

    limiter.record("a@example.com", now=start)
    limiter.record("a@example.com", now=start)
    db.commit()

    assert limiter.check("a@example.com", now=start).allowed is False
    assert limiter.check("a@example.com", now=start + timedelta(seconds=61)).allowed is True
