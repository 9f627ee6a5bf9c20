from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

import pytest
from sqlalchemy import create_engine

from restaurant_api.core import config, startup_checks
from restaurant_api.core.logging_setup import JsonFormatter
from restaurant_api.core.request_context import clear_request_context, current_context, set_request_context

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def test_production_environment_rejects_sqlite(monkeypatch):
    monkeypatch.setattr(config, "IS_PROD", True)
    monkeypatch.setattr(config, "DATABASE_URL", "sqlite:///./forbidden.db")

    with pytest.raises(RuntimeError, match="SQLite is forbidden"):
        startup_checks.validate_runtime_environment()


def test_production_environment_requires_jwt_secret(monkeypatch):
    monkeypatch.setattr(config, "IS_PROD", True)
    monkeypatch.setattr(config, "DATABASE_URL", "postgresql://pos:pos@db/pos")
    monkeypatch.setattr(config, "JWT_SECRET_KEY", config.DEFAULT_JWT_SECRET)

    with pytest.raises(RuntimeError, match="JWT_SECRET_KEY"):
        startup_checks.validate_runtime_environment()


def _migrated_engine(tmp_path: Path, version: str):
    db_path = tmp_path / "state.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)")
    conn.execute("INSERT INTO alembic_version (version_num) VALUES (?)", (version,))
    conn.commit()
    conn.close()
    return create_engine(f"sqlite:///{db_path}")


def test_migration_check_fails_when_pending_migration(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(config, "ENV_NORMALIZED", "dev")
    monkeypatch.setattr(config, "DATABASE_URL", "postgresql://pos:pos@db/pos")
    engine = _migrated_engine(tmp_path, "000000000000")

    with pytest.raises(RuntimeError, match="Pending migrations"):
        startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)


def test_migration_check_passes_at_head(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(config, "ENV_NORMALIZED", "dev")
    monkeypatch.setattr(config, "DATABASE_URL", "postgresql://pos:pos@db/pos")
    engine = _migrated_engine(tmp_path, "0001_create_schema")

    startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)


def test_migration_check_is_skipped_for_sqlite(monkeypatch):
    monkeypatch.setattr(config, "DATABASE_URL", "sqlite:///./local.db")

    startup_checks.ensure_migrations_applied(engine=None, alembic_config_path=Path("/does/not/exist.ini"))


def test_json_formatter_masks_secrets_and_carries_request_context():
    set_request_context(request_id="req-1", business_id="7", principal="owner:3")
    try:
        record = logging.LogRecord(
            name="restaurant_api.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="login attempt password=%s token=%s",
            args=("hunter2", "abc.def.ghi"),
            exc_info=None,
        )
        record.order_id = 12
        payload = json.loads(JsonFormatter("%(message)s").format(record))
    finally:
        clear_request_context()

    assert payload["message"] == "login attempt password=*** token=***"
    assert payload["request_id"] == "req-1"
    assert payload["business_id"] == "7"
    assert payload["principal"] == "owner:3"
    assert payload["order_id"] == 12


def test_request_context_merges_fields_and_clears():
    set_request_context(request_id="req-9")
    try:
        set_request_context(business_id="4", principal="customer:2")
        set_request_context(business_id=None)
        merged = current_context()
    finally:
        clear_request_context()

    assert merged.as_log_fields() == {"request_id": "req-9", "business_id": "4", "principal": "customer:2"}
    assert current_context().as_log_fields() == {"request_id": None, "business_id": None, "principal": None}
