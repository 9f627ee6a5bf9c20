from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from restaurant_api.core.database import Base
from restaurant_api.models.business import Business
from restaurant_api.models.tenant_sequence import TenantSequence
from restaurant_api.services import sequences
from restaurant_api.services.accounts import register_owner
from restaurant_api.services.customers import register_customer
from restaurant_api.services.sequences import CUSTOMER_SEQUENCE, next_sequence_value
from tests.fixtures_data import BUSINESS_ONE


def _session(tmp_path: Path):
    engine = create_engine(f"sqlite:///{tmp_path / 'sequences.db'}")
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _counter(db, business_id: int) -> int:
    return (
        db.query(TenantSequence.value)
        .filter(TenantSequence.business_id == business_id, TenantSequence.name == CUSTOMER_SEQUENCE)
        .scalar()
    )


def test_new_business_starts_with_a_seeded_customer_counter(tmp_path: Path):
    db = _session(tmp_path)

    owner = register_owner(
        db, name="Asha", email="asha@example.com", password="secret123", business_name="Asha Kitchen"
    )

    assert _counter(db, owner.business_id) == 0
    first = register_customer(
        db, business_id=owner.business_id, name="Ravi", email="ravi@example.com", password="pw123456", mobile="98"
    )
    assert first.customer_id == 1
    assert _counter(db, owner.business_id) == 1
    assert db.query(TenantSequence).filter(TenantSequence.business_id == owner.business_id).count() == 1


def test_counter_row_created_concurrently_is_incremented_instead(tmp_path: Path, monkeypatch):
    db = _session(tmp_path)
    db.add(Business(**BUSINESS_ONE))
    db.commit()

    original_increment = sequences._increment
    calls = []

    def _increment_after_concurrent_insert(session, business_id, name):
        calls.append(name)
        if len(calls) == 1:
            # The UPDATE found no row; another registration then committed it with value 1
            other = sessionmaker(bind=session.get_bind())()
            other.add(TenantSequence(business_id=business_id, name=name, value=1))
            other.commit()
            other.close()
            original_increment(session, business_id, "warmup")
            return 0
        return original_increment(session, business_id, name)

    monkeypatch.setattr(sequences, "_increment", _increment_after_concurrent_insert)

    value = next_sequence_value(db, business_id=1, name=CUSTOMER_SEQUENCE)
    db.commit()

    assert value == 2
    assert _counter(db, 1) == 2
