from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restaurant_api.models.tenant_sequence import TenantSequence

logger = logging.getLogger(__name__)

CUSTOMER_SEQUENCE = "customer"
BUSINESS_SEQUENCES = (CUSTOMER_SEQUENCE,)


def create_business_sequences(db: Session, business_id: int) -> None:
    """Seed every per-tenant counter at 0 alongside a new business."""
    for name in BUSINESS_SEQUENCES:
        db.add(TenantSequence(business_id=business_id, name=name, value=0))
    db.flush()


def _increment(db: Session, business_id: int, name: str) -> int:
    return (
        db.query(TenantSequence)
        .filter(TenantSequence.business_id == business_id, TenantSequence.name == name)
        .update({TenantSequence.value: TenantSequence.value + 1}, synchronize_session=False)
    )


def _current_value(db: Session, business_id: int, name: str) -> int:
    return (
        db.query(TenantSequence.value)
        .filter(TenantSequence.business_id == business_id, TenantSequence.name == name)
        .scalar()
    )


def next_sequence_value(db: Session, *, business_id: int, name: str) -> int:
    """Allocate the next per-tenant number inside the caller's transaction.

    The increment is a single UPDATE, so the row stays locked until the caller
    commits and concurrent allocations cannot hand out the same value. A
    business without a counter row gets one lazily; if another transaction
    inserts it first, the allocation falls back to incrementing that row.
    """
    if _increment(db, business_id, name):
        return _current_value(db, business_id, name)

    try:
        with db.begin_nested():
            db.add(TenantSequence(business_id=business_id, name=name, value=1))
        return 1
    except IntegrityError:
        logger.info("Sequence row created concurrently: business_id=%s name=%s", business_id, name)

    _increment(db, business_id, name)
    return _current_value(db, business_id, name)
