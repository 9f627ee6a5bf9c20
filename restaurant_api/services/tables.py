from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restaurant_api.models.order import Order
from restaurant_api.models.table import RestaurantTable
from restaurant_api.services.orders import STATUS_COMPLETED

logger = logging.getLogger(__name__)

TABLE_BOOKED = "Booked"
TABLE_AVAILABLE = "Available"


def _find_table(db: Session, business_id: int, table_number: int) -> RestaurantTable | None:
    return (
        db.query(RestaurantTable)
        .filter(RestaurantTable.business_id == business_id, RestaurantTable.table_number == table_number)
        .first()
    )


def register_table(db: Session, *, business_id: int, table_number: int) -> tuple[RestaurantTable, bool]:
    """Idempotent by (business, number). Returns ``(table, created)``."""
    existing = _find_table(db, business_id, table_number)
    if existing:
        return existing, False

    table = RestaurantTable(business_id=business_id, table_number=table_number)
    try:
        db.add(table)
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same number
        db.rollback()
        existing = _find_table(db, business_id, table_number)
        if existing is None:
            raise
        return existing, False
    db.refresh(table)
    logger.info("Table registered: business_id=%s table_number=%s", business_id, table_number)
    return table, True


def list_tables_with_status(db: Session, *, business_id: int) -> list[dict]:
    tables = (
        db.query(RestaurantTable)
        .filter(RestaurantTable.business_id == business_id)
        .order_by(RestaurantTable.table_number.asc())
        .all()
    )
    occupied = {
        row[0]
        for row in db.query(Order.table_number)
        .filter(Order.business_id == business_id, Order.status != STATUS_COMPLETED)
        .distinct()
        .all()
    }
    return [
        {
            "id": table.id,
            "table_number": table.table_number,
            "status": TABLE_BOOKED if table.table_number in occupied else TABLE_AVAILABLE,
        }
        for table in tables
    ]
