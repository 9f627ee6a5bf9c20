from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from restaurant_api.models.bill import Bill
from restaurant_api.models.order import Order
from restaurant_api.services.orders import order_to_dict

logger = logging.getLogger(__name__)

CHARGE_FIELDS = ("vat_low", "vat_high", "service_tax", "service_charge")


class BillError(Exception):
    status_code = 400


class BillNotFound(BillError):
    status_code = 404


def create_bill(db: Session, order: Order, charges: dict) -> Bill:
    if db.query(Bill).filter(Bill.order_id == order.id).first():
        raise BillError("Bill already exists for this order")

    bill = Bill(order_id=order.id, business_id=order.business_id)
    for field in CHARGE_FIELDS:
        setattr(bill, field, float(charges.get(field) or 0))
    db.add(bill)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise BillError("Bill already exists for this order") from exc
    db.refresh(bill)
    logger.info("Bill created: order_id=%s bill_id=%s", order.id, bill.id)
    return bill


def get_bill(db: Session, order: Order) -> Bill:
    bill = db.query(Bill).filter(Bill.order_id == order.id).first()
    if not bill:
        raise BillNotFound("Bill not found")
    return bill


def update_charges(db: Session, order: Order, charges: dict) -> Bill:
    bill = get_bill(db, order)
    for field in CHARGE_FIELDS:
        value = charges.get(field)
        if value is not None:
            setattr(bill, field, float(value))
    db.commit()
    db.refresh(bill)
    return bill


def bill_to_dict(bill: Optional[Bill]) -> Optional[dict]:
    if bill is None:
        return None
    return {
        "id": bill.id,
        "order_id": bill.order_id,
        "business_id": bill.business_id,
        "vat_low": bill.vat_low,
        "vat_high": bill.vat_high,
        "service_tax": bill.service_tax,
        "service_charge": bill.service_charge,
        "created_at": bill.created_at.isoformat() if bill.created_at else None,
    }


def orders_with_bills(db: Session, business_id: int) -> list[dict]:
    orders = (
        db.query(Order)
        .options(selectinload(Order.items), selectinload(Order.bill))
        .filter(Order.business_id == business_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [{**order_to_dict(order), "bill": bill_to_dict(order.bill)} for order in orders]
