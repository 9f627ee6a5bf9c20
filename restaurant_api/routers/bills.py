from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import require_business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.order import Order
from restaurant_api.services.bills import (
    BillError,
    bill_to_dict,
    create_bill,
    get_bill,
    orders_with_bills,
    update_charges,
)
from restaurant_api.services.orders import OrderError, parse_order_ref

router = APIRouter(prefix="/api", tags=["bills"])

logger = logging.getLogger(__name__)


class Charges(BaseModel):
    vat_low: Optional[float] = Field(None, ge=0)
    vat_high: Optional[float] = Field(None, ge=0)
    service_tax: Optional[float] = Field(None, ge=0)
    service_charge: Optional[float] = Field(None, ge=0)


class BillCreate(BaseModel):
    order_id: str
    tax_rates: Charges = Field(default_factory=Charges)


def _owned_order(db: Session, order_ref: str, user: BusinessOwner, denial: str) -> Order:
    try:
        order_id = parse_order_ref(order_ref)
    except OrderError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order or order.business_id != user.business_id:
        logger.warning("Bill access denied: order_ref=%s user_id=%s", order_ref, user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=denial)
    return order


def _bill_error(exc: BillError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


@router.post("/bill", status_code=status.HTTP_201_CREATED)
def create_order_bill(
    payload: BillCreate,
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    order = _owned_order(db, payload.order_id, user, "Unauthorized to create bill for this order")
    try:
        bill = create_bill(db, order, payload.tax_rates.model_dump())
    except BillError as exc:
        raise _bill_error(exc) from exc
    return bill_to_dict(bill)


@router.get("/bill/{order_ref}")
def read_bill(
    order_ref: str,
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    order = _owned_order(db, order_ref, user, "Unauthorized access")
    try:
        return bill_to_dict(get_bill(db, order))
    except BillError as exc:
        raise _bill_error(exc) from exc


@router.put("/bill/{order_ref}/update-charges")
def update_bill_charges(
    order_ref: str,
    payload: Charges,
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    order = _owned_order(db, order_ref, user, "Unauthorized to update charges")
    try:
        bill = update_charges(db, order, payload.model_dump())
    except BillError as exc:
        raise _bill_error(exc) from exc
    return bill_to_dict(bill)


@router.get("/bills/orders")
def list_billed_orders(
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    return {"orders": orders_with_bills(db, user.business_id)}
