from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import get_optional_customer, is_superadmin, require_business, require_role
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.customer import Customer
from restaurant_api.services.orders import (
    OrderAccessDenied,
    OrderError,
    OrderNotFoundError,
    create_order as create_order_record,
    complete_all_items,
    format_order_tag,
    get_order_for_business,
    list_orders as list_order_records,
    order_item_to_dict,
    order_to_dict,
    parse_line_items,
    parse_order_ref,
    replace_order_items,
    set_order_status,
    update_item_status,
    validate_new_order,
)

router = APIRouter(prefix="/api/orders", tags=["orders"])

logger = logging.getLogger(__name__)

KITCHEN_ROLES = ["Owner", "Manager", "Staff"]


def _to_http(exc: OrderError) -> HTTPException:
    if isinstance(exc, OrderNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, OrderAccessDenied):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _scope(user: BusinessOwner) -> Optional[int]:
    """Business the caller may act on; ``None`` (unscoped) only for the SuperAdmin."""
    if is_superadmin(user):
        return None
    if user.business_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized access")
    return user.business_id


def _load_order(db: Session, order_ref: str, user: BusinessOwner):
    try:
        return get_order_for_business(db, parse_order_ref(order_ref), _scope(user))
    except OrderError as exc:
        raise _to_http(exc) from exc


class OrderCreate(BaseModel):
    business_id: Optional[int] = None
    table_number: Optional[int] = None
    items: Optional[Any] = None
    total_amount: Optional[float] = None
    payment_method: Optional[str] = None
    estimated_time: Optional[str] = None
    points_to_redeem: int = Field(0, ge=0)


class OrderUpdate(BaseModel):
    items: Optional[Any] = None
    table_number: Optional[int] = Field(None, ge=1)
    total_amount: Optional[float] = Field(None, ge=0)
    payment_method: Optional[str] = None
    estimated_time: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    customer: Optional[Customer] = Depends(get_optional_customer),
    db: Session = Depends(get_db),
):
    try:
        items = validate_new_order(
            business_id=payload.business_id,
            table_number=payload.table_number,
            items=payload.items,
            total_amount=payload.total_amount,
            payment_method=payload.payment_method,
            estimated_time=payload.estimated_time,
        )
        result = create_order_record(
            db,
            business_id=payload.business_id,
            table_number=payload.table_number,
            items=items,
            total_amount=payload.total_amount,
            payment_method=payload.payment_method,
            estimated_time=payload.estimated_time,
            customer=customer,
            points_to_redeem=payload.points_to_redeem,
        )
    except OrderError as exc:
        raise _to_http(exc) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Failed to place order") from exc

    order = result.order
    return {
        "order_id": format_order_tag(order.id),
        "table_number": order.table_number,
        "status": order.status,
        "message": "Order placed successfully",
        "estimated_time": order.estimated_time,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "items": [order_item_to_dict(item) for item in order.items],
        "side_effects": [
            {"step": effect.step, "ok": effect.ok, "detail": effect.detail} for effect in result.side_effects
        ],
    }


@router.get("")
def list_orders(
    day: Optional[date] = Query(None, alias="date"),
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    orders = list_order_records(db, business_id=user.business_id, day=day)
    return {"orders": [order_to_dict(order) for order in orders]}


@router.get("/{order_ref}")
def get_order(
    order_ref: str,
    business_id: int = Query(..., ge=1),
    db: Session = Depends(get_db),
):
    try:
        order = get_order_for_business(db, parse_order_ref(order_ref), business_id)
    except OrderAccessDenied as exc:
        # Public lookups never reveal orders of other businesses
        raise HTTPException(status_code=404, detail="Order not found") from exc
    except OrderError as exc:
        raise _to_http(exc) from exc
    return order_to_dict(order)


@router.patch("/{order_ref}/items/{product_id}/status")
def update_order_item_status(
    order_ref: str,
    product_id: int,
    body: StatusUpdate,
    user: BusinessOwner = Depends(require_role(KITCHEN_ROLES)),
    db: Session = Depends(get_db),
):
    order = _load_order(db, order_ref, user)
    try:
        item_status, order_status = update_item_status(db, order, product_id=product_id, status=body.status)
    except OrderError as exc:
        raise _to_http(exc) from exc
    return {
        "message": "Item status updated",
        "item": {"product_id": product_id, "status": item_status},
        "order_status": order_status,
    }


@router.patch("/{order_ref}/complete-all")
def complete_all(
    order_ref: str,
    user: BusinessOwner = Depends(require_role(KITCHEN_ROLES)),
    db: Session = Depends(get_db),
):
    order = _load_order(db, order_ref, user)
    order_status = complete_all_items(db, order)
    return {"message": "All items marked as completed", "order_status": order_status}


@router.patch("/{order_ref}/status")
def update_order_status(
    order_ref: str,
    body: StatusUpdate,
    user: BusinessOwner = Depends(require_role(KITCHEN_ROLES)),
    db: Session = Depends(get_db),
):
    order = _load_order(db, order_ref, user)
    try:
        order_status = set_order_status(db, order, body.status)
    except OrderError as exc:
        raise _to_http(exc) from exc
    return {"message": "Order status updated", "order_status": order_status}


@router.put("/{order_ref}")
def update_order(
    order_ref: str,
    payload: OrderUpdate,
    user: BusinessOwner = Depends(require_role(KITCHEN_ROLES)),
    db: Session = Depends(get_db),
):
    order = _load_order(db, order_ref, user)
    try:
        items = parse_line_items(payload.items, allow_status=True)
        order = replace_order_items(
            db,
            order,
            items=items,
            table_number=payload.table_number,
            total_amount=payload.total_amount,
            payment_method=payload.payment_method,
            estimated_time=payload.estimated_time,
        )
    except OrderError as exc:
        raise _to_http(exc) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Failed to update order") from exc

    logger.info("Order updated: order_id=%s by user_id=%s", order.id, user.id)
    return {"message": "Order updated successfully", "order": order_to_dict(order)}
