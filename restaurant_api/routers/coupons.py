from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.core.timeutils import to_naive_utc
from restaurant_api.deps import require_business, require_business_role
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.coupon import Coupon
from restaurant_api.services.coupons import (
    CouponError,
    coupon_to_dict,
    normalize_code,
    normalize_discount_type,
    redeem_coupon,
    validate_coupon,
)

router = APIRouter(prefix="/api/coupons", tags=["coupons"])

logger = logging.getLogger(__name__)

COUPON_ROLES = ["Owner", "Manager", "Staff"]


class CouponPayload(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    discount_type: str
    discount_value: float = Field(..., gt=0)
    max_discount: Optional[float] = Field(None, gt=0)
    min_order_value: float = Field(0, ge=0)
    valid_from: datetime
    valid_till: datetime
    usage_limit: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def _window_is_ordered(self):
        if to_naive_utc(self.valid_till) < to_naive_utc(self.valid_from):
            raise ValueError("valid_till must not be before valid_from")
        return self


class CouponCheck(BaseModel):
    code: str = Field(..., min_length=1)
    order_total: float = Field(..., gt=0)


def _coupon_error(exc: CouponError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


def _apply(coupon: Coupon, payload: CouponPayload) -> None:
    coupon.code = normalize_code(payload.code)
    coupon.description = payload.description
    coupon.discount_type = normalize_discount_type(payload.discount_type)
    coupon.discount_value = payload.discount_value
    coupon.max_discount = payload.max_discount
    coupon.min_order_value = payload.min_order_value
    coupon.valid_from = to_naive_utc(payload.valid_from)
    coupon.valid_till = to_naive_utc(payload.valid_till)
    coupon.usage_limit = payload.usage_limit


def _get_owned_coupon(db: Session, coupon_id: int, business_id: int) -> Coupon:
    coupon = (
        db.query(Coupon)
        .filter(Coupon.id == coupon_id, Coupon.business_id == business_id)
        .first()
    )
    if not coupon:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found or unauthorized")
    return coupon


def _save(db: Session, coupon: Coupon) -> Coupon:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Coupon code already exists") from exc
    db.refresh(coupon)
    return coupon


@router.post("/create", status_code=status.HTTP_201_CREATED)
def create_coupon(
    payload: CouponPayload,
    user: BusinessOwner = Depends(require_business_role(COUPON_ROLES)),
    db: Session = Depends(get_db),
):
    coupon = Coupon(business_id=user.business_id, used_count=0)
    try:
        _apply(coupon, payload)
    except CouponError as exc:
        raise _coupon_error(exc) from exc
    db.add(coupon)
    coupon = _save(db, coupon)
    logger.info("Coupon created: coupon_id=%s code=%s", coupon.id, coupon.code)
    return {"message": "Coupon created", "coupon": coupon_to_dict(coupon)}


@router.get("")
def list_coupons(
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    coupons = (
        db.query(Coupon)
        .filter(Coupon.business_id == user.business_id)
        .order_by(Coupon.created_at.desc(), Coupon.id.desc())
        .all()
    )
    return [coupon_to_dict(coupon) for coupon in coupons]


@router.put("/{coupon_id}")
def update_coupon(
    coupon_id: int,
    payload: CouponPayload,
    user: BusinessOwner = Depends(require_business_role(COUPON_ROLES)),
    db: Session = Depends(get_db),
):
    coupon = _get_owned_coupon(db, coupon_id, user.business_id)
    try:
        _apply(coupon, payload)
    except CouponError as exc:
        raise _coupon_error(exc) from exc
    coupon = _save(db, coupon)
    return {"message": "Coupon updated", "coupon": coupon_to_dict(coupon)}


@router.delete("/{coupon_id}")
def delete_coupon(
    coupon_id: int,
    user: BusinessOwner = Depends(require_business_role(COUPON_ROLES)),
    db: Session = Depends(get_db),
):
    coupon = _get_owned_coupon(db, coupon_id, user.business_id)
    db.delete(coupon)
    db.commit()
    return {"message": "Coupon deleted successfully"}


def _quote_response(message: str, quote) -> dict:
    coupon = quote.coupon
    return {
        "message": message,
        "discount": quote.discount,
        "coupon": {
            "id": coupon.id,
            "code": coupon.code,
            "type": coupon.discount_type,
            "value": coupon.discount_value,
            "used_count": coupon.used_count,
            "usage_limit": coupon.usage_limit,
        },
    }


@router.post("/validate")
def check_coupon(
    payload: CouponCheck,
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    try:
        quote = validate_coupon(db, business_id=user.business_id, code=payload.code, order_total=payload.order_total)
    except CouponError as exc:
        raise _coupon_error(exc) from exc
    return _quote_response("Coupon applied successfully", quote)


@router.post("/redeem")
def use_coupon(
    payload: CouponCheck,
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    try:
        quote = redeem_coupon(db, business_id=user.business_id, code=payload.code, order_total=payload.order_total)
    except CouponError as exc:
        raise _coupon_error(exc) from exc
    return _quote_response("Coupon redeemed successfully", quote)
