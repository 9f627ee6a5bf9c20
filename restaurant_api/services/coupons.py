from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from restaurant_api.core.timeutils import utcnow
from restaurant_api.models.coupon import DISCOUNT_FLAT, DISCOUNT_PERCENT, DISCOUNT_TYPES, Coupon

logger = logging.getLogger(__name__)


class CouponError(Exception):
    status_code = 400


class CouponNotFound(CouponError):
    status_code = 404


@dataclass
class CouponQuote:
    coupon: Coupon
    discount: float


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def normalize_discount_type(raw: str) -> str:
    value = (raw or "").strip().lower()
    if value == "percentage":
        value = DISCOUNT_PERCENT
    if value not in DISCOUNT_TYPES:
        raise CouponError("Invalid discount type")
    return value


def compute_discount(coupon: Coupon, order_total: float) -> float:
    """Flat value or percentage of the total, capped by ``max_discount``; never above the total."""
    total = max(float(order_total or 0), 0.0)
    if coupon.discount_type == DISCOUNT_FLAT:
        discount = float(coupon.discount_value)
    elif coupon.discount_type == DISCOUNT_PERCENT:
        discount = float(coupon.discount_value) / 100 * total
        if coupon.max_discount and discount > float(coupon.max_discount):
            discount = float(coupon.max_discount)
    else:
        discount = 0.0
    return round(min(discount, total), 2)


def validate_coupon(
    db: Session,
    *,
    business_id: int,
    code: str,
    order_total: float,
    now: Optional[datetime] = None,
) -> CouponQuote:
    now = now or utcnow()
    coupon = (
        db.query(Coupon)
        .filter(
            Coupon.business_id == business_id,
            Coupon.code == normalize_code(code),
            Coupon.valid_from <= now,
            Coupon.valid_till >= now,
        )
        .first()
    )
    if not coupon:
        raise CouponNotFound("Coupon not found or expired")

    if coupon.min_order_value is not None and float(order_total) < float(coupon.min_order_value):
        raise CouponError(f"Minimum order value must be {coupon.min_order_value:g}")

    return CouponQuote(coupon=coupon, discount=compute_discount(coupon, order_total))


def redeem_coupon(
    db: Session,
    *,
    business_id: int,
    code: str,
    order_total: float,
    now: Optional[datetime] = None,
) -> CouponQuote:
    """Validate and count one use in a single conditional UPDATE."""
    quote = validate_coupon(db, business_id=business_id, code=code, order_total=order_total, now=now)
    updated = (
        db.query(Coupon)
        .filter(
            Coupon.id == quote.coupon.id,
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
        .update({Coupon.used_count: Coupon.used_count + 1}, synchronize_session=False)
    )
    if not updated:
        db.rollback()
        raise CouponError("Coupon usage limit reached")
    db.commit()
    db.refresh(quote.coupon)
    logger.info("Coupon redeemed: coupon_id=%s business_id=%s", quote.coupon.id, business_id)
    return quote


def coupon_to_dict(coupon: Coupon) -> dict:
    return {
        "id": coupon.id,
        "business_id": coupon.business_id,
        "code": coupon.code,
        "description": coupon.description,
        "discount_type": coupon.discount_type,
        "discount_value": coupon.discount_value,
        "max_discount": coupon.max_discount,
        "min_order_value": coupon.min_order_value,
        "valid_from": coupon.valid_from.isoformat() if coupon.valid_from else None,
        "valid_till": coupon.valid_till.isoformat() if coupon.valid_till else None,
        "usage_limit": coupon.usage_limit,
        "used_count": coupon.used_count,
    }
