from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from restaurant_api.core.config import LOGIN_TRIAL_PLAN_DAYS, TRIAL_PLAN_DAYS, TRIAL_PLAN_NAME
from restaurant_api.core.timeutils import to_naive_utc, utcnow
from restaurant_api.models.plan import (
    PLAN_ACTIVE,
    PLAN_CANCELLED,
    PLAN_EXPIRED,
    PLAN_PENDING,
    PLAN_STATUSES,
    Plan,
)

logger = logging.getLogger(__name__)

DEFAULT_PLAN_DAYS = 30
MONTHLY_PLAN_DAYS = 30
ANNUAL_PLAN_DAYS = 365
TRIAL_PLAN_FEATURES = ("Basic Listing", "Limited Support")

DISPLAY_VERIFIED = "verified"
DISPLAY_UNVERIFIED = "unverified"

_DISPLAY_BY_STATUS = {
    PLAN_ACTIVE: DISPLAY_VERIFIED,
    PLAN_EXPIRED: DISPLAY_UNVERIFIED,
    PLAN_CANCELLED: DISPLAY_UNVERIFIED,
    PLAN_PENDING: PLAN_PENDING,
}

_STATUS_BY_INPUT = {
    DISPLAY_VERIFIED: PLAN_ACTIVE,
    DISPLAY_UNVERIFIED: PLAN_EXPIRED,
    **{status: status for status in PLAN_STATUSES},
}


class PlanError(Exception):
    pass


def to_display_status(status: str | None) -> str:
    return _DISPLAY_BY_STATUS.get((status or "").lower(), PLAN_PENDING)


def to_backend_status(value: Any) -> str:
    key = str(value or "").strip().lower()
    if key not in _STATUS_BY_INPUT:
        raise PlanError("Invalid status value")
    return _STATUS_BY_INPUT[key]


def resolve_plan_terms(
    name: str, expires_at: Optional[datetime], *, now: Optional[datetime] = None
) -> tuple[str, datetime]:
    """Normalized plan name and expiry derived from the plan's name."""
    now = now or utcnow()
    lowered = (name or "").strip().lower()
    if lowered in {"trial", TRIAL_PLAN_NAME.lower()}:
        return TRIAL_PLAN_NAME, now + timedelta(days=TRIAL_PLAN_DAYS)
    if "monthly" in lowered:
        return name, now + timedelta(days=MONTHLY_PLAN_DAYS)
    if "annual" in lowered or "yearly" in lowered:
        return name, now + timedelta(days=ANNUAL_PLAN_DAYS)
    explicit = to_naive_utc(expires_at)
    return name, explicit or now + timedelta(days=DEFAULT_PLAN_DAYS)


def is_active_and_current(plan: Plan, *, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return plan.status == PLAN_ACTIVE and (plan.expires_at is None or plan.expires_at > now)


def refresh_plan_expiry(db: Session, plan: Plan, *, now: Optional[datetime] = None) -> Plan:
    """Lazy expiry: an active plan past its expiry is persisted as expired on read."""
    now = now or utcnow()
    if plan.status == PLAN_ACTIVE and plan.expires_at is not None and plan.expires_at < now:
        plan.status = PLAN_EXPIRED
        db.commit()
        db.refresh(plan)
        logger.info("Plan expired on read: business_id=%s", plan.business_id)
    return plan


def get_plan(db: Session, business_id: int) -> Optional[Plan]:
    plan = db.query(Plan).filter(Plan.business_id == business_id).first()
    if plan is None:
        return None
    return refresh_plan_expiry(db, plan)


def upsert_plan(
    db: Session,
    *,
    business_id: int,
    name: str,
    features: Any = None,
    expires_at: Optional[datetime] = None,
    payment_proof_url: Optional[str] = None,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Plan:
    now = now or utcnow()
    plan = db.query(Plan).filter(Plan.business_id == business_id).first()
    if plan is not None:
        refresh_plan_expiry(db, plan, now=now)
        if is_active_and_current(plan, now=now):
            raise PlanError("Business already has an active plan. Update not allowed until it expires.")

    plan_name, plan_expiry = resolve_plan_terms(name, expires_at, now=now)
    backend_status = to_backend_status(status) if status is not None else None

    if plan is None:
        plan = Plan(business_id=business_id, status=backend_status or PLAN_PENDING)
        db.add(plan)
    elif backend_status is not None:
        plan.status = backend_status

    plan.name = plan_name
    plan.features = features
    plan.expires_at = plan_expiry
    if payment_proof_url is not None:
        plan.payment_proof_url = payment_proof_url
    db.commit()
    db.refresh(plan)
    logger.info("Plan saved: business_id=%s name=%s status=%s", business_id, plan.name, plan.status)
    return plan


def update_plan_status(db: Session, plan: Plan, status: Any) -> Plan:
    backend_status = to_backend_status(status)
    refresh_plan_expiry(db, plan)
    if backend_status == PLAN_ACTIVE and plan.status == PLAN_ACTIVE:
        raise PlanError("Plan is already verified and cannot be verified again.")
    plan.status = backend_status
    db.commit()
    db.refresh(plan)
    logger.info("Plan status updated: business_id=%s status=%s", plan.business_id, backend_status)
    return plan


def ensure_trial_plan(db: Session, business_id: int) -> Optional[Plan]:
    """Give a business without any plan a login-time Free Trial."""
    if db.query(Plan).filter(Plan.business_id == business_id).first():
        return None
    plan = Plan(
        business_id=business_id,
        name=TRIAL_PLAN_NAME,
        features=list(TRIAL_PLAN_FEATURES),
        expires_at=utcnow() + timedelta(days=LOGIN_TRIAL_PLAN_DAYS),
        status=PLAN_PENDING,
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)
    logger.info("Free trial provisioned: business_id=%s", business_id)
    return plan


def plan_to_dict(plan: Plan, *, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    return {
        "id": plan.id,
        "business_id": plan.business_id,
        "name": plan.name,
        "features": plan.features,
        "expires_at": plan.expires_at.isoformat() if plan.expires_at else None,
        "payment_proof_url": plan.payment_proof_url,
        "status": plan.status,
        "display_status": to_display_status(plan.status),
        "is_verified": plan.status == PLAN_ACTIVE,
        "is_expired": plan.expires_at is not None and plan.expires_at < now,
    }
