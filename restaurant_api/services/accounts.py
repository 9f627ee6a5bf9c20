from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restaurant_api.models.business import Business
from restaurant_api.models.business_owner import ROLE_OWNER, ROLE_SUPERADMIN, BusinessOwner
from restaurant_api.models.plan import Plan
from restaurant_api.services.auth import hash_password, verify_password
from restaurant_api.services.sequences import create_business_sequences

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[SUPERADMIN_BOOTSTRAP]"


class AccountError(Exception):
    status_code = 400


class InvalidCredentials(AccountError):
    status_code = 401


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def register_owner(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    business_name: str,
    business_type: Optional[str] = None,
    phone: Optional[str] = None,
    address: Optional[str] = None,
) -> BusinessOwner:
    """Create a business and its owner together, or neither."""
    email = normalize_email(email)
    if db.query(BusinessOwner).filter(BusinessOwner.email == email).first():
        raise AccountError("Email already exists")

    try:
        business = Business(name=business_name, type=business_type or "restaurant")
        db.add(business)
        db.flush()
        create_business_sequences(db, business.id)
        owner = BusinessOwner(
            name=name,
            email=email,
            phone=phone,
            address=address,
            password_hash=hash_password(password),
            role=ROLE_OWNER,
            business_id=business.id,
        )
        db.add(owner)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AccountError("Email already exists") from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(owner)
    logger.info("Owner registered: user_id=%s business_id=%s", owner.id, owner.business_id)
    return owner


def authenticate_owner(db: Session, email: str, password: str) -> BusinessOwner:
    user = db.query(BusinessOwner).filter(BusinessOwner.email == normalize_email(email)).first()
    if not user or not verify_password(password, user.password_hash):
        raise InvalidCredentials("Invalid email or password")
    if user.business_id is None and user.role != ROLE_SUPERADMIN:
        raise AccountError("User or business not found")
    return user


def ensure_superadmin(db: Session, *, email: str, password: str, name: str) -> Optional[BusinessOwner]:
    """Create the platform operator account when it does not exist yet."""
    email = normalize_email(email)
    if not email or not password:
        logger.info("%s skipped: SUPERADMIN_EMAIL/SUPERADMIN_PASSWORD not set", BOOTSTRAP_PREFIX)
        return None

    existing = db.query(BusinessOwner).filter(BusinessOwner.email == email).first()
    if existing:
        if existing.role != ROLE_SUPERADMIN:
            logger.warning("%s email already used by a non-admin account user_id=%s", BOOTSTRAP_PREFIX, existing.id)
        return existing

    admin = BusinessOwner(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=ROLE_SUPERADMIN,
        business_id=None,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("%s created id=%s", BOOTSTRAP_PREFIX, admin.id)
    return admin


def _plan_summary(plan: Optional[Plan]) -> Optional[dict]:
    if plan is None:
        return None
    return {
        "name": plan.name,
        "features": plan.features,
        "expires_at": plan.expires_at.isoformat() if plan.expires_at else None,
        "status": plan.status,
    }


def business_summary(business: Optional[Business]) -> Optional[dict]:
    if business is None:
        return None
    return {
        "id": business.id,
        "name": business.name,
        "type": business.type,
        "tagline": business.tagline,
        "logo_url": business.logo_url,
        "plan": _plan_summary(business.plan),
    }


def owner_profile(user: BusinessOwner) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "address": user.address,
        "role": user.role,
        "profile_photo_url": user.profile_photo_url,
        "qr_code_url": user.qr_code_url,
        "business": business_summary(user.business),
    }
