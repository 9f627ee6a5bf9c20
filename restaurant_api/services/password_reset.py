from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from restaurant_api.core.config import (
    PASSWORD_RESET_MAX_PER_HOUR,
    PASSWORD_RESET_OTP_TTL_MINUTES,
    PASSWORD_RESET_WINDOW_SECONDS,
)
from restaurant_api.core.rate_limiter import DatabaseRateLimiterService, RateLimitExceeded
from restaurant_api.core.timeutils import utcnow
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.password_reset import PasswordReset
from restaurant_api.services import mailer
from restaurant_api.services.accounts import normalize_email
from restaurant_api.services.auth import hash_password

logger = logging.getLogger(__name__)


class PasswordResetError(Exception):
    status_code = 400


class UserNotFound(PasswordResetError):
    status_code = 404


def generate_otp() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


def _limiter(db: Session) -> DatabaseRateLimiterService:
    return DatabaseRateLimiterService(
        db,
        limit=PASSWORD_RESET_MAX_PER_HOUR,
        window_seconds=PASSWORD_RESET_WINDOW_SECONDS,
    )


def request_otp(db: Session, email: str, *, now: Optional[datetime] = None) -> PasswordReset:
    """Issue and mail a one-time code; raises RateLimitExceeded past the hourly quota."""
    email = normalize_email(email)
    now = now or utcnow()
    limiter = _limiter(db)
    decision = limiter.check(email, now=now)
    if not decision.allowed:
        logger.warning("Password reset rate limited: retry_after=%ss", decision.retry_after_seconds)
        raise RateLimitExceeded(decision)

    reset = PasswordReset(
        email=email,
        otp=generate_otp(),
        expires_at=now + timedelta(minutes=PASSWORD_RESET_OTP_TTL_MINUTES),
        created_at=now,
    )
    db.add(reset)
    db.flush()

    try:
        mailer.send_password_reset_otp(to=email, otp=reset.otp, ttl_minutes=PASSWORD_RESET_OTP_TTL_MINUTES)
    except Exception:
        db.rollback()
        logger.exception("Failed to send password reset OTP")
        raise

    # Only delivered codes count against the quota
    limiter.record(email, now=now)
    db.commit()
    return reset


def verify_otp(db: Session, email: str, otp: str, *, now: Optional[datetime] = None) -> PasswordReset:
    now = now or utcnow()
    reset = (
        db.query(PasswordReset)
        .filter(
            PasswordReset.email == normalize_email(email),
            PasswordReset.otp == str(otp).strip(),
            PasswordReset.expires_at >= now,
        )
        .order_by(PasswordReset.created_at.desc())
        .first()
    )
    if not reset:
        raise PasswordResetError("Invalid or expired OTP")
    return reset


def change_password(db: Session, email: str, otp: str, new_password: str) -> BusinessOwner:
    email = normalize_email(email)
    verify_otp(db, email, otp)

    user = db.query(BusinessOwner).filter(BusinessOwner.email == email).first()
    if not user:
        raise UserNotFound("User not found")

    user.password_hash = hash_password(new_password)
    db.query(PasswordReset).filter(PasswordReset.email == email).delete(synchronize_session=False)
    db.commit()
    logger.info("Password changed: user_id=%s", user.id)
    return user
