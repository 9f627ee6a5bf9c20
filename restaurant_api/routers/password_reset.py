from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.core.rate_limiter import RateLimitExceeded
from restaurant_api.services.password_reset import (
    PasswordResetError,
    change_password,
    request_otp,
    verify_otp,
)

router = APIRouter(prefix="/api/password-reset", tags=["password-reset"])

logger = logging.getLogger(__name__)


class OtpRequest(BaseModel):
    email: str = Field(..., min_length=3)


class OtpVerify(BaseModel):
    email: str = Field(..., min_length=3)
    otp: str = Field(..., min_length=4, max_length=10)


class PasswordChange(OtpVerify):
    new_password: str = Field(..., min_length=6)


@router.post("")
def send_otp(payload: OtpRequest, db: Session = Depends(get_db)):
    try:
        request_otp(db, payload.email)
    except RateLimitExceeded as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many OTP requests. Please try again later.",
            headers={"Retry-After": str(exc.decision.retry_after_seconds)},
        ) from exc
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send OTP") from exc
    return {"message": "OTP sent to email"}


@router.post("/verify")
def check_otp(payload: OtpVerify, db: Session = Depends(get_db)):
    try:
        verify_otp(db, payload.email, payload.otp)
    except PasswordResetError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return {"message": "OTP verified"}


@router.post("/change")
def update_password(payload: PasswordChange, db: Session = Depends(get_db)):
    try:
        change_password(db, payload.email, payload.otp, payload.new_password)
    except PasswordResetError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return {"message": "Password changed successfully"}
