from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import get_current_owner
from restaurant_api.models.business import Business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.services.accounts import (
    AccountError,
    authenticate_owner,
    owner_profile,
    register_owner,
)
from restaurant_api.services.auth import create_owner_token
from restaurant_api.services.plans import ensure_trial_plan
from restaurant_api.services.r2_storage import store_image

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = logging.getLogger(__name__)


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    business_name: str = Field(..., min_length=1)
    business_type: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    try:
        owner = register_owner(
            db,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            business_name=payload.business_name,
            business_type=payload.business_type,
            phone=payload.phone,
            address=payload.address,
        )
    except AccountError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return {"message": "Successfully registered", "user_id": owner.id, "business_id": owner.business_id}


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = authenticate_owner(db, payload.email, payload.password)
    except AccountError as exc:
        logger.info("Login failed: reason=%s", exc)
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc

    if user.business_id is not None:
        ensure_trial_plan(db, user.business_id)
        db.refresh(user)

    token = create_owner_token(
        user_id=user.id,
        email=user.email,
        business_id=user.business_id,
        role=user.role,
    )
    logger.info("Login success: user_id=%s role=%s", user.id, user.role)
    return {"token": token, "user": owner_profile(user)}


@router.get("/user")
def read_profile(user: BusinessOwner = Depends(get_current_owner)):
    return owner_profile(user)


@router.put("/user")
def update_profile(
    name: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    business_name: Optional[str] = Form(None),
    profile_photo: Optional[UploadFile] = File(None),
    qr_code: Optional[UploadFile] = File(None),
    user: BusinessOwner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    folder_owner = user.business_id or f"user-{user.id}"
    profile_photo_url = store_image(profile_photo, folder_owner, "profile")
    qr_code_url = store_image(qr_code, folder_owner, "qr")

    if name is not None:
        user.name = name
    if phone is not None:
        user.phone = phone
    if address is not None:
        user.address = address
    if profile_photo_url:
        user.profile_photo_url = profile_photo_url
    if qr_code_url:
        user.qr_code_url = qr_code_url
    if business_name and user.business is not None:
        user.business.name = business_name

    db.commit()
    db.refresh(user)
    return owner_profile(user)


@router.get("/business/{business_id}")
def public_business(business_id: int, db: Session = Depends(get_db)):
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    return {"name": business.name, "logo_url": business.logo_url}
