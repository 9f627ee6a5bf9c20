from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import ensure_same_business, get_current_owner, require_business
from restaurant_api.models.business import Business
from restaurant_api.models.business_owner import ROLE_OWNER, BusinessOwner
from restaurant_api.services.accounts import business_summary
from restaurant_api.services.r2_storage import store_image
from restaurant_api.services.sequences import create_business_sequences

router = APIRouter(prefix="/api", tags=["business"])

logger = logging.getLogger(__name__)

EDIT_LIMIT_MESSAGE = "You have already updated your business once. No further updates allowed."


def _get_business(db: Session, business_id: int) -> Business:
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    return business


def _apply_one_time_edit(
    db: Session,
    user: BusinessOwner,
    business: Business,
    *,
    name: Optional[str],
    type: Optional[str],
    tagline: Optional[str],
    logo: Optional[UploadFile],
) -> Business:
    if (user.restaurant_edit_count or 0) >= 1:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=EDIT_LIMIT_MESSAGE)

    logo_url = store_image(logo, business.id, "logo")
    if name:
        business.name = name
    if type:
        business.type = type
    if tagline is not None:
        business.tagline = tagline
    if logo_url:
        business.logo_url = logo_url
    user.restaurant_edit_count = (user.restaurant_edit_count or 0) + 1
    db.commit()
    db.refresh(business)
    logger.info("Business updated: business_id=%s edit_count=%s", business.id, user.restaurant_edit_count)
    return business


@router.get("/my-business")
def my_business(user: BusinessOwner = Depends(require_business), db: Session = Depends(get_db)):
    return business_summary(_get_business(db, user.business_id))


@router.post("/business")
def create_or_update_business(
    name: str = Form(...),
    type: str = Form(...),
    tagline: Optional[str] = Form(None),
    logo: Optional[UploadFile] = File(None),
    user: BusinessOwner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """Create the caller's business, or apply its single allowed edit."""
    if user.business_id is not None:
        business = _get_business(db, user.business_id)
        business = _apply_one_time_edit(db, user, business, name=name, type=type, tagline=tagline, logo=logo)
        return {"message": "Business updated successfully", "business": business_summary(business)}

    if logo is None or not logo.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Logo is required")

    try:
        business = Business(name=name, type=type, tagline=tagline)
        db.add(business)
        db.flush()
        create_business_sequences(db, business.id)
        business.logo_url = store_image(logo, business.id, "logo")
        user.business_id = business.id
        user.role = ROLE_OWNER
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(business)
    logger.info("Business created: business_id=%s owner_id=%s", business.id, user.id)
    return {"message": "Business created successfully", "business": business_summary(business)}


@router.get("/business/{business_id}")
def get_business(business_id: int, db: Session = Depends(get_db)):
    return business_summary(_get_business(db, business_id))


@router.put("/business/{business_id}")
def update_business(
    business_id: int,
    request: Request,
    name: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    tagline: Optional[str] = Form(None),
    logo: Optional[UploadFile] = File(None),
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    ensure_same_business(user, business_id, request)
    business = _get_business(db, business_id)
    business = _apply_one_time_edit(db, user, business, name=name, type=type, tagline=tagline, logo=logo)
    return {"message": "Business updated successfully", "business": business_summary(business)}
