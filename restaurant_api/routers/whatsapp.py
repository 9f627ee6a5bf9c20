from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import require_business, require_business_role
from restaurant_api.models.business import Business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.customer import Customer
from restaurant_api.models.whatsapp_credential import WhatsAppCredential
from restaurant_api.services.whatsapp_promo import send_promo

router = APIRouter(prefix="/api/businesswhatsappdata", tags=["whatsapp"])

logger = logging.getLogger(__name__)

WHATSAPP_ROLES = ["Owner", "Manager"]


class WhatsAppCredentialUpdate(BaseModel):
    phone_number_id: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)
    waba_id: str = Field(..., min_length=1)
    whatsapp_number: str = Field(..., min_length=5)


class PromoRequest(BaseModel):
    count: int = Field(..., gt=0)


def _mask_token(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    if len(value) <= 4:
        return "****"
    return f"****{value[-4:]}"


def _serialize_credential(credential: WhatsAppCredential) -> dict:
    return {
        "id": credential.id,
        "business_id": credential.business_id,
        "phone_number_id": credential.phone_number_id,
        "waba_id": credential.waba_id,
        "whatsapp_number": credential.whatsapp_number,
        "access_token_masked": _mask_token(credential.access_token),
    }


def _get_credential(db: Session, business_id: int) -> WhatsAppCredential:
    credential = db.query(WhatsAppCredential).filter(WhatsAppCredential.business_id == business_id).first()
    if not credential:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="WhatsApp credentials not found")
    return credential


@router.post("/setup")
def save_credentials(
    payload: WhatsAppCredentialUpdate,
    user: BusinessOwner = Depends(require_business_role(WHATSAPP_ROLES)),
    db: Session = Depends(get_db),
):
    credential = db.query(WhatsAppCredential).filter(WhatsAppCredential.business_id == user.business_id).first()
    if credential is None:
        credential = WhatsAppCredential(business_id=user.business_id)
        db.add(credential)

    credential.phone_number_id = payload.phone_number_id
    credential.access_token = payload.access_token
    credential.waba_id = payload.waba_id
    credential.whatsapp_number = payload.whatsapp_number
    db.commit()
    logger.info("WhatsApp credentials saved: business_id=%s", user.business_id)
    return {"message": "WhatsApp credentials saved successfully."}


@router.get("/setup")
def read_credentials(
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    return _serialize_credential(_get_credential(db, user.business_id))


@router.get("/customer-count")
def customer_count(
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    count = db.query(Customer).filter(Customer.business_id == user.business_id).count()
    return {"count": count}


@router.post("/send-promo")
def send_promo_messages(
    payload: PromoRequest,
    user: BusinessOwner = Depends(require_business_role(WHATSAPP_ROLES)),
    db: Session = Depends(get_db),
):
    credential = _get_credential(db, user.business_id)
    business = db.query(Business).filter(Business.id == user.business_id).first()

    customers = (
        db.query(Customer)
        .filter(Customer.business_id == user.business_id)
        .order_by(Customer.customer_id.asc())
        .limit(payload.count)
        .all()
    )
    if not customers:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No customers found to send messages")

    results = send_promo(credential, customers, business_name=business.name if business else "our restaurant")
    return {
        "success": True,
        "message": f"Promo message sent to {len(results)} customers",
        "results": results,
    }
