from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import ensure_same_business, get_current_owner, require_business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.plan import Plan
from restaurant_api.services.plans import PlanError, get_plan, plan_to_dict, update_plan_status, upsert_plan

router = APIRouter(prefix="/api", tags=["plans"])


class PlanUpsert(BaseModel):
    name: str = Field(..., min_length=1)
    features: Optional[Any] = None
    expires_at: Optional[datetime] = None
    payment_proof_url: Optional[str] = None
    status: Optional[str] = None


class PlanStatusUpdate(BaseModel):
    status: str


@router.get("/subscription/status/{business_id}")
def subscription_status(
    business_id: int,
    request: Request,
    user: BusinessOwner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    ensure_same_business(user, business_id, request)
    plan = get_plan(db, business_id)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No subscription found")
    return {"subscription": plan_to_dict(plan)}


@router.post("/plan")
def save_plan(
    payload: PlanUpsert,
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    try:
        plan = upsert_plan(
            db,
            business_id=user.business_id,
            name=payload.name,
            features=payload.features,
            expires_at=payload.expires_at,
            payment_proof_url=payload.payment_proof_url,
            status=payload.status,
        )
    except PlanError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"message": "Plan created or updated successfully", "plan": plan_to_dict(plan)}


@router.get("/plan")
def read_plan(
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    plan = get_plan(db, user.business_id)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No plan found")
    return plan_to_dict(plan)


@router.delete("/plan/{business_id}")
def delete_plan(
    business_id: int,
    user: BusinessOwner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    # Only the business itself may drop its plan
    if user.business_id is None or int(user.business_id) != int(business_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized to delete this plan")

    plan = db.query(Plan).filter(Plan.business_id == business_id).first()
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")
    db.delete(plan)
    db.commit()
    return {"message": "Plan deleted successfully"}


@router.patch("/plan/{business_id}/status")
def change_plan_status(
    business_id: int,
    body: PlanStatusUpdate,
    request: Request,
    user: BusinessOwner = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    ensure_same_business(user, business_id, request)
    plan = db.query(Plan).filter(Plan.business_id == business_id).first()
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")
    try:
        plan = update_plan_status(db, plan, body.status)
    except PlanError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"message": "Plan status updated successfully", "plan": plan_to_dict(plan)}
