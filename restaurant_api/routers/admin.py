from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload

from restaurant_api.core.database import get_db
from restaurant_api.deps import require_superadmin
from restaurant_api.models.business import Business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.services.plans import refresh_plan_expiry

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _plan_to_dict(plan) -> dict | None:
    if plan is None:
        return None
    return {
        "name": plan.name,
        "features": plan.features,
        "expires_at": plan.expires_at.isoformat() if plan.expires_at else None,
        "payment_proof_url": plan.payment_proof_url,
        "status": plan.status,
    }


@router.get("/all-users")
def list_all_users(
    db: Session = Depends(get_db),
    _admin: BusinessOwner = Depends(require_superadmin),
):
    users = (
        db.query(BusinessOwner)
        .options(joinedload(BusinessOwner.business).joinedload(Business.plan))
        .order_by(BusinessOwner.id.asc())
        .all()
    )

    formatted = []
    for user in users:
        business = user.business
        business_data = None
        if business is not None:
            plan = refresh_plan_expiry(db, business.plan) if business.plan is not None else None
            business_data = {"id": business.id, "name": business.name, "plan": _plan_to_dict(plan)}
        formatted.append(
            {
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "phone": user.phone,
                "address": user.address,
                "role": user.role,
                "business": business_data,
            }
        )
    return {"users": formatted}
