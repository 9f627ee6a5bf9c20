from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import ensure_same_business, normalize_role, require_role
from restaurant_api.models.business import Business
from restaurant_api.models.business_owner import (
    ROLE_MANAGER,
    ROLE_OWNER,
    ROLE_STAFF,
    BusinessOwner,
)
from restaurant_api.services.accounts import normalize_email
from restaurant_api.services.auth import hash_password

router = APIRouter(prefix="/api", tags=["business-users"])

logger = logging.getLogger(__name__)

MANAGE_ROLES = [ROLE_OWNER, ROLE_MANAGER]
VIEW_ROLES = [ROLE_OWNER, ROLE_MANAGER, ROLE_STAFF]
_ASSIGNABLE = {normalize_role(role): role for role in (ROLE_OWNER, ROLE_MANAGER, ROLE_STAFF)}


def _canonical_role(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    role = _ASSIGNABLE.get(normalize_role(value))
    if role is None:
        raise ValueError("role must be Owner, Manager or Staff")
    return role


class StaffCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: str = ROLE_STAFF
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator("role")
    @classmethod
    def _role(cls, value: str) -> str:
        return _canonical_role(value)


class StaffUpdate(BaseModel):
    name: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator("role")
    @classmethod
    def _role(cls, value: Optional[str]) -> Optional[str]:
        return _canonical_role(value)


def _staff_to_dict(user: BusinessOwner) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "phone": user.phone,
        "address": user.address,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _get_teammate(db: Session, user_id: int, actor: BusinessOwner, request: Request, action: str) -> BusinessOwner:
    target = db.query(BusinessOwner).filter(BusinessOwner.id == user_id).first()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if target.business_id is None or target.business_id != actor.business_id:
        logger.warning(
            "Access denied (staff_%s): actor_id=%s target_id=%s endpoint=%s %s",
            action,
            actor.id,
            target.id,
            request.method,
            request.url.path,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You do not have permission to {action} this user",
        )
    return target


@router.post("/business/{business_id}/add-user", status_code=status.HTTP_201_CREATED)
def add_user(
    business_id: int,
    payload: StaffCreate,
    request: Request,
    actor: BusinessOwner = Depends(require_role(MANAGE_ROLES)),
    db: Session = Depends(get_db),
):
    ensure_same_business(actor, business_id, request)
    if not db.query(Business).filter(Business.id == business_id).first():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")

    email = normalize_email(payload.email)
    if db.query(BusinessOwner).filter(BusinessOwner.email == email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already exists")

    user = BusinessOwner(
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role,
        phone=payload.phone,
        address=payload.address,
        business_id=business_id,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already exists") from exc
    db.refresh(user)
    logger.info("Staff user added: user_id=%s role=%s business_id=%s", user.id, user.role, business_id)
    return {"message": "User added successfully", "user_id": user.id}


@router.get("/business/{business_id}/users")
def list_users(
    business_id: int,
    request: Request,
    actor: BusinessOwner = Depends(require_role(VIEW_ROLES)),
    db: Session = Depends(get_db),
):
    ensure_same_business(actor, business_id, request)
    users = (
        db.query(BusinessOwner)
        .filter(BusinessOwner.business_id == business_id)
        .order_by(BusinessOwner.created_at.desc(), BusinessOwner.id.desc())
        .all()
    )
    return {"users": [_staff_to_dict(user) for user in users]}


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    payload: StaffUpdate,
    request: Request,
    actor: BusinessOwner = Depends(require_role(MANAGE_ROLES)),
    db: Session = Depends(get_db),
):
    target = _get_teammate(db, user_id, actor, request, "update")
    if target.role == ROLE_OWNER and payload.role and payload.role != ROLE_OWNER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot change role of an Owner user")

    if payload.name is not None:
        target.name = payload.name
    if payload.role is not None:
        target.role = payload.role
    if payload.phone is not None:
        target.phone = payload.phone
    if payload.address is not None:
        target.address = payload.address
    if payload.password and payload.password.strip():
        target.password_hash = hash_password(payload.password)

    db.commit()
    return {"message": "User updated successfully", "user_id": target.id}


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    actor: BusinessOwner = Depends(require_role(MANAGE_ROLES)),
    db: Session = Depends(get_db),
):
    target = _get_teammate(db, user_id, actor, request, "delete")
    if target.role == ROLE_OWNER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot delete an Owner user")
    db.delete(target)
    db.commit()
    logger.info("Staff user deleted: user_id=%s business_id=%s", user_id, actor.business_id)
    return {"message": "User deleted successfully"}
