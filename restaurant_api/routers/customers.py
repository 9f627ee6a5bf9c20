from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import get_current_customer
from restaurant_api.models.customer import Customer
from restaurant_api.services.auth import create_customer_token
from restaurant_api.services.customers import (
    CustomerError,
    authenticate_customer,
    customer_to_dict,
    register_customer,
    update_customer,
)

router = APIRouter(prefix="/api/customers", tags=["customers"])

logger = logging.getLogger(__name__)


class CustomerRegister(BaseModel):
    business_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    mobile: str = Field(..., min_length=5)


class CustomerLogin(BaseModel):
    business_id: int = Field(..., gt=0)
    email: EmailStr
    password: str = Field(..., min_length=1)


class CustomerPatch(BaseModel):
    name: Optional[str] = None
    mobile: Optional[str] = None


class CustomerReplace(BaseModel):
    name: str = Field(..., min_length=1)
    mobile: str = Field(..., min_length=5)
    password: Optional[str] = Field(None, min_length=6)


def _to_http(exc: CustomerError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


def _ensure_self(customer: Customer, customer_pk: int, request: Request) -> None:
    if customer.id != customer_pk:
        logger.warning(
            "Access denied (customer_mismatch): customer=%s target=%s endpoint=%s %s",
            customer.id,
            customer_pk,
            request.method,
            request.url.path,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only update your own profile")


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: CustomerRegister, db: Session = Depends(get_db)):
    try:
        customer = register_customer(
            db,
            business_id=payload.business_id,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            mobile=payload.mobile,
        )
    except CustomerError as exc:
        raise _to_http(exc) from exc
    return {
        "message": "Customer registered successfully",
        "customer_id": customer.customer_id,
        "id": customer.id,
    }


@router.post("/login")
def login(payload: CustomerLogin, db: Session = Depends(get_db)):
    try:
        customer = authenticate_customer(
            db,
            business_id=payload.business_id,
            email=payload.email,
            password=payload.password,
        )
    except CustomerError as exc:
        raise _to_http(exc) from exc

    token = create_customer_token(
        customer_id=customer.customer_id,
        email=customer.email,
        business_id=customer.business_id,
    )
    return {"message": "Login successful", "token": token, "customer": customer_to_dict(customer)}


@router.get("/customer")
def list_customers(customer: Customer = Depends(get_current_customer), db: Session = Depends(get_db)):
    customers = (
        db.query(Customer)
        .filter(Customer.business_id == customer.business_id)
        .order_by(Customer.customer_id.asc())
        .all()
    )
    return [customer_to_dict(item) for item in customers]


@router.get("/me")
def me(customer: Customer = Depends(get_current_customer)):
    return customer_to_dict(customer)


@router.patch("/customer/{customer_pk}")
def patch_customer(
    customer_pk: int,
    payload: CustomerPatch,
    request: Request,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    _ensure_self(customer, customer_pk, request)
    customer = update_customer(db, customer, name=payload.name, mobile=payload.mobile)
    return {"message": "Customer updated successfully", "customer": customer_to_dict(customer)}


@router.put("/customer/{customer_pk}")
def replace_customer(
    customer_pk: int,
    payload: CustomerReplace,
    request: Request,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    _ensure_self(customer, customer_pk, request)
    customer = update_customer(
        db,
        customer,
        name=payload.name,
        mobile=payload.mobile,
        password=payload.password,
    )
    return {"message": "Customer profile updated successfully", "customer": customer_to_dict(customer)}
