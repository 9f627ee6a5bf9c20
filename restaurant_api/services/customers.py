from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restaurant_api.models.business import Business
from restaurant_api.models.customer import Customer
from restaurant_api.services.accounts import normalize_email
from restaurant_api.services.auth import hash_password, verify_password
from restaurant_api.services.sequences import CUSTOMER_SEQUENCE, next_sequence_value

logger = logging.getLogger(__name__)


class CustomerError(Exception):
    status_code = 400


class CustomerNotFound(CustomerError):
    status_code = 404


class InvalidCustomerPassword(CustomerError):
    status_code = 401


def register_customer(
    db: Session,
    *,
    business_id: int,
    name: str,
    email: str,
    password: str,
    mobile: str,
) -> Customer:
    """Sign a customer up with the next per-business number, in one transaction."""
    if not db.query(Business).filter(Business.id == business_id).first():
        raise CustomerNotFound("Business not found")

    email = normalize_email(email)
    existing = (
        db.query(Customer)
        .filter(Customer.business_id == business_id, Customer.email == email)
        .first()
    )
    if existing:
        raise CustomerError("Customer already registered. Please login.")

    try:
        customer = Customer(
            customer_id=next_sequence_value(db, business_id=business_id, name=CUSTOMER_SEQUENCE),
            business_id=business_id,
            name=name,
            email=email,
            password_hash=hash_password(password),
            mobile=mobile,
            total_orders=0,
            total_money_spent=0,
            points=0,
        )
        db.add(customer)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise CustomerError("Customer already registered. Please login.") from exc
    db.refresh(customer)
    logger.info("Customer registered: business_id=%s customer_id=%s", business_id, customer.customer_id)
    return customer


def authenticate_customer(db: Session, *, business_id: int, email: str, password: str) -> Customer:
    customer = (
        db.query(Customer)
        .filter(Customer.business_id == business_id, Customer.email == normalize_email(email))
        .first()
    )
    if not customer:
        raise CustomerNotFound("Customer not found for this restaurant. Please register.")
    if not verify_password(password, customer.password_hash):
        raise InvalidCustomerPassword("Invalid password")
    return customer


def update_customer(
    db: Session,
    customer: Customer,
    *,
    name: Optional[str] = None,
    mobile: Optional[str] = None,
    password: Optional[str] = None,
) -> Customer:
    if name:
        customer.name = name
    if mobile:
        customer.mobile = mobile
    if password:
        customer.password_hash = hash_password(password)
    db.commit()
    db.refresh(customer)
    return customer


def customer_to_dict(customer: Customer) -> dict:
    return {
        "id": customer.id,
        "customer_id": customer.customer_id,
        "business_id": customer.business_id,
        "name": customer.name,
        "email": customer.email,
        "mobile": customer.mobile,
        "total_orders": customer.total_orders,
        "total_money_spent": customer.total_money_spent,
        "points": customer.points,
    }
