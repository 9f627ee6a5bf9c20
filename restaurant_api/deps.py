# restaurant_api/deps.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.core.request_context import set_request_context
from restaurant_api.models.business_owner import ROLE_OWNER, ROLE_SUPERADMIN, BusinessOwner
from restaurant_api.models.customer import Customer
from restaurant_api.services.auth import TOKEN_KIND_CUSTOMER, TOKEN_KIND_OWNER, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _as_int(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def _decode_bearer(credentials: Optional[HTTPAuthorizationCredentials]) -> Dict[str, Any]:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Access denied, no token provided")
    try:
        return decode_access_token(credentials.credentials)
    except ValueError:
        raise _unauthorized("Invalid or expired token")


def normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


def is_superadmin(user: BusinessOwner) -> bool:
    return normalize_role(user.role) == normalize_role(ROLE_SUPERADMIN)


def get_current_owner(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> BusinessOwner:
    """Resolve the back-office user (owner, staff or SuperAdmin) behind the bearer token."""
    payload = _decode_bearer(credentials)
    if payload.get("kind") != TOKEN_KIND_OWNER:
        raise _unauthorized("Invalid token type")

    user_id = _as_int(payload.get("user_id"))
    if user_id is None:
        raise _unauthorized("Invalid token (no user_id)")

    user = db.query(BusinessOwner).filter(BusinessOwner.id == user_id).first()
    if not user:
        raise _unauthorized("User not found")

    request.state.user = user
    set_request_context(
        business_id=str(user.business_id) if user.business_id is not None else None,
        principal=f"owner:{user.id}",
    )
    return user


def require_business(user: BusinessOwner = Depends(get_current_owner)) -> BusinessOwner:
    """Owner-side caller that is already attached to a business."""
    if user.business_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is not linked to any business")
    return user


def _load_customer(payload: Dict[str, Any], db: Session) -> Optional[Customer]:
    if payload.get("kind") != TOKEN_KIND_CUSTOMER:
        return None
    customer_number = _as_int(payload.get("customer_id"))
    business_id = _as_int(payload.get("business_id"))
    if customer_number is None or business_id is None:
        return None
    return (
        db.query(Customer)
        .filter(Customer.customer_id == customer_number, Customer.business_id == business_id)
        .first()
    )


def get_current_customer(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Customer:
    payload = _decode_bearer(credentials)
    customer = _load_customer(payload, db)
    if customer is None:
        raise _unauthorized("Customer not found")

    request.state.user = customer
    set_request_context(business_id=str(customer.business_id), principal=f"customer:{customer.id}")
    return customer


def get_optional_customer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[Customer]:
    """Customer behind the token, or None for guests and unusable tokens."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        payload = decode_access_token(credentials.credentials)
    except ValueError:
        logger.info("Ignoring invalid customer token; continuing as guest")
        return None
    return _load_customer(payload, db)


def _log_access_denied(*, reason: str, user: BusinessOwner, request: Request) -> None:
    endpoint = f"{request.method} {request.url.path}"
    logger.warning(
        "Access denied (%s): user_id=%s user_role=%s user_business=%s endpoint=%s",
        reason,
        getattr(user, "id", None),
        getattr(user, "role", None),
        getattr(user, "business_id", None),
        endpoint,
    )


def ensure_same_business(user: BusinessOwner, business_id: int, request: Request) -> None:
    if is_superadmin(user):
        return
    if user.business_id is None or int(user.business_id) != int(business_id):
        _log_access_denied(reason="business_mismatch", user=user, request=request)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized business access")


def require_role(roles: Iterable[str]):
    """Dependency factory: the caller's role must be one of ``roles``.

    Owners satisfy any check that admits owners, and the platform SuperAdmin
    is admitted wherever owners are.
    """
    allowed = {normalize_role(role) for role in roles}
    if normalize_role(ROLE_OWNER) in allowed:
        allowed.add(normalize_role(ROLE_SUPERADMIN))

    def _dependency(
        request: Request,
        user: BusinessOwner = Depends(get_current_owner),
    ) -> BusinessOwner:
        if normalize_role(user.role) not in allowed:
            _log_access_denied(reason="role_denied", user=user, request=request)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return user

    return _dependency


def require_superadmin(request: Request, user: BusinessOwner = Depends(get_current_owner)) -> BusinessOwner:
    if not is_superadmin(user):
        _log_access_denied(reason="not_superadmin", user=user, request=request)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="SuperAdmin access required")
    return user


def require_business_role(roles: Iterable[str]):
    """``require_role`` for callers that must also belong to a business."""
    role_dependency = require_role(roles)

    def _dependency(user: BusinessOwner = Depends(role_dependency)) -> BusinessOwner:
        return require_business(user)

    return _dependency
