from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import jwt

from restaurant_api.core.config import (
    CUSTOMER_TOKEN_EXPIRE_HOURS,
    JWT_ALGORITHM,
    JWT_SECRET_KEY,
    OWNER_TOKEN_EXPIRE_HOURS,
)

TOKEN_KIND_OWNER = "owner"
TOKEN_KIND_CUSTOMER = "customer"


# =========================
# PASSWORD (bcrypt directly)
# =========================
def _normalize_password_for_bcrypt(password: str) -> bytes:
    """bcrypt only reads the first 72 bytes; longer secrets are truncated."""
    pw = (password or "").encode("utf-8")
    if len(pw) <= 72:
        return pw
    return pw[:72]


def hash_password(password: str) -> str:
    pw = _normalize_password_for_bcrypt(password)
    hashed = bcrypt.hashpw(pw, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        pw = _normalize_password_for_bcrypt(plain_password)
        ph = (password_hash or "").encode("utf-8")
        return bcrypt.checkpw(pw, ph)
    except ValueError:
        # malformed hash
        return False


# =========================
# JWT HELPERS
# =========================
def _encode(subject: str, claims: Dict[str, Any], expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    payload.update(claims)
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def create_owner_token(
    *,
    user_id: int,
    email: str,
    business_id: Optional[int],
    role: str,
    expires_hours: int = OWNER_TOKEN_EXPIRE_HOURS,
) -> str:
    return _encode(
        f"{TOKEN_KIND_OWNER}:{user_id}",
        {
            "kind": TOKEN_KIND_OWNER,
            "user_id": user_id,
            "email": email,
            "business_id": business_id,
            "role": role,
        },
        timedelta(hours=expires_hours),
    )


def create_customer_token(
    *,
    customer_id: int,
    email: str,
    business_id: int,
    expires_hours: int = CUSTOMER_TOKEN_EXPIRE_HOURS,
) -> str:
    """``customer_id`` is the per-tenant customer number, not the row id."""
    return _encode(
        f"{TOKEN_KIND_CUSTOMER}:{business_id}:{customer_id}",
        {
            "kind": TOKEN_KIND_CUSTOMER,
            "customer_id": customer_id,
            "email": email,
            "business_id": business_id,
        },
        timedelta(hours=expires_hours),
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """Return the JWT payload or raise ValueError when invalid or expired."""
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except Exception as e:
        raise ValueError("Invalid or expired token") from e
