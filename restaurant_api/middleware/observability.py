from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from restaurant_api.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        status_code = 500
        endpoint = request.url.path
        method = request.method

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            business_id = _extract_business_id(request)
            principal = _extract_principal(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

            logger.info(
                "request completed",
                extra={
                    "request_id": request_id,
                    "business_id": business_id,
                    "principal": principal,
                    "endpoint": endpoint,
                    "method": method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )

            if "response" in locals():
                response.headers["X-Request-ID"] = request_id

            clear_request_context()


def _extract_business_id(request: Request) -> str | None:
    user = getattr(request.state, "user", None)
    business_id = getattr(user, "business_id", None) if user is not None else None
    if business_id is not None:
        return str(business_id)
    raw = request.path_params.get("business_id") or request.query_params.get("business_id")
    return str(raw) if raw else None


def _extract_principal(request: Request) -> str | None:
    user = getattr(request.state, "user", None)
    if user is None:
        return None
    kind = "customer" if hasattr(user, "customer_id") else "owner"
    return f"{kind}:{user.id}"
