from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class RequestContext:
    """Who is calling, for which business, under which request id.

    Stored as one immutable value so a log line never mixes fields from two
    different updates.
    """

    request_id: Optional[str] = None
    business_id: Optional[str] = None
    principal: Optional[str] = None  # "owner:<id>" or "customer:<id>"

    def as_log_fields(self) -> dict:
        return {"request_id": self.request_id, "business_id": self.business_id, "principal": self.principal}


_EMPTY = RequestContext()
_CONTEXT: ContextVar[RequestContext] = ContextVar("restaurant_request_context", default=_EMPTY)


def current_context() -> RequestContext:
    return _CONTEXT.get()


def set_request_context(
    *, request_id: Optional[str] = None, business_id: Optional[str] = None, principal: Optional[str] = None
) -> RequestContext:
    """Merge the given fields into the current context; ``None`` leaves a field as is."""
    updates = {
        key: value
        for key, value in (("request_id", request_id), ("business_id", business_id), ("principal", principal))
        if value is not None
    }
    context = replace(_CONTEXT.get(), **updates)
    _CONTEXT.set(context)
    return context


def clear_request_context() -> None:
    _CONTEXT.set(_EMPTY)
