from __future__ import annotations

import calendar
from collections import Counter
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, selectinload

from restaurant_api.core.database import get_db
from restaurant_api.core.timeutils import local_range_bounds, to_local, utcnow
from restaurant_api.deps import require_business_role
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.order import Order
from restaurant_api.services.orders import STATUS_COMPLETED

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

DASHBOARD_ROLES = ["Owner", "Manager"]
TOP_DISHES_LIMIT = 5

_MONTHS = {name.lower(): index for index, name in enumerate(calendar.month_name) if name}
_MONTHS.update({name.lower(): index for index, name in enumerate(calendar.month_abbr) if name})


def _resolve_month(value: Optional[str], today: date) -> int:
    if not value:
        return today.month
    month = _MONTHS.get(value.strip().lower())
    if month is None:
        raise HTTPException(status_code=400, detail="Invalid month")
    return month


def _resolve_day_window(date_range: Optional[str], year: int, month: int) -> tuple[int, int]:
    """``"01 - 10"`` and ``"11 - 20"`` are fixed; anything else is 21 to month end."""
    normalized = (date_range or "").replace(" ", "")
    if normalized == "01-10":
        return 1, 10
    if normalized == "11-20":
        return 11, 20
    return 21, calendar.monthrange(year, month)[1]


@router.get("")
def dashboard_summary(
    month: Optional[str] = Query(None),
    date_range: Optional[str] = Query(None),
    day: Optional[int] = Query(None, ge=1, le=31),
    db: Session = Depends(get_db),
    user: BusinessOwner = Depends(require_business_role(DASHBOARD_ROLES)),
):
    today = to_local(utcnow()).date()
    year = today.year
    month_index = _resolve_month(month, today)
    first_day, last_day = _resolve_day_window(date_range, year, month_index)
    window_start = date(year, month_index, first_day)
    window_end = date(year, month_index, last_day)
    start, end = local_range_bounds(window_start, window_end)

    orders = (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(
            Order.business_id == user.business_id,
            Order.status == STATUS_COMPLETED,
            Order.created_at >= start,
            Order.created_at < end,
        )
        .all()
    )

    per_date = Counter(to_local(order.created_at).date() for order in orders)
    orders_by_date = []
    current = window_start
    while current <= window_end:
        orders_by_date.append({"date": current.isoformat(), "count": per_date.get(current, 0)})
        current += timedelta(days=1)

    selected = orders
    if day is not None:
        if day > calendar.monthrange(year, month_index)[1]:
            raise HTTPException(status_code=400, detail="Invalid day")
        selected_date = date(year, month_index, day)
        selected = [order for order in orders if to_local(order.created_at).date() == selected_date]

    dishes: Counter = Counter()
    for order in selected:
        for item in order.items:
            dishes[item.name] += int(item.quantity or 0)

    return {
        "orders": orders_by_date,
        "total_income": round(sum(float(order.total_amount or 0) for order in selected), 2),
        "total_orders": len(selected),
        "top_dishes": [
            {"name": name, "orders": quantity} for name, quantity in dishes.most_common(TOP_DISHES_LIMIT)
        ],
    }
