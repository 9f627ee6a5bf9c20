from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_api.core.timeutils import local_day_bounds
from restaurant_api.models.business import Business
from restaurant_api.models.customer import Customer
from restaurant_api.models.order import Order
from restaurant_api.models.order_item import OrderItem
from restaurant_api.services.customer_loyalty import accrue_order, redeem_points
from restaurant_api.services.inventory import decrement_stock_for_lines

logger = logging.getLogger(__name__)

ORDER_TAG_PREFIX = "ORD"
STATUS_PENDING = "Pending"
STATUS_COMPLETED = "Completed"
ITEM_STATUSES = (STATUS_PENDING, STATUS_COMPLETED)


class OrderError(Exception):
    pass


class OrderValidationError(OrderError):
    pass


class OrderNotFoundError(OrderError):
    pass


class OrderAccessDenied(OrderError):
    pass


@dataclass
class LineItem:
    product_id: int
    name: str
    quantity: int
    price: float
    status: Optional[str] = None


@dataclass
class SideEffectResult:
    step: str
    ok: bool
    detail: Optional[str] = None


@dataclass
class OrderCreation:
    order: Order
    side_effects: list[SideEffectResult] = field(default_factory=list)


def _get(d: dict, *keys, default=None):
    """Accept both snake_case and camelCase keys."""
    for k in keys:
        if k in d and d[k] not in (None, ""):
            return d[k]
    return default


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# =========================
# IDENTIFIERS
# =========================
def format_order_tag(order_id: int) -> str:
    return f"{ORDER_TAG_PREFIX}{int(order_id):05d}"


def parse_order_ref(raw: Any) -> int:
    """``ORD00012`` or ``12`` -> 12."""
    value = str(raw or "").strip()
    if value.upper().startswith(ORDER_TAG_PREFIX):
        value = value[len(ORDER_TAG_PREFIX):]
    if not value.isdigit():
        raise OrderValidationError("Invalid order ID format")
    return int(value)


# =========================
# STATUS DERIVATION
# =========================
def normalize_item_status(raw: Any) -> str:
    value = str(raw or "").strip().lower()
    for status in ITEM_STATUSES:
        if status.lower() == value:
            return status
    raise OrderValidationError("Invalid status value")


def derive_order_status(items: Iterable[Any]) -> str:
    """Completed iff there is at least one item and every item is Completed."""
    statuses = [getattr(item, "status", item) for item in items]
    if statuses and all(status == STATUS_COMPLETED for status in statuses):
        return STATUS_COMPLETED
    return STATUS_PENDING


def recompute_order_status(order: Order) -> str:
    order.status = derive_order_status(order.items)
    return order.status


# =========================
# PARSING / VALIDATION
# =========================
def parse_line_items(raw_items: Any, *, allow_status: bool = False) -> list[LineItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise OrderValidationError("Cart items must be a non-empty array")

    items: list[LineItem] = []
    for entry in raw_items:
        if not isinstance(entry, dict):
            raise OrderValidationError("Invalid cart item")
        try:
            product_id = int(_get(entry, "product_id", "productId"))
            quantity = int(_get(entry, "quantity", "qty", default=0))
            price = float(_get(entry, "price", default=0))
        except (TypeError, ValueError):
            raise OrderValidationError("Invalid cart item")
        name = str(_get(entry, "name", default="") or "").strip()
        if quantity < 1 or price < 0 or not name:
            raise OrderValidationError("Invalid cart item")

        status = None
        raw_status = _get(entry, "status")
        if allow_status and raw_status is not None:
            status = normalize_item_status(raw_status)

        items.append(LineItem(product_id=product_id, name=name, quantity=quantity, price=price, status=status))
    return items


def validate_new_order(
    *,
    business_id: Any,
    table_number: Any,
    items: Any,
    total_amount: Any,
    payment_method: Any,
    estimated_time: Any,
) -> list[LineItem]:
    required = (business_id, table_number, total_amount, payment_method, estimated_time)
    if any(_is_missing(value) for value in required):
        raise OrderValidationError("Missing required fields")
    try:
        if int(table_number) < 1 or float(total_amount) < 0:
            raise OrderValidationError("Missing required fields")
    except (TypeError, ValueError):
        raise OrderValidationError("Missing required fields")
    return parse_line_items(items)


# =========================
# CREATE
# =========================
def _run_side_effect(db: Session, step: str, action: Callable[[], Optional[str]]) -> SideEffectResult:
    """Run one post-commit step; a failure is recorded, never raised."""
    try:
        problem = action()
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning("Order side effect failed: step=%s error=%s", step, exc, extra={"step": step})
        return SideEffectResult(step=step, ok=False, detail=str(exc))
    if problem:
        return SideEffectResult(step=step, ok=False, detail=problem)
    return SideEffectResult(step=step, ok=True)


def create_order(
    db: Session,
    *,
    business_id: int,
    table_number: int,
    items: list[LineItem],
    total_amount: float,
    payment_method: str,
    estimated_time: str,
    customer: Optional[Customer] = None,
    points_to_redeem: int = 0,
) -> OrderCreation:
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise OrderNotFoundError("Business not found")

    # A customer token issued by another tenant downgrades to a guest order
    if customer is not None and int(customer.business_id) != int(business_id):
        logger.info("Customer token belongs to another business; placing guest order")
        customer = None

    order = Order(
        business_id=business_id,
        customer_id=customer.id if customer is not None else None,
        table_number=int(table_number),
        total_amount=float(total_amount),
        payment_method=str(payment_method),
        estimated_time=str(estimated_time),
        status=STATUS_PENDING,
    )
    try:
        db.add(order)
        db.flush()
        for line in items:
            db.add(
                OrderItem(
                    order_id=order.id,
                    product_id=line.product_id,
                    name=line.name,
                    quantity=line.quantity,
                    price=line.price,
                    status=STATUS_PENDING,
                )
            )
        db.commit()
        db.refresh(order)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Order creation failed: business_id=%s", business_id)
        raise

    logger.info(
        "Order created: order_id=%s business_id=%s items=%s",
        order.id,
        business_id,
        len(items),
        extra={"order_id": order.id},
    )

    side_effects: list[SideEffectResult] = []
    if customer is not None:
        customer_pk = customer.id

        def _redeem() -> Optional[str]:
            if redeem_points(db, customer_pk=customer_pk, points=int(points_to_redeem)):
                return None
            return "insufficient points"

        def _accrue() -> Optional[str]:
            accrue_order(db, customer_pk=customer_pk, total_amount=float(total_amount))
            return None

        if points_to_redeem and int(points_to_redeem) > 0:
            side_effects.append(_run_side_effect(db, "redeem_points", _redeem))
        side_effects.append(_run_side_effect(db, "accrue_points", _accrue))

    def _inventory() -> Optional[str]:
        failures = decrement_stock_for_lines(
            db,
            business_id=business_id,
            lines=[(line.product_id, line.quantity) for line in items],
        )
        return f"failed ingredients: {', '.join(failures)}" if failures else None

    side_effects.append(_run_side_effect(db, "inventory", _inventory))
    db.refresh(order)
    return OrderCreation(order=order, side_effects=side_effects)


# =========================
# LOOKUP
# =========================
def get_order_for_business(db: Session, order_id: int, business_id: Optional[int]) -> Order:
    """``business_id=None`` skips the ownership check (platform operator)."""
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFoundError("Order not found")
    if business_id is not None and int(order.business_id) != int(business_id):
        raise OrderAccessDenied("Unauthorized access")
    return order


def list_orders(db: Session, *, business_id: int, day: Optional[date] = None) -> list[Order]:
    query = db.query(Order).filter(Order.business_id == business_id)
    if day is not None:
        start, end = local_day_bounds(day)
        query = query.filter(Order.created_at >= start, Order.created_at < end)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


# =========================
# STATUS MUTATIONS
# =========================
def update_item_status(db: Session, order: Order, *, product_id: int, status: Any) -> tuple[str, str]:
    new_status = normalize_item_status(status)
    matched = [item for item in order.items if int(item.product_id) == int(product_id)]
    if not matched:
        raise OrderNotFoundError("Item not found in this order")

    for item in matched:
        item.status = new_status
    order_status = recompute_order_status(order)
    db.commit()
    logger.info(
        "Order item status updated: order_id=%s product_id=%s status=%s order_status=%s",
        order.id,
        product_id,
        new_status,
        order_status,
        extra={"order_id": order.id},
    )
    return new_status, order_status


def complete_all_items(db: Session, order: Order) -> str:
    for item in order.items:
        item.status = STATUS_COMPLETED
    order_status = recompute_order_status(order)
    db.commit()
    return order_status


def set_order_status(db: Session, order: Order, status: Any) -> str:
    """Completed completes every item, Pending reopens every item."""
    target = normalize_item_status(status)
    for item in order.items:
        item.status = target
    order_status = recompute_order_status(order)
    db.commit()
    return order_status


# =========================
# UPDATE (full item replace)
# =========================
def replace_order_items(
    db: Session,
    order: Order,
    *,
    items: list[LineItem],
    table_number: Optional[int] = None,
    total_amount: Optional[float] = None,
    payment_method: Optional[str] = None,
    estimated_time: Optional[str] = None,
) -> Order:
    previous = {int(item.product_id): item.status for item in order.items}

    try:
        order.items.clear()
        db.flush()
        for line in items:
            status = line.status or previous.get(int(line.product_id)) or STATUS_PENDING
            order.items.append(
                OrderItem(
                    product_id=line.product_id,
                    name=line.name,
                    quantity=line.quantity,
                    price=line.price,
                    status=status,
                )
            )
        if table_number is not None:
            order.table_number = int(table_number)
        if total_amount is not None:
            order.total_amount = float(total_amount)
        if payment_method is not None:
            order.payment_method = payment_method
        if estimated_time is not None:
            order.estimated_time = estimated_time

        # Edits reopen the order unless every resulting item is already Completed
        recompute_order_status(order)
        db.commit()
        db.refresh(order)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Order update failed: order_id=%s", order.id)
        raise
    return order


# =========================
# SERIALIZATION
# =========================
def order_item_to_dict(item: OrderItem) -> dict:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "name": item.name,
        "quantity": item.quantity,
        "price": item.price,
        "status": item.status,
    }


def order_to_dict(order: Order) -> dict:
    return {
        "id": order.id,
        "order_id": format_order_tag(order.id),
        "business_id": order.business_id,
        "customer_id": order.customer_id,
        "table_number": order.table_number,
        "total_amount": order.total_amount,
        "payment_method": order.payment_method,
        "estimated_time": order.estimated_time,
        "status": derive_order_status(order.items),
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "items": [order_item_to_dict(item) for item in order.items],
    }
