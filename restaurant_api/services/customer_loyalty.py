from __future__ import annotations

import logging
import math

from sqlalchemy.orm import Session

from restaurant_api.core.config import POINTS_PER_CURRENCY_UNIT
from restaurant_api.models.customer import Customer

logger = logging.getLogger(__name__)


def points_for_amount(amount: float) -> int:
    if not amount or amount <= 0:
        return 0
    return int(math.floor(float(amount) / POINTS_PER_CURRENCY_UNIT))


def redeem_points(db: Session, *, customer_pk: int, points: int) -> bool:
    """Deduct ``points`` only when the balance covers them.

    The balance check and the deduction are one UPDATE, so two concurrent
    redemptions cannot both spend the same points.
    """
    if points <= 0:
        return False
    updated = (
        db.query(Customer)
        .filter(Customer.id == customer_pk, Customer.points >= points)
        .update({Customer.points: Customer.points - points}, synchronize_session=False)
    )
    if not updated:
        logger.warning("Insufficient points: customer_pk=%s requested=%s", customer_pk, points)
        return False
    return True


def accrue_order(db: Session, *, customer_pk: int, total_amount: float) -> int:
    earned = points_for_amount(total_amount)
    db.query(Customer).filter(Customer.id == customer_pk).update(
        {
            Customer.total_orders: Customer.total_orders + 1,
            Customer.total_money_spent: Customer.total_money_spent + float(total_amount or 0),
            Customer.points: Customer.points + earned,
        },
        synchronize_session=False,
    )
    return earned
