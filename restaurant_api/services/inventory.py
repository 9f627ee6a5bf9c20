from __future__ import annotations

import json
import logging
import math
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_api.models.inventory import InventoryItem
from restaurant_api.models.product import Product

logger = logging.getLogger(__name__)


def parse_metadata(raw: Any) -> dict:
    """Product/category metadata as a dict; unparseable values become ``{}``."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unparseable metadata JSON")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _ingredient_quantity(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def product_ingredients(product: Product) -> list[tuple[str, float]]:
    metadata = parse_metadata(product.meta)
    ingredients = metadata.get("ingredients")
    if not isinstance(ingredients, list):
        return []

    resolved: list[tuple[str, float]] = []
    for ingredient in ingredients:
        if not isinstance(ingredient, dict):
            continue
        name = str(ingredient.get("name") or "").strip()
        quantity = _ingredient_quantity(ingredient.get("quantity"))
        if not name or quantity is None:
            logger.warning("Skipping ingredient without name/numeric quantity: product_id=%s", product.id)
            continue
        resolved.append((name, quantity))
    return resolved


def decrement_stock_for_lines(
    db: Session,
    *,
    business_id: int,
    lines: Iterable[tuple[int, int]],
) -> list[str]:
    """Consume ingredient stock for ``(product_id, quantity)`` lines.

    Each ingredient is committed on its own; failures are collected and
    returned instead of raised so one bad row never blocks the rest.
    """
    failures: list[str] = []
    for product_id, line_quantity in lines:
        product = (
            db.query(Product)
            .filter(Product.id == product_id, Product.business_id == business_id)
            .first()
        )
        if product is None:
            continue

        for name, per_unit in product_ingredients(product):
            amount = per_unit * int(line_quantity)
            try:
                updated = (
                    db.query(InventoryItem)
                    .filter(InventoryItem.business_id == business_id, InventoryItem.name == name)
                    .update(
                        {InventoryItem.quantity: InventoryItem.quantity - amount},
                        synchronize_session=False,
                    )
                )
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.warning("Inventory decrement failed: ingredient=%s error=%s", name, exc)
                failures.append(name)
                continue
            if not updated:
                logger.info("No inventory row for ingredient=%s business_id=%s", name, business_id)
    return failures


def is_low_stock(item: InventoryItem) -> bool:
    return float(item.quantity or 0) < float(item.threshold or 0)
