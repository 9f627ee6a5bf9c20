from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import require_business_role
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.inventory import InventoryItem
from restaurant_api.services.inventory import is_low_stock

router = APIRouter(prefix="/api/inventory", tags=["inventory"])

INVENTORY_ROLES = ["Owner", "Manager", "Staff"]


class InventoryItemBase(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: float = Field(0, ge=0)
    unit: str = Field(..., min_length=1)
    threshold: float = Field(0, ge=0)


class InventoryItemCreate(InventoryItemBase):
    pass


class InventoryItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    quantity: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = Field(None, min_length=1)
    threshold: Optional[float] = Field(None, ge=0)


class InventoryItemRead(BaseModel):
    id: int
    business_id: int
    name: str
    quantity: float
    unit: str
    threshold: float
    low_stock: bool
    updated_at: Optional[str] = None


def _item_to_dict(item: InventoryItem) -> dict:
    return {
        "id": item.id,
        "business_id": item.business_id,
        "name": item.name,
        "quantity": item.quantity,
        "unit": item.unit,
        "threshold": item.threshold,
        "low_stock": is_low_stock(item),
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
    }


def _get_item(db: Session, item_id: int, business_id: int) -> InventoryItem:
    item = (
        db.query(InventoryItem)
        .filter(InventoryItem.id == item_id, InventoryItem.business_id == business_id)
        .first()
    )
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inventory item not found")
    return item


@router.get("", response_model=List[InventoryItemRead])
def list_inventory_items(
    db: Session = Depends(get_db),
    user: BusinessOwner = Depends(require_business_role(INVENTORY_ROLES)),
):
    items = (
        db.query(InventoryItem)
        .filter(InventoryItem.business_id == user.business_id)
        .order_by(InventoryItem.name.asc())
        .all()
    )
    return [_item_to_dict(item) for item in items]


@router.post("", response_model=InventoryItemRead, status_code=status.HTTP_201_CREATED)
def create_inventory_item(
    payload: InventoryItemCreate,
    db: Session = Depends(get_db),
    user: BusinessOwner = Depends(require_business_role(INVENTORY_ROLES)),
):
    item = InventoryItem(
        business_id=user.business_id,
        name=payload.name.strip(),
        quantity=payload.quantity,
        unit=payload.unit,
        threshold=payload.threshold,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return _item_to_dict(item)


@router.put("/{item_id}", response_model=InventoryItemRead)
def update_inventory_item(
    item_id: int,
    payload: InventoryItemUpdate,
    db: Session = Depends(get_db),
    user: BusinessOwner = Depends(require_business_role(INVENTORY_ROLES)),
):
    item = _get_item(db, item_id, user.business_id)

    if payload.name is not None:
        item.name = payload.name.strip()
    if payload.quantity is not None:
        item.quantity = payload.quantity
    if payload.unit is not None:
        item.unit = payload.unit
    if payload.threshold is not None:
        item.threshold = payload.threshold

    db.commit()
    db.refresh(item)
    return _item_to_dict(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_inventory_item(
    item_id: int,
    db: Session = Depends(get_db),
    user: BusinessOwner = Depends(require_business_role(INVENTORY_ROLES)),
):
    item = _get_item(db, item_id, user.business_id)
    db.delete(item)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
